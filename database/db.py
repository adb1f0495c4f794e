from sqlalchemy import create_engine               # SQLAlchemy 엔진 생성 함수
from sqlalchemy.orm import declarative_base, sessionmaker

from config.settings import settings               # ✅ 환경 설정

# ✅ SQLite: FastAPI 워커 스레드 간 세션 사용을 위해 check_same_thread 해제
connect_args = {"check_same_thread": False} if settings.DB_IS_SQLITE else {}
engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)

# ✅ 저장소 계층에서 사용하는 세션 팩토리
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ✅ ORM 모델 베이스 클래스
Base = declarative_base()


def init_db(bind=None) -> None:
    """저장소 테이블이 없으면 생성"""
    # 모델 import 후에야 Base.metadata 에 테이블이 등록됨
    import models.storage  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
