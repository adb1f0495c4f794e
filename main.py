import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import settings
from database.db import init_db

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# HTTP 클라이언트 디버그 로그 끄기
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)


# ✅ 미들웨어
from middlewares.timing import TimingMiddleware  # noqa: E402
from middlewares.error_handler import add_error_handlers  # noqa: E402

# ✅ 라우터
from routers import catalog, csv_io, grade_scale, grades, record, semesters, storage  # noqa: E402

app = FastAPI(
    title=settings.APP_TITLE,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
)

# ✅ CORS 설정 (CORS_ORIGINS 기준)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ✅ 요청 처리 시간 (X-Latency-Ms 응답 헤더 + 접근 로그)
app.add_middleware(TimingMiddleware)

# ✅ 전역 에러 핸들러 (JSON 에러 형식 통일)
add_error_handlers(app)

# ✅ 라우터 등록 (/v1)
app.include_router(grade_scale.router, prefix="/v1")
app.include_router(record.router,      prefix="/v1")
app.include_router(semesters.router,   prefix="/v1")
app.include_router(grades.router,      prefix="/v1")
app.include_router(csv_io.router,      prefix="/v1")
app.include_router(storage.router,     prefix="/v1")
app.include_router(catalog.router,     prefix="/v1")


@app.on_event("startup")
def _create_tables():
    init_db()


# ✅ 헬스 체크
@app.get("/health")
def health_check():
    return {"status": "ok", "message": "API is running"}


# ✅ 루트
@app.get("/")
def root():
    return {"message": f"{settings.APP_TITLE} v{settings.APP_VERSION}"}
