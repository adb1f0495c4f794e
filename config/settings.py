"""
config/settings.py

- .env에 정의한 환경변수를 읽어 애플리케이션 전역 설정으로 제공합니다.
- pydantic v2 / pydantic-settings v2 사용.
- 모든 값에 로컬 기본값이 있어 .env 없이도 계산기가 동작하며,
  원격 카탈로그는 선택 사항으로 CATALOG_API_BASE_URL 이 설정되기 전까지 비활성입니다.
"""

from typing import List, Optional, Literal
from pydantic import field_validator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # =========================
    # 앱/런타임
    # =========================
    ENV: Literal["dev", "stage", "prod"] = "dev"
    APP_TITLE: str = "QPI Calculator API"
    APP_DESCRIPTION: str = "Academic record aggregation, QPI calculation and CSV exchange"
    APP_VERSION: str = "1.0.0"

    # =========================
    # CORS
    # =========================
    # 콤마(,)로 구분된 문자열 → List[str] 로 파싱
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, v):
        if isinstance(v, str):
            # "a,b , c" → ["a","b","c"]
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    # =========================
    # 로컬 저장소 (기본: SQLite)
    # =========================
    DATABASE_URL: str = "sqlite:///./qpi_calculator.db"

    # 로컬 저장소 전체 용량 한도 (브라우저 localStorage 와 같은 5MB)
    STORAGE_QUOTA_BYTES: int = 5 * 1024 * 1024

    @computed_field  # type: ignore[misc]
    @property
    def DB_IS_SQLITE(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    # =========================
    # 원격 과목/템플릿 카탈로그
    # =========================
    CATALOG_API_BASE_URL: Optional[str] = None
    CATALOG_API_TOKEN: str = ""
    CATALOG_TIMEOUT: int = 10

    # =========================
    # CSV
    # =========================
    CSV_DELIMITER: str = ","
    MAX_UPLOAD_MB: int = 5

    @field_validator("CSV_DELIMITER")
    @classmethod
    def _single_char_delimiter(cls, v: str) -> str:
        if len(v) != 1 or v in ('"', "\r", "\n"):
            raise ValueError("CSV_DELIMITER must be a single non-quote, non-newline character")
        return v

    # =========================
    # 로깅
    # =========================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # =========================
    # BaseSettings Config
    # =========================
    model_config = SettingsConfigDict(
        env_file=".env",               # .env 파일에서 값 로드
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",                # 정의되지 않은 키는 무시
    )


# ✅ 전역 설정 객체
settings = Settings()
