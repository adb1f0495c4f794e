"""
schemas/common.py

- 라우터 전반에서 재사용할 공용 응답 스키마
- Pydantic v2 기준
- 포함 내용:
  1) 에러 응답 표준: ErrorDetail, ErrorResponse (middlewares/error_handler.py 에서 사용)
  2) 성공 응답 래퍼: SuccessEnvelope[T], 라우터가 반환하는 ok() 헬퍼
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field


# =========================================================
# 1) 에러 응답
# =========================================================

class ErrorDetail(BaseModel):
    code: str = Field(..., description="에러 식별 코드 (예: SEMESTER_NOT_FOUND, INVALID_GRADE)")
    message: str = Field(..., description="사람이 읽을 수 있는 에러 메시지")
    missing: Optional[List[str]] = Field(default=None, description="누락된 CSV 컬럼 (MISSING_COLUMN 에서만)")

    model_config = ConfigDict(extra="allow")


class ErrorResponse(BaseModel):
    error: ErrorDetail
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(extra="ignore")


# 상태 코드 -> 문서화용 에러 응답 (라우터 `responses=` 에 사용)
ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    404: {"model": ErrorResponse, "description": "참조한 데이터 없음"},
    422: {"model": ErrorResponse, "description": "잘못된 입력"},
}


# =========================================================
# 2) 성공 응답
# =========================================================

T = TypeVar("T")


class SuccessEnvelope(BaseModel, Generic[T]):
    success: bool = True
    data: T
    message: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """{"success": true, "data": ..., "message": ...} (모델은 camelCase 로 직렬화)"""
    body = {"success": True, "data": _plain(data)}
    if message:
        body["message"] = message
    return body
