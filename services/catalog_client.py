"""
services/catalog_client.py

원격 과목/템플릿 카탈로그 HTTP 클라이언트.
과목과 템플릿은 카탈로그 쪽 소유이며, 여기서는 응답을 읽고
카탈로그 에러 코드를 로컬 에러 체계로 매핑만 함.
"""

import logging
from typing import Dict, List, Optional, Type
from urllib.parse import quote

import httpx

from config.settings import settings
from schemas.catalog import Course, CourseCreate, CoursePage, Template, TemplateCreate, TemplateSemesterInput
from services.errors import (
    CatalogUnavailable,
    CourseInUse,
    CourseNotFound,
    DuplicateCourseCode,
    DuplicateTemplateName,
    EmptyTemplate,
    ExternalDependencyError,
    InvalidCourseCode,
    InvalidSemesterStructure,
    InvalidTemplateName,
    InvalidTitle,
    InvalidUnits,
    ServiceError,
    TemplateNotFound,
)

logger = logging.getLogger(__name__)

ERROR_CODES: Dict[str, Type[ServiceError]] = {
    "DUPLICATE_COURSE_CODE": DuplicateCourseCode,
    "INVALID_COURSE_CODE": InvalidCourseCode,
    "INVALID_TITLE": InvalidTitle,
    "INVALID_UNITS": InvalidUnits,
    "DUPLICATE_TEMPLATE_NAME": DuplicateTemplateName,
    "INVALID_TEMPLATE_NAME": InvalidTemplateName,
    "EMPTY_TEMPLATE": EmptyTemplate,
    "INVALID_SEMESTER_STRUCTURE": InvalidSemesterStructure,
    "COURSE_IN_USE": CourseInUse,
    "COURSE_NOT_FOUND": CourseNotFound,
    "TEMPLATE_NOT_FOUND": TemplateNotFound,
}


def _error_from(response: httpx.Response) -> ServiceError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, str):
        error = {"code": error}
    error = error or {}

    # "COURSE_NOT_FOUND: CS-101" 처럼 코드 뒤에 대상이 붙어서 옴
    raw_code = str(error.get("code") or "")
    code, _, subject = raw_code.partition(":")
    code = code.strip()
    message = error.get("message") or subject.strip() or code or f"Catalog returned HTTP {response.status_code}"

    exc_class = ERROR_CODES.get(code)
    if exc_class is not None:
        return exc_class(message)
    return ExternalDependencyError(f"Catalog error ({response.status_code}): {message}")


class CatalogClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base = (base_url or settings.CATALOG_API_BASE_URL or "").rstrip("/")
        token = token if token is not None else settings.CATALOG_API_TOKEN
        self.headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.timeout = timeout or settings.CATALOG_TIMEOUT
        self._client = httpx.Client(
            base_url=self.base, headers=self.headers, timeout=self.timeout, transport=transport
        )

    @property
    def enabled(self) -> bool:
        return bool(self.base)

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if not self.enabled:
            raise CatalogUnavailable("Catalog API is not configured (CATALOG_API_BASE_URL)")
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Catalog request %s %s failed: %s", method, path, e)
            raise CatalogUnavailable(f"Catalog API unreachable: {e}") from e

        if response.status_code >= 500:
            logger.warning("Catalog %s %s returned %d", method, path, response.status_code)
            raise CatalogUnavailable(f"Catalog API returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise _error_from(response)
        return response

    # ==========================================================
    # 과목
    # ==========================================================

    def find_course_by_code(self, code: str) -> Optional[Course]:
        try:
            response = self._request("GET", f"/courses/by-code/{quote(code, safe='')}")
        except CourseNotFound:
            return None
        body = response.json()
        if body is None:
            return None
        return Course.model_validate(body.get("data", body) if isinstance(body, dict) else body)

    def list_courses(self, search: Optional[str] = None, limit: int = 50, cursor: Optional[str] = None) -> CoursePage:
        params = {"limit": limit}
        if search:
            params["search"] = search
        if cursor:
            params["cursor"] = cursor
        body = self._request("GET", "/courses", params=params).json()
        return CoursePage.model_validate(body.get("data", body))

    def create_course(self, code: str, title: str, units: float) -> Course:
        payload = CourseCreate(course_code=code, title=title, units=units).to_document()
        body = self._request("POST", "/courses", json=payload).json()
        course = Course.model_validate(body.get("data", body))
        logger.info("Created catalog course %s", course.course_code)
        return course

    # ==========================================================
    # 템플릿
    # ==========================================================

    def get_template_by_id(self, template_id: str) -> Template:
        body = self._request("GET", f"/templates/{template_id}").json()
        return Template.model_validate(body.get("data", body))

    def create_template(
        self, name: str, description: Optional[str], semesters: List[TemplateSemesterInput]
    ) -> Template:
        payload = TemplateCreate(name=name, description=description, semesters=semesters).to_document()
        body = self._request("POST", "/templates", json=payload).json()
        template = Template.model_validate(body.get("data", body))
        logger.info("Created catalog template %r", template.name)
        return template
