"""
services/errors.py

서비스 계층 에러 체계.
- ValidationError: 잘못된 입력 (입력 수정으로 해결 가능)
- ConflictError:   카탈로그가 보고한 중복 / 사용 중 충돌
- NotFoundError:   찾을 수 없는 참조
- StorageError:    로컬 저장 실패
모든 에러는 JSON 에러 응답에 쓰이는 고정 `code` 를 가짐.
"""

from typing import Any, List, Optional


class ServiceError(Exception):
    """서비스 계층 에러 베이스 클래스"""

    code = "SERVICE_ERROR"
    status_code = 400

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


# =========================================================
# 입력 검증
# =========================================================

class ValidationError(ServiceError):
    """입력 값이 잘못된 경우"""

    code = "VALIDATION_ERROR"
    status_code = 422


class InvalidGrade(ValidationError):
    code = "INVALID_GRADE"

    def __init__(self, value: Any):
        super().__init__(f"Invalid numerical grade: {value}. Must be between 0 and 100.")
        self.value = value


class InvalidLetterGrade(ValidationError):
    code = "INVALID_LETTER_GRADE"

    def __init__(self, value: Any, valid: Optional[List[str]] = None):
        hint = f" Valid grades are: {', '.join(valid)}" if valid else ""
        super().__init__(f"Invalid letter grade: {value}.{hint}")
        self.value = value


class InvalidCourseCode(ValidationError):
    code = "INVALID_COURSE_CODE"


class InvalidTitle(ValidationError):
    code = "INVALID_TITLE"


class InvalidUnits(ValidationError):
    code = "INVALID_UNITS"


class InvalidTemplateName(ValidationError):
    code = "INVALID_TEMPLATE_NAME"


class InvalidSemesterStructure(ValidationError):
    code = "INVALID_SEMESTER_STRUCTURE"


class EmptyTemplate(ValidationError):
    code = "EMPTY_TEMPLATE"


class MissingColumn(ValidationError):
    code = "MISSING_COLUMN"

    def __init__(self, field: str, missing: Optional[List[str]] = None, accepted: Optional[List[str]] = None):
        self.field = field
        self.missing = missing or [field]
        spellings = f" (accepted headers: {', '.join(accepted)})" if accepted else ""
        super().__init__(f"Missing required column: {field}{spellings}")


class CSVFileError(ValidationError):
    """CSV 파일을 읽거나 디코딩할 수 없음"""

    code = "CSV_FILE_ERROR"
    status_code = 400


class UnsupportedExportFormat(ValidationError):
    """sectioned 레이아웃은 열람용; 재가져오기는 flat 레이아웃만 가능"""

    code = "UNSUPPORTED_EXPORT_FORMAT"


class InvalidSnapshot(ValidationError):
    """전체 백업 스냅샷 형식이 올바르지 않음"""

    code = "INVALID_SNAPSHOT"
    status_code = 400


# =========================================================
# 충돌 (원격 카탈로그에서 발생, 그대로 전달)
# =========================================================

class ConflictError(ServiceError):
    code = "CONFLICT"
    status_code = 409


class DuplicateCourseCode(ConflictError):
    code = "DUPLICATE_COURSE_CODE"


class DuplicateTemplateName(ConflictError):
    code = "DUPLICATE_TEMPLATE_NAME"


class CourseInUse(ConflictError):
    code = "COURSE_IN_USE"


# =========================================================
# 참조 무결성 (찾을 수 없는 참조)
# =========================================================

class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    status_code = 404


class CourseNotFound(NotFoundError):
    code = "COURSE_NOT_FOUND"


class TemplateNotFound(NotFoundError):
    code = "TEMPLATE_NOT_FOUND"


class SemesterNotFound(NotFoundError):
    code = "SEMESTER_NOT_FOUND"

    def __init__(self, semester_id: str):
        super().__init__(f"Semester not found: {semester_id}")
        self.semester_id = semester_id


class GradeNotFound(NotFoundError):
    code = "GRADE_NOT_FOUND"

    def __init__(self, grade_id: str):
        super().__init__(f"Grade record not found: {grade_id}")
        self.grade_id = grade_id


# =========================================================
# 저장소 / 외부 의존성
# =========================================================

class StorageError(ServiceError):
    code = "STORAGE_ERROR"
    status_code = 500


class StorageQuotaExceeded(StorageError):
    code = "STORAGE_QUOTA_EXCEEDED"
    status_code = 507

    def __init__(self, required_bytes: int, quota_bytes: int):
        super().__init__(
            f"Local storage quota exceeded ({required_bytes} of {quota_bytes} bytes). "
            "Please clear some data."
        )
        self.required_bytes = required_bytes
        self.quota_bytes = quota_bytes


class ExternalDependencyError(ServiceError):
    """외부 의존성(카탈로그 HTTP API) 호출 실패"""

    code = "EXTERNAL_DEPENDENCY_ERROR"
    status_code = 502


class CatalogUnavailable(ExternalDependencyError):
    code = "CATALOG_UNAVAILABLE"
    status_code = 503
