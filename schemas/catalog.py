from typing import List, Optional

from pydantic import AliasChoices, Field

from schemas.academic import CamelModel, SemesterType


# ✅ 원격 카탈로그 응답 형식 (엔티티 소유는 카탈로그 서비스)
class Course(CamelModel):
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    course_code: str                                  # 고유 과목 코드
    title: str
    units: float
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


class CoursePage(CamelModel):
    courses: List[Course] = Field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = Field(default=None, validation_alias=AliasChoices("nextCursor", "cursor", "next_cursor"))


class CourseCreate(CamelModel):
    course_code: str
    title: str
    units: float


class TemplateSemester(CamelModel):
    year_level: int = Field(..., ge=1, le=6)
    semester_type: SemesterType
    courses: List[Course] = Field(default_factory=list)


class Template(CamelModel):
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    name: str
    description: Optional[str] = None
    semesters: List[TemplateSemester] = Field(default_factory=list)

    @property
    def total_courses(self) -> int:
        return sum(len(s.courses) for s in self.semesters)


# ✅ 템플릿 생성 요청 (과목은 id 로 참조)
class TemplateSemesterInput(CamelModel):
    year_level: int = Field(..., ge=1, le=6)
    semester_type: SemesterType
    course_ids: List[str] = Field(default_factory=list)


class TemplateCreate(CamelModel):
    name: str
    description: Optional[str] = None
    semesters: List[TemplateSemesterInput] = Field(default_factory=list)


class TemplateApply(CamelModel):
    academic_year: Optional[str] = None               # 기본값: 올해 학년도
