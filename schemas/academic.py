"""
schemas/academic.py

- 학적 객체 그래프: GradeRecord -> SemesterRecord -> AcademicRecord
- Pydantic v2 기준; 속성은 snake_case, 저장/내보내기 JSON 은 camelCase
  (courseCode, semesterQPI, yearlyQPIs ...) 라서 저장 문서와 백업 형식이
  버전이 바뀌어도 동일하게 유지됨.
- 시각 값은 epoch 밀리초.
"""

from __future__ import annotations

import re
import time
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SemesterType = Literal["first", "second", "summer"]

# 한 학년도 안에서 학기 구분의 표시 / 내보내기 순서
SEMESTER_ORDER: Dict[str, int] = {"first": 1, "second": 2, "summer": 3}

MAIN_RECORD_ID = "main"

_BARE_YEAR = re.compile(r"^\d{4}$")
_YEAR_RANGE = re.compile(r"^\d{4}-\d{4}$")


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_academic_year(value: Optional[str]) -> str:
    """"2021" -> "2020-2021"; 그 외 값은 공백만 제거"""
    text = (value or "").strip()
    if _BARE_YEAR.match(text):
        year = int(text)
        return f"{year - 1}-{year}"
    return text


def _strip_text(v):
    return v.strip() if isinstance(v, str) else v


def _blank_to_none(v):
    # 메모는 앞뒤 공백 없이 저장, 빈 값은 메모 없음(None)
    if isinstance(v, str):
        return v.strip() or None
    return v


def _camel(name: str) -> str:
    # semester_qpi -> semesterQPI, yearly_qpis -> yearlyQPIs
    return to_camel(name).replace("Qpi", "QPI")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True, extra="ignore")

    def to_document(self) -> dict:
        """camelCase 키를 가진 JSON 용 dict"""
        return self.model_dump(mode="json", by_alias=True)


# =========================================================
# 1) 저장 기록
# =========================================================

class GradeRecord(CamelModel):
    id: str
    course_id: str
    course_code: str                                      # 추가 시점의 과목 코드 스냅샷
    course_title: str
    units: float = Field(..., gt=0, le=6)
    numerical_grade: Optional[float] = Field(default=None, ge=0, le=100)
    letter_grade: Optional[str] = None                    # numerical_grade 에서 계산
    grade_point: Optional[float] = None                   # 계산 값
    quality_points: Optional[float] = None                # units * grade_point
    semester_id: str
    notes: Optional[str] = None
    created_at: int
    updated_at: int

    @field_validator("course_code", "course_title", mode="before")
    @classmethod
    def _strip(cls, v):
        return _strip_text(v)

    @field_validator("notes", mode="before")
    @classmethod
    def _blank_notes(cls, v):
        return _blank_to_none(v)

    @property
    def is_graded(self) -> bool:
        return self.quality_points is not None


class SemesterRecord(CamelModel):
    id: str
    year_level: int = Field(..., ge=1, le=6)
    semester_type: SemesterType
    academic_year: str = ""
    grades: List[str] = Field(default_factory=list)      # GradeRecord id 목록 (표시 순서)
    total_units: Optional[float] = None
    total_quality_points: Optional[float] = None
    semester_qpi: Optional[float] = None
    is_completed: bool = False
    created_at: int
    updated_at: int

    @field_validator("academic_year", mode="before")
    @classmethod
    def _normalize_year(cls, v):
        return normalize_academic_year(v)

    @property
    def label(self) -> str:
        return f"{self.academic_year} - {self.semester_type.capitalize()} Semester"


class YearlyQPI(CamelModel):
    academic_year: str
    first_sem_qpi: Optional[float] = None
    second_sem_qpi: Optional[float] = None
    summer_qpi: Optional[float] = None
    yearly_qpi: Optional[float] = None                    # 학기 QPI 단순 평균


class AcademicConfiguration(CamelModel):
    total_years: int = Field(4, ge=1, le=6)
    includes_summer: bool = True


class AcademicRecord(CamelModel):
    id: str = MAIN_RECORD_ID
    semesters: List[str] = Field(default_factory=list)
    total_units: Optional[float] = None
    total_quality_points: Optional[float] = None
    cumulative_qpi: Optional[float] = None                # 전체 성적 학점 가중
    yearly_qpis: List[YearlyQPI] = Field(default_factory=list)
    configuration: AcademicConfiguration = Field(default_factory=AcademicConfiguration)
    last_calculated: int = 0
    version: int = 1
    created_at: int
    updated_at: int


class AcademicGraph(CamelModel):
    """세 컬렉션의 스냅샷 (집계 엔진의 처리 단위)"""

    grades: List[GradeRecord] = Field(default_factory=list)
    semesters: List[SemesterRecord] = Field(default_factory=list)
    academic_record: Optional[AcademicRecord] = None

    def find_grade(self, grade_id: str) -> Optional[GradeRecord]:
        return next((g for g in self.grades if g.id == grade_id), None)

    def find_semester(self, semester_id: str) -> Optional[SemesterRecord]:
        return next((s for s in self.semesters if s.id == semester_id), None)

    def grades_for(self, semester_id: str) -> List[GradeRecord]:
        return [g for g in self.grades if g.semester_id == semester_id]

    def ordered_grades_for(self, semester: SemesterRecord) -> List[GradeRecord]:
        """학기의 성적을 학기 표시 순서대로"""
        by_id = {g.id: g for g in self.grades_for(semester.id)}
        ordered = [by_id.pop(gid) for gid in semester.grades if gid in by_id]
        return ordered + list(by_id.values())


# =========================================================
# 2) 변경 요청 스키마
# =========================================================

class GradeCreate(CamelModel):
    semester_id: str
    course_id: Optional[str] = None
    course_code: str = Field(..., min_length=3, max_length=20)
    course_title: str = Field(..., min_length=1, max_length=200)
    units: float = Field(..., gt=0, le=6)
    numerical_grade: Optional[float] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None

    @field_validator("course_code", "course_title", mode="before")
    @classmethod
    def _strip(cls, v):
        return _strip_text(v)

    @field_validator("notes", mode="before")
    @classmethod
    def _blank_notes(cls, v):
        return _blank_to_none(v)


class GradeUpdate(CamelModel):
    """부분 수정; 명시한 필드만 반영 (점수를 null 로 보내면 성적 삭제)"""

    course_code: Optional[str] = Field(default=None, min_length=3, max_length=20)
    course_title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    units: Optional[float] = Field(default=None, gt=0, le=6)
    numerical_grade: Optional[float] = Field(default=None, ge=0, le=100)
    grade_entry: Optional[str] = None                     # 자유 입력: "95", "INC"
    notes: Optional[str] = None

    @field_validator("course_code", "course_title", mode="before")
    @classmethod
    def _strip(cls, v):
        return _strip_text(v)

    @field_validator("notes", mode="before")
    @classmethod
    def _blank_notes(cls, v):
        return _blank_to_none(v)


class SemesterCreate(CamelModel):
    year_level: int = Field(..., ge=1, le=6)
    semester_type: SemesterType
    academic_year: str = ""
    is_completed: bool = False

    @field_validator("academic_year", mode="before")
    @classmethod
    def _canonical_year(cls, v):
        text = normalize_academic_year(v)
        if text and not _YEAR_RANGE.match(text):
            raise ValueError('academic year must look like "YYYY-YYYY"')
        return text


class SemesterUpdate(CamelModel):
    year_level: Optional[int] = Field(default=None, ge=1, le=6)
    semester_type: Optional[SemesterType] = None
    academic_year: Optional[str] = None
    is_completed: Optional[bool] = None

    @field_validator("academic_year", mode="before")
    @classmethod
    def _canonical_year(cls, v):
        if v is None:
            return v
        text = normalize_academic_year(v)
        if text and not _YEAR_RANGE.match(text):
            raise ValueError('academic year must look like "YYYY-YYYY"')
        return text
