from typing import Dict, List, Optional

from pydantic import Field, computed_field

from schemas.academic import CamelModel


# ✅ CSV 한 행에서 발견된 문제 하나
class RowError(CamelModel):
    row: int                                  # 1부터 시작하는 데이터 행 번호 (헤더 제외)
    field: str
    value: str = ""
    message: str


# ✅ 논리 필드 하나의 헤더 매칭 결과
class ColumnMatch(CamelModel):
    header: str
    index: int
    dialect: str


# ✅ 검증된 행 (GradeRecord 로 변환 가능)
class ImportedEntry(CamelModel):
    row: int
    course_code: str
    course_title: str
    units: float
    numerical_grade: Optional[float] = None
    letter_grade: Optional[str] = None
    grade_point: Optional[float] = None
    quality_points: Optional[float] = None
    notes: Optional[str] = None
    semester: str = ""                        # 소문자 + 공백 제거
    academic_year: str = ""                   # "YYYY" 로 들어오면 "YYYY-YYYY" 로 정규화
    year_level: Optional[int] = None
    group_key: str


class ImportResult(CamelModel):
    total_rows: int = 0
    entries: List[ImportedEntry] = Field(default_factory=list)
    errors: List[RowError] = Field(default_factory=list)
    columns: Dict[str, ColumnMatch] = Field(default_factory=dict)

    @computed_field(alias="importedRecords")  # type: ignore[misc]
    @property
    def imported_records(self) -> int:
        return len(self.entries)

    @computed_field(alias="skippedRecords")  # type: ignore[misc]
    @property
    def skipped_records(self) -> int:
        return len({e.row for e in self.errors})

    @computed_field  # type: ignore[misc]
    @property
    def groups(self) -> Dict[str, List[int]]:
        """학기 그룹 키 -> 데이터 행 번호 (처음 나온 순서)"""
        out: Dict[str, List[int]] = {}
        for entry in self.entries:
            out.setdefault(entry.group_key, []).append(entry.row)
        return out

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def grouped_entries(self) -> Dict[str, List[ImportedEntry]]:
        out: Dict[str, List[ImportedEntry]] = {}
        for entry in self.entries:
            out.setdefault(entry.group_key, []).append(entry)
        return out


# ✅ ImportResult 를 학적 그래프에 저장한 결과
class CommitSummary(CamelModel):
    imported: int = 0
    semester_ids: Dict[str, str] = Field(default_factory=dict)   # 그룹 키 -> 학기 id
    created_semesters: List[str] = Field(default_factory=list)
