"""
services/csv_import.py

CSV -> 검증 + 학기별로 묶인 성적 항목.

처리 순서: 원본 텍스트 -> 행 파싱 -> 행 검증 -> 학기별 그룹핑.
- 헤더 형식은 파일당 한 번 판별 (Title Case / camelCase / 레거시 표기).
- 행 단위 오류로 전체가 중단되지 않음; 모든 오류를 모아서 한 번에 보고.
  파일 단위 문제(읽기 불가, 필수 컬럼 누락)만 예외 발생.
- 여기서는 아무것도 저장하지 않음 (저장은 AcademicService.commit_import).
"""

import csv
import io
import logging
import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from config.settings import settings
from schemas.academic import normalize_academic_year
from schemas.csv_io import ColumnMatch, ImportedEntry, ImportResult, RowError
from services.errors import CSVFileError, MissingColumn
from services.grade_scale import classify
from services.qpi_calculator import quality_points

logger = logging.getLogger(__name__)


class Dialect(str, Enum):
    TITLE_CASE = "title_case"
    CAMEL_CASE = "camel_case"
    LEGACY = "legacy"


# 여러 표기가 함께 있을 때 헤더 판별 우선순위
DIALECT_ORDER = (Dialect.TITLE_CASE, Dialect.CAMEL_CASE, Dialect.LEGACY)


@dataclass(frozen=True)
class ColumnSpec:
    field: str
    required: bool
    spellings: Dict[Dialect, str]


COLUMN_SPECS: Tuple[ColumnSpec, ...] = (
    ColumnSpec("course_code", True, {Dialect.TITLE_CASE: "Course Code", Dialect.CAMEL_CASE: "courseCode", Dialect.LEGACY: "code"}),
    ColumnSpec("course_title", True, {Dialect.TITLE_CASE: "Course Title", Dialect.CAMEL_CASE: "courseTitle", Dialect.LEGACY: "title"}),
    ColumnSpec("units", True, {Dialect.TITLE_CASE: "Units", Dialect.CAMEL_CASE: "units", Dialect.LEGACY: "credits"}),
    ColumnSpec("numerical_grade", True, {Dialect.TITLE_CASE: "Numerical Grade", Dialect.CAMEL_CASE: "numericalGrade", Dialect.LEGACY: "grade"}),
    ColumnSpec("notes", False, {Dialect.TITLE_CASE: "Notes", Dialect.CAMEL_CASE: "notes", Dialect.LEGACY: "remarks"}),
    ColumnSpec("semester", False, {Dialect.TITLE_CASE: "Semester", Dialect.CAMEL_CASE: "semester", Dialect.LEGACY: "term"}),
    ColumnSpec("academic_year", False, {Dialect.TITLE_CASE: "Academic Year", Dialect.CAMEL_CASE: "academicYear", Dialect.LEGACY: "schoolYear"}),
    ColumnSpec("year_level", False, {Dialect.TITLE_CASE: "Year Level", Dialect.CAMEL_CASE: "yearLevel", Dialect.LEGACY: "level"}),
)

COURSE_CODE_LENGTH = (3, 20)
COURSE_TITLE_LENGTH = (1, 200)
MAX_UNITS = 6
YEAR_LEVEL_RANGE = (1, 5)

TEMPLATE_CSV = (
    "Course Code,Course Title,Units,Numerical Grade,Semester,Academic Year\n"
    "CS-101,Introduction to Computer Science,3,95,First Semester,2023-2024\n"
    "MATH-101,College Algebra,3,88,First Semester,2023-2024\n"
    "ENG-101,English Composition,3,92,First Semester,2023-2024\n"
)

ParsedRow = Tuple[int, List[str]]


# ==========================================================
# [1] 파싱
# ==========================================================

def parse_csv(text: str, delimiter: Optional[str] = None) -> Tuple[List[str], List[ParsedRow]]:
    """원본 텍스트 -> (헤더, [(행 번호, 값 목록), ...]); 빈 줄은 건너뜀"""
    delimiter = delimiter or settings.CSV_DELIMITER
    text = (text or "").lstrip("\ufeff")
    if not text.strip():
        return [], []

    try:
        records = list(csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, quotechar='"'))
    except csv.Error as e:
        raise CSVFileError(f"Malformed CSV: {e}") from e

    records = [[value.strip() for value in record] for record in records]
    records = [record for record in records if any(record)]
    if not records:
        return [], []

    header, data = records[0], records[1:]
    return header, [(number, values) for number, values in enumerate(data, start=1)]


# ==========================================================
# [2] 헤더 형식 판별
# ==========================================================

def resolve_columns(header: List[str]) -> Dict[str, ColumnMatch]:
    """논리 필드 -> 컬럼 위치 매핑; 필수 컬럼이 없으면 MissingColumn"""
    positions = {}
    for index, name in enumerate(header):
        positions.setdefault(name, index)

    columns: Dict[str, ColumnMatch] = {}
    missing: List[str] = []
    for spec in COLUMN_SPECS:
        for dialect in DIALECT_ORDER:
            name = spec.spellings[dialect]
            if name in positions:
                columns[spec.field] = ColumnMatch(header=name, index=positions[name], dialect=dialect.value)
                break
        else:
            if spec.required:
                missing.append(spec.field)

    if missing:
        first = next(s for s in COLUMN_SPECS if s.field == missing[0])
        raise MissingColumn(missing[0], missing=missing, accepted=[first.spellings[d] for d in DIALECT_ORDER])
    return columns


# ==========================================================
# [3] 행 검증
# ==========================================================

def _number(text: str) -> Optional[float]:
    try:
        value = float(text)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _cell(values: List[str], columns: Dict[str, ColumnMatch], field: str) -> str:
    match = columns.get(field)
    if match is None or match.index >= len(values):
        return ""
    return values[match.index]


def normalize_semester(text: str) -> str:
    return (text or "").strip().lower()


def resolve_semester_type(text: str) -> str:
    """자유 입력 학기 ("2nd", "Second Semester", "summer") -> first / second / summer"""
    value = normalize_semester(text)
    head = value.split()[0] if value else ""     # "2nd sem" -> "2nd"
    if "second" in value or head in ("2nd", "2"):
        return "second"
    if "summer" in value or head in ("sum", "3"):
        return "summer"
    return "first"


def group_key(academic_year: str, semester: str) -> str:
    return f"{academic_year}-{semester}"


def validate_row(
    row: int, values: List[str], columns: Dict[str, ColumnMatch]
) -> Tuple[Optional[ImportedEntry], List[RowError]]:
    errors: List[RowError] = []

    def fail(field: str, value: str, message: str) -> None:
        errors.append(RowError(row=row, field=field, value=value, message=f"Row {row}: {message}"))

    course_code = _cell(values, columns, "course_code")
    if not COURSE_CODE_LENGTH[0] <= len(course_code) <= COURSE_CODE_LENGTH[1]:
        fail("course_code", course_code, f'Invalid course code "{course_code}". Must be 3-20 characters.')

    course_title = _cell(values, columns, "course_title")
    if not COURSE_TITLE_LENGTH[0] <= len(course_title) <= COURSE_TITLE_LENGTH[1]:
        fail("course_title", course_title, f'Invalid course title "{course_title}". Must be 1-200 characters.')

    units_text = _cell(values, columns, "units")
    units = _number(units_text)
    if units is None or not 0 < units <= MAX_UNITS:
        fail("units", units_text, f'Invalid units value "{units_text}". Must be greater than 0 and at most 6.')

    grade_text = _cell(values, columns, "numerical_grade")
    grade = None
    if grade_text:
        grade = _number(grade_text)
        if grade is None or not 0 <= grade <= 100:
            fail("numerical_grade", grade_text, f'Invalid numerical grade value "{grade_text}". Must be between 0 and 100.')

    year_level_text = _cell(values, columns, "year_level")
    year_level = None
    if year_level_text:
        parsed = _number(year_level_text)
        if parsed is None or not parsed.is_integer() or not YEAR_LEVEL_RANGE[0] <= parsed <= YEAR_LEVEL_RANGE[1]:
            fail("year_level", year_level_text, f'Invalid year level "{year_level_text}". Must be between 1 and 5.')
        else:
            year_level = int(parsed)

    if errors:
        return None, errors

    # [4] 학기별 그룹핑
    academic_year = normalize_academic_year(_cell(values, columns, "academic_year"))
    semester = normalize_semester(_cell(values, columns, "semester"))
    notes = _cell(values, columns, "notes") or None

    letter_grade = grade_point = points = None
    if grade is not None:
        band = classify(grade)
        letter_grade, grade_point = band.letter, band.grade_point
        points = quality_points(units, grade_point)

    entry = ImportedEntry(
        row=row,
        course_code=course_code,
        course_title=course_title,
        units=units,
        numerical_grade=grade,
        letter_grade=letter_grade,
        grade_point=grade_point,
        quality_points=points,
        notes=notes,
        semester=semester,
        academic_year=academic_year,
        year_level=year_level,
        group_key=group_key(academic_year, semester),
    )
    return entry, []


# ==========================================================
# [5] 전체 처리
# ==========================================================

def import_csv(text: str, delimiter: Optional[str] = None) -> ImportResult:
    header, rows = parse_csv(text, delimiter)
    if not header:
        return ImportResult()

    columns = resolve_columns(header)
    result = ImportResult(total_rows=len(rows), columns=columns)
    for number, values in rows:
        entry, errors = validate_row(number, values, columns)
        if entry is not None:
            result.entries.append(entry)
        result.errors.extend(errors)

    logger.info(
        "CSV parsed: %d rows, %d valid, %d errors, %d semester groups",
        result.total_rows, len(result.entries), len(result.errors), len(result.groups),
    )
    return result


def decode_csv_bytes(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise CSVFileError(f"CSV file is not valid UTF-8: {e}") from e


def import_csv_file(path: Union[str, Path], delimiter: Optional[str] = None) -> ImportResult:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise CSVFileError(f"Cannot read CSV file '{path}': {e}") from e
    return import_csv(decode_csv_bytes(data), delimiter)


def template_csv() -> str:
    return TEMPLATE_CSV
