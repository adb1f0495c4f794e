"""
services/csv_export.py

학적 그래프 -> 구분자 텍스트 (csv_import 의 역방향).
- 프로필: FULL (저장 필드 + 파생 필드) / REIMPORT (가져오기에 필요한 필드만)
- 레이아웃: flat (표 하나, 요약 블록 선택) / sectioned (학기별 표, FULL 프로필 전용)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from config.settings import settings
from schemas.academic import SEMESTER_ORDER, AcademicGraph, GradeRecord, SemesterRecord
from services.qpi_calculator import round_qpi
from services.errors import UnsupportedExportFormat


class ExportProfile(str, Enum):
    FULL = "full"
    REIMPORT = "reimport"


class ExportLayout(str, Enum):
    FLAT = "flat"
    SECTIONED = "sectioned"


FULL_HEADERS = [
    "Course Code",
    "Course Title",
    "Units",
    "Numerical Grade",
    "Letter Grade",
    "Grade Point",
    "Quality Points",
    "Semester",
    "Academic Year",
    "Year Level",
    "Notes",
]

# 가져오기가 인식하는 Title Case 헤더; 파생 값(등급/평점/QP)은 제외
REIMPORT_HEADERS = [
    "Course Code",
    "Course Title",
    "Units",
    "Numerical Grade",
    "Notes",
    "Semester",
    "Academic Year",
    "Year Level",
]

LINE_BREAK = "\n"
UTF8_BOM = "\ufeff"


def headers_for(profile: ExportProfile) -> List[str]:
    return list(REIMPORT_HEADERS if profile == ExportProfile.REIMPORT else FULL_HEADERS)


def format_value(value, delimiter: str = ",") -> str:
    """구분자, 따옴표, 줄바꿈이 있을 때만 따옴표로 감쌈"""
    if value is None:
        return ""
    if isinstance(value, bool):
        text = "Yes" if value else "No"
    elif isinstance(value, float):
        text = str(int(value)) if value.is_integer() else repr(value)
    else:
        text = str(value)

    if delimiter in text or '"' in text or "\n" in text or "\r" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def _row(grade: GradeRecord, semester: Optional[SemesterRecord], profile: ExportProfile) -> list:
    semester_type = semester.semester_type if semester else None
    academic_year = semester.academic_year if semester else None
    year_level = semester.year_level if semester else None

    if profile == ExportProfile.REIMPORT:
        return [
            grade.course_code,
            grade.course_title,
            grade.units,
            grade.numerical_grade,
            grade.notes,
            semester_type,
            academic_year,
            year_level,
        ]
    return [
        grade.course_code,
        grade.course_title,
        grade.units,
        grade.numerical_grade,
        grade.letter_grade,
        grade.grade_point,
        grade.quality_points,
        semester_type,
        academic_year,
        year_level,
        grade.notes,
    ]


def _join(values: Iterable, delimiter: str) -> str:
    return delimiter.join(format_value(v, delimiter) for v in values)


def _table(
    rows: Sequence[tuple], profile: ExportProfile, include_headers: bool, delimiter: str
) -> List[str]:
    lines = [_join(headers_for(profile), delimiter)] if include_headers else []
    lines.extend(_join(_row(grade, semester, profile), delimiter) for grade, semester in rows)
    return lines


def _owned_semesters(graph: AcademicGraph, semester_ids: Optional[Sequence[str]]) -> List[SemesterRecord]:
    if semester_ids is not None:
        wanted = set(semester_ids)
        return [s for s in graph.semesters if s.id in wanted]
    if graph.academic_record is not None:
        owned = set(graph.academic_record.semesters)
        return [s for s in graph.semesters if s.id in owned]
    return list(graph.semesters)


def _summary_lines(graph: AcademicGraph) -> List[str]:
    record = graph.academic_record
    if record is None:
        return []
    cumulative = round_qpi(record.cumulative_qpi)
    return [
        "",
        "=== ACADEMIC SUMMARY ===",
        f"Total Units: {format_value(record.total_units or 0.0)}",
        f"Cumulative QPI: {f'{cumulative:.2f}' if cumulative is not None else 'N/A'}",
        f"Total Years: {record.configuration.total_years}",
        f"Includes Summer: {'Yes' if record.configuration.includes_summer else 'No'}",
    ]


# ==========================================================
# [1] flat 레이아웃
# ==========================================================

def export_flat(
    graph: AcademicGraph,
    profile: ExportProfile = ExportProfile.FULL,
    include_headers: bool = True,
    include_summary: bool = False,
    semester_ids: Optional[Sequence[str]] = None,
    delimiter: Optional[str] = None,
) -> str:
    delimiter = delimiter or settings.CSV_DELIMITER
    rows = [
        (grade, semester)
        for semester in _owned_semesters(graph, semester_ids)
        for grade in graph.ordered_grades_for(semester)
    ]
    lines = _table(rows, profile, include_headers, delimiter)

    # 요약 블록은 재가져오기를 깨뜨리므로 FULL 프로필에서만 출력
    if include_summary and profile == ExportProfile.FULL:
        lines.extend(_summary_lines(graph))
    return LINE_BREAK.join(lines)


# ==========================================================
# [2] sectioned 레이아웃 (학기별 표)
# ==========================================================

def sort_semesters(semesters: Iterable[SemesterRecord]) -> List[SemesterRecord]:
    return sorted(semesters, key=lambda s: (s.year_level, SEMESTER_ORDER[s.semester_type]))


def export_sectioned(
    graph: AcademicGraph,
    profile: ExportProfile = ExportProfile.FULL,
    include_headers: bool = True,
    semester_ids: Optional[Sequence[str]] = None,
    delimiter: Optional[str] = None,
) -> str:
    if profile == ExportProfile.REIMPORT:
        raise UnsupportedExportFormat("The reimport profile is only available with the flat layout")
    delimiter = delimiter or settings.CSV_DELIMITER
    sections: List[str] = []
    for semester in sort_semesters(_owned_semesters(graph, semester_ids)):
        grades = graph.ordered_grades_for(semester)
        if not grades:
            continue
        lines = [f"=== {semester.label} ==="]
        lines.extend(_table([(g, semester) for g in grades], profile, include_headers, delimiter))
        sections.append(LINE_BREAK.join(lines))
    return (LINE_BREAK * 2).join(sections)


def export_csv(
    graph: AcademicGraph,
    profile: ExportProfile = ExportProfile.FULL,
    layout: ExportLayout = ExportLayout.FLAT,
    include_summary: bool = False,
    semester_ids: Optional[Sequence[str]] = None,
    delimiter: Optional[str] = None,
) -> str:
    if layout == ExportLayout.SECTIONED:
        return export_sectioned(graph, profile, semester_ids=semester_ids, delimiter=delimiter)
    return export_flat(graph, profile, include_summary=include_summary, semester_ids=semester_ids, delimiter=delimiter)


# ==========================================================
# [3] 부가 기능
# ==========================================================

def export_semester_summary(semester: SemesterRecord, grades: Sequence[GradeRecord]) -> str:
    """학기 요약 시트: 상단 정보 블록 + 채점된 과목 표"""
    qpi = round_qpi(semester.semester_qpi)
    lines = [
        f"Semester,{semester.semester_type}",
        f"Academic Year,{format_value(semester.academic_year or 'N/A')}",
        f"Year Level,{semester.year_level}",
        f"Total Units,{format_value(semester.total_units or 0.0)}",
        f"QPI,{f'{qpi:.2f}' if qpi is not None else 'N/A'}",
        "",
    ]
    if grades:
        lines.append("Course Code,Course Title,Units,Grade,Grade Point,Quality Points")
        for grade in grades:
            lines.append(
                _join(
                    [grade.course_code, grade.course_title, grade.units,
                     grade.letter_grade, grade.grade_point, grade.quality_points],
                    ",",
                )
            )
    return LINE_BREAK.join(lines)


def generate_filename(base_name: str = "grades", extension: str = "csv", now: Optional[datetime] = None) -> str:
    """grades_2024-05-01_13-45-00.csv"""
    moment = now or datetime.now(timezone.utc)
    return f"{base_name}_{moment.strftime('%Y-%m-%d_%H-%M-%S')}.{extension}"


def with_bom(content: str) -> str:
    """스프레드시트 앱이 인코딩을 인식하도록 UTF-8 BOM 추가"""
    return content if content.startswith(UTF8_BOM) else UTF8_BOM + content
