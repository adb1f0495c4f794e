"""
services/academic_service.py

학적 기록 그래프의 변경(mutation) 계층.

모든 변경 작업은 같은 순서를 따름:
  현재 그래프 복사 -> 변경 적용 -> 재계산 -> 저장 -> 교체
검증 실패나 저장 실패 시 메모리와 저장소 모두 이전 상태 그대로 유지됨.
복사부터 교체까지 하나의 락을 잡음 (FastAPI 동기 엔드포인트는 스레드풀에서
같은 캐시된 서비스를 공유).
"""

import functools
import logging
import threading
import uuid
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from schemas.academic import (
    AcademicConfiguration,
    AcademicGraph,
    AcademicRecord,
    GradeCreate,
    GradeRecord,
    GradeUpdate,
    SemesterCreate,
    SemesterRecord,
    SemesterUpdate,
    YearlyQPI,
    normalize_academic_year,
    now_ms,
)
from schemas.catalog import Course, Template
from schemas.csv_io import CommitSummary, ImportResult
from services.aggregation import recalculate
from services.csv_import import resolve_semester_type
from services.errors import EmptyTemplate, GradeNotFound, InvalidGrade, SemesterNotFound
from services.grade_scale import INCOMPLETE, classify, parse_grade_entry
from services.qpi_calculator import quality_points, yearly_average
from services.storage import AcademicStorage

logger = logging.getLogger(__name__)

# 과목 코드 -> 카탈로그 과목 (없으면 None); CSV 행을 카탈로그 id 와 연결할 때 사용
CourseResolver = Callable[[str], Optional[Course]]


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


def current_academic_year(today: Optional[date] = None) -> str:
    """올해 시작하는 학년도: 2024 -> "2024-2025" """
    year = (today or date.today()).year
    return f"{year}-{year + 1}"


def derive_grade_fields(units: float, numerical_grade: Optional[float]) -> dict:
    """점수 -> 등급 / 평점 / QP (미채점이면 모두 None)"""
    if numerical_grade is None:
        return {"letter_grade": None, "grade_point": None, "quality_points": None}
    band = classify(numerical_grade)
    return {
        "letter_grade": band.letter,
        "grade_point": band.grade_point,
        "quality_points": quality_points(units, band.grade_point),
    }


def _set_derived(grade: GradeRecord, units: float, numerical_grade: Optional[float]) -> None:
    for field, value in derive_grade_fields(units, numerical_grade).items():
        setattr(grade, field, value)


def _serialized(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class AcademicService:
    def __init__(self, storage: AcademicStorage):
        self.storage = storage
        self.graph = AcademicGraph()
        self._lock = threading.RLock()

    # ==========================================================
    # [0] 커밋 경로
    # ==========================================================

    def _draft(self) -> AcademicGraph:
        return self.graph.model_copy(deep=True)

    def _ensure_record(self, draft: AcademicGraph, stamp: int) -> AcademicRecord:
        if draft.academic_record is None:
            draft.academic_record = AcademicRecord(
                configuration=AcademicConfiguration(total_years=4, includes_summer=True),
                created_at=stamp,
                updated_at=stamp,
            )
        return draft.academic_record

    def _commit(self, draft: AcademicGraph) -> AcademicGraph:
        updated = recalculate(draft)
        self.storage.save_graph(updated)
        self.graph = updated
        return updated

    @staticmethod
    def _semester_of(draft: AcademicGraph, semester_id: str) -> SemesterRecord:
        semester = draft.find_semester(semester_id)
        if semester is None:
            raise SemesterNotFound(semester_id)
        return semester

    @staticmethod
    def _grade_of(draft: AcademicGraph, grade_id: str) -> GradeRecord:
        grade = draft.find_grade(grade_id)
        if grade is None:
            raise GradeNotFound(grade_id)
        return grade

    # ==========================================================
    # [1] 학적 기록
    # ==========================================================

    @_serialized
    def load(self) -> AcademicGraph:
        """
        저장된 그래프를 읽고 파생 필드를 전부 다시 계산.
        저장된 등급/평점/합계는 그대로 믿지 않음 (복원된 백업은 일부 컬렉션만
        있거나 점수와 맞지 않는 값을 가질 수 있음).
        """
        graph = self.storage.load_graph()
        for grade in graph.grades:
            if grade.letter_grade == INCOMPLETE:
                continue
            _set_derived(grade, grade.units, grade.numerical_grade)
        for semester in graph.semesters:
            # 표시 순서는 유지, id 목록은 성적의 semester_id 기준으로 맞춤
            owned = [g.id for g in graph.grades_for(semester.id)]
            kept = [gid for gid in semester.grades if gid in owned]
            semester.grades = kept + [gid for gid in owned if gid not in kept]
        self.graph = recalculate(graph)
        logger.info(
            "Loaded academic data: %d semesters, %d grades",
            len(self.graph.semesters), len(self.graph.grades),
        )
        return self.graph

    @_serialized
    def initialize_record(self, configuration: Optional[AcademicConfiguration] = None) -> AcademicRecord:
        """메인 학적 기록이 없으면 생성 (기존 기록은 그대로 유지)"""
        draft = self._draft()
        stamp = now_ms()
        record = self._ensure_record(draft, stamp)
        if configuration is not None:
            record.configuration = configuration
            record.updated_at = stamp
        return self._commit(draft).academic_record

    @_serialized
    def update_configuration(self, configuration: AcademicConfiguration) -> AcademicRecord:
        draft = self._draft()
        stamp = now_ms()
        record = self._ensure_record(draft, stamp)
        record.configuration = configuration
        record.updated_at = stamp
        return self._commit(draft).academic_record

    @_serialized
    def restore(self, snapshot) -> dict:
        """백업 스냅샷에 있는 컬렉션만 덮어쓰고 다시 로드"""
        info = self.storage.import_all(snapshot)
        self.load()
        return info

    @_serialized
    def reset_all(self) -> None:
        self.storage.clear_all()
        self.graph = AcademicGraph()
        logger.info("Academic record reset")

    # ==========================================================
    # [2] 학기
    # ==========================================================

    def _new_semester(
        self, draft: AcademicGraph, stamp: int, year_level: int, semester_type: str,
        academic_year: str = "", is_completed: bool = False,
    ) -> SemesterRecord:
        semester = SemesterRecord(
            id=new_id("semester"),
            year_level=year_level,
            semester_type=semester_type,
            academic_year=academic_year,
            is_completed=is_completed,
            created_at=stamp,
            updated_at=stamp,
        )
        draft.semesters.append(semester)
        self._ensure_record(draft, stamp).semesters.append(semester.id)
        return semester

    @_serialized
    def add_semester(self, payload: SemesterCreate) -> SemesterRecord:
        draft = self._draft()
        semester = self._new_semester(
            draft, now_ms(), payload.year_level, payload.semester_type, payload.academic_year, payload.is_completed
        )
        return self._commit(draft).find_semester(semester.id)

    @_serialized
    def update_semester(self, semester_id: str, payload: SemesterUpdate) -> SemesterRecord:
        draft = self._draft()
        semester = self._semester_of(draft, semester_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(semester, field, value)
        semester.updated_at = now_ms()
        return self._commit(draft).find_semester(semester_id)

    @_serialized
    def remove_semester(self, semester_id: str) -> None:
        """학기와 소속 성적을 함께 삭제"""
        draft = self._draft()
        self._semester_of(draft, semester_id)
        draft.semesters = [s for s in draft.semesters if s.id != semester_id]
        removed = [g for g in draft.grades if g.semester_id == semester_id]
        draft.grades = [g for g in draft.grades if g.semester_id != semester_id]
        if draft.academic_record is not None:
            draft.academic_record.semesters = [sid for sid in draft.academic_record.semesters if sid != semester_id]
            draft.academic_record.updated_at = now_ms()
        self._commit(draft)
        logger.info("Removed semester %s with %d grades", semester_id, len(removed))

    def list_semesters(self) -> List[SemesterRecord]:
        return list(self.graph.semesters)

    def get_semester(self, semester_id: str) -> SemesterRecord:
        return self._semester_of(self.graph, semester_id)

    def find_semester(self, academic_year: str, semester_type: str) -> Optional[SemesterRecord]:
        """정규화된 (학년도, 학기 구분) 쌍으로 정확히 일치하는 학기"""
        year = normalize_academic_year(academic_year)
        return next(
            (s for s in self.graph.semesters if s.academic_year == year and s.semester_type == semester_type),
            None,
        )

    # ==========================================================
    # [3] 성적
    # ==========================================================

    def _new_grade(self, draft: AcademicGraph, payload: GradeCreate, stamp: int) -> GradeRecord:
        semester = self._semester_of(draft, payload.semester_id)
        grade = GradeRecord(
            id=new_id("grade"),
            course_id=payload.course_id or f"course-{payload.course_code}",
            course_code=payload.course_code,
            course_title=payload.course_title,
            units=payload.units,
            numerical_grade=payload.numerical_grade,
            semester_id=semester.id,
            notes=payload.notes,
            created_at=stamp,
            updated_at=stamp,
            **derive_grade_fields(payload.units, payload.numerical_grade),
        )
        draft.grades.append(grade)
        semester.grades.append(grade.id)
        semester.updated_at = stamp
        return grade

    @_serialized
    def add_grade(self, payload: GradeCreate) -> GradeRecord:
        draft = self._draft()
        grade = self._new_grade(draft, payload, now_ms())
        return self._commit(draft).find_grade(grade.id)

    @_serialized
    def add_grades(self, payloads: Iterable[GradeCreate]) -> List[GradeRecord]:
        """전부 아니면 전무: 없는 학기가 하나라도 있으면 전체 거부"""
        draft = self._draft()
        stamp = now_ms()
        ids = [self._new_grade(draft, payload, stamp).id for payload in payloads]
        committed = self._commit(draft)
        return [committed.find_grade(gid) for gid in ids]

    @_serialized
    def update_grade(self, grade_id: str, payload: GradeUpdate) -> GradeRecord:
        draft = self._draft()
        grade = self._grade_of(draft, grade_id)
        changes = payload.model_dump(exclude_unset=True)
        entry = changes.pop("grade_entry", None)

        for field in ("course_code", "course_title", "units", "notes"):
            if field in changes and (changes[field] is not None or field == "notes"):
                setattr(grade, field, changes[field])

        if entry is not None:
            self._apply_grade_entry(grade, entry)
        elif "numerical_grade" in changes:
            grade.numerical_grade = changes["numerical_grade"]
            _set_derived(grade, grade.units, grade.numerical_grade)
        elif grade.letter_grade != INCOMPLETE:
            # 학점이 바뀌었을 수 있음
            _set_derived(grade, grade.units, grade.numerical_grade)

        grade.updated_at = now_ms()
        return self._commit(draft).find_grade(grade_id)

    @staticmethod
    def _apply_grade_entry(grade: GradeRecord, text: str) -> None:
        parsed = parse_grade_entry(text)
        if parsed.letter_grade == INCOMPLETE:
            # 미이수(INC): 화면에는 남기고 모든 집계에서는 제외
            grade.numerical_grade = None
            grade.letter_grade = INCOMPLETE
            grade.grade_point = 0.0
            grade.quality_points = None
            return
        if parsed.numerical_grade is None:
            # 점수 없는 등급만으로는 저장 불가
            raise InvalidGrade(text)
        grade.numerical_grade = parsed.numerical_grade
        _set_derived(grade, grade.units, parsed.numerical_grade)

    @_serialized
    def remove_grade(self, grade_id: str) -> None:
        draft = self._draft()
        grade = self._grade_of(draft, grade_id)
        draft.grades = [g for g in draft.grades if g.id != grade_id]
        semester = draft.find_semester(grade.semester_id)
        if semester is not None:
            semester.grades = [gid for gid in semester.grades if gid != grade_id]
            semester.updated_at = now_ms()
        self._commit(draft)

    def get_grade(self, grade_id: str) -> GradeRecord:
        return self._grade_of(self.graph, grade_id)

    def list_grades(self) -> List[GradeRecord]:
        return list(self.graph.grades)

    # ==========================================================
    # [4] 일괄 추가 (템플릿, CSV)
    # ==========================================================

    def _semester_for(
        self, draft: AcademicGraph, academic_year: str, semester_type: str, year_level: int, stamp: int,
        created: List[str],
    ) -> SemesterRecord:
        existing = next(
            (s for s in draft.semesters if s.academic_year == academic_year and s.semester_type == semester_type),
            None,
        )
        if existing is not None:
            return existing
        semester = self._new_semester(draft, stamp, year_level, semester_type, academic_year)
        created.append(semester.id)
        return semester

    @_serialized
    def apply_template(self, template: Template, academic_year: Optional[str] = None) -> List[SemesterRecord]:
        """
        템플릿 학기마다 학기를 생성(또는 재사용)하고 과목을 미채점 성적으로 추가.
        반환: 사용된 학기 목록 (템플릿 순서)
        """
        if template.total_courses == 0:
            raise EmptyTemplate(f'Template "{template.name}" has no courses')

        year = normalize_academic_year(academic_year) if academic_year else current_academic_year()
        draft = self._draft()
        stamp = now_ms()
        created: List[str] = []
        touched: List[str] = []
        for tsem in template.semesters:
            semester = self._semester_for(draft, year, tsem.semester_type, tsem.year_level, stamp, created)
            touched.append(semester.id)
            for course in tsem.courses:
                self._new_grade(
                    draft,
                    GradeCreate(
                        semester_id=semester.id,
                        course_id=course.id,
                        course_code=course.course_code,
                        course_title=course.title,
                        units=course.units,
                    ),
                    stamp,
                )

        committed = self._commit(draft)
        logger.info(
            "Applied template %r: %d courses, %d new semesters", template.name, template.total_courses, len(created)
        )
        return [committed.find_semester(sid) for sid in dict.fromkeys(touched)]

    @_serialized
    def commit_import(
        self,
        result: ImportResult,
        default_semester_id: Optional[str] = None,
        course_resolver: Optional[CourseResolver] = None,
    ) -> CommitSummary:
        """
        CSV 가져오기 결과 중 유효한 행만 저장.

        행은 정규화된 (학년도, 학기 구분) 기준으로 묶이고, 묶음마다 학기 하나에
        매핑됨 (정확히 일치하는 학기가 있으면 재사용, 없으면 한 번만 생성).
        학기 정보가 없는 행은 `default_semester_id` 가 주어지면 그 학기로 들어감.
        """
        draft = self._draft()
        stamp = now_ms()
        if default_semester_id is not None:
            self._semester_of(draft, default_semester_id)

        resolved: Dict[Tuple[str, str], str] = {}
        created: List[str] = []
        summary = CommitSummary()

        for key, entries in result.grouped_entries().items():
            first = entries[0]
            if default_semester_id is not None and not first.academic_year and not first.semester:
                semester_id = default_semester_id
            else:
                semester_type = resolve_semester_type(first.semester)
                bucket = (first.academic_year, semester_type)
                if bucket not in resolved:
                    year_level = next((e.year_level for e in entries if e.year_level), None) or 1
                    resolved[bucket] = self._semester_for(
                        draft, first.academic_year, semester_type, year_level, stamp, created
                    ).id
                semester_id = resolved[bucket]
            summary.semester_ids[key] = semester_id

            for entry in entries:
                course = course_resolver(entry.course_code) if course_resolver else None
                self._new_grade(
                    draft,
                    GradeCreate(
                        semester_id=semester_id,
                        course_id=course.id if course else None,
                        course_code=entry.course_code,
                        course_title=entry.course_title,
                        units=entry.units,
                        numerical_grade=entry.numerical_grade,
                        notes=entry.notes,
                    ),
                    stamp,
                )
                summary.imported += 1

        if summary.imported == 0:
            return summary

        self._commit(draft)
        summary.created_semesters = created
        logger.info(
            "Committed CSV import: %d grades, %d new semesters, %d rows skipped",
            summary.imported, len(created), result.skipped_records,
        )
        return summary

    # ==========================================================
    # [5] 조회
    # ==========================================================

    def get_grades_by_semester(self, semester_id: str) -> List[GradeRecord]:
        return self.graph.ordered_grades_for(self._semester_of(self.graph, semester_id))

    def get_semester_qpi(self, semester_id: str) -> Optional[float]:
        return self._semester_of(self.graph, semester_id).semester_qpi

    def get_yearly_qpi(self, academic_year: str, normalized: bool = False) -> Optional[YearlyQPI]:
        """
        저장된 학년도 QPI (학기 QPI 단순 평균).
        `normalized` 이면 같은 학기들에 대한 학점 가중 평균으로 바꿔서 반환.
        """
        record = self.graph.academic_record
        if record is None:
            return None
        year = normalize_academic_year(academic_year)
        yearly = next((y for y in record.yearly_qpis if y.academic_year == year), None)
        if yearly is None or not normalized:
            return yearly

        owned = set(record.semesters)
        picked: Dict[str, SemesterRecord] = {}
        for semester in self.graph.semesters:
            if semester.id in owned and semester.academic_year == year:
                picked.setdefault(semester.semester_type, semester)
        graded = [s for s in picked.values() if s.semester_qpi is not None]
        if not graded:
            return yearly
        weighted = yearly_average([s.semester_qpi for s in graded], units=[s.total_units for s in graded])
        return yearly.model_copy(update={"yearly_qpi": weighted})

    def get_cumulative_qpi(self) -> Optional[float]:
        record = self.graph.academic_record
        return record.cumulative_qpi if record is not None else None
