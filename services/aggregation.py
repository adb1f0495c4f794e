"""
services/aggregation.py

학적 그래프의 파생 값 전체 재계산:
  1) 학기별 합계 / semesterQPI
  2) 학년도별 QPI (해당 학년도 학기 QPI 의 단순 평균)
  3) 누적 합계 / cumulativeQPI (전체 성적 학점 가중)
  4) lastCalculated 시각

`recalculate` 는 순수 함수: 입력은 건드리지 않고 새 그래프를 반환하므로
변경마다 돌리든 일괄 변경 후 한 번 돌리든 결과가 같음.
"""

import logging
from typing import Dict, List, Optional

from schemas.academic import (
    AcademicGraph,
    AcademicRecord,
    SemesterRecord,
    YearlyQPI,
    now_ms,
)
from services.qpi_calculator import aggregate, yearly_average

logger = logging.getLogger(__name__)


def _recalculate_semester(semester: SemesterRecord, graph: AcademicGraph) -> SemesterRecord:
    totals = aggregate(graph.grades_for(semester.id))
    return semester.model_copy(
        update={
            "total_units": totals.total_units,
            "total_quality_points": totals.total_quality_points,
            "semester_qpi": totals.qpi if totals.total_units > 0 else None,
        }
    )


def _yearly_qpis(semesters: List[SemesterRecord]) -> List[YearlyQPI]:
    # 학년도 -> 학기 구분 -> 해당 구분의 첫 번째 학기
    by_year: Dict[str, Dict[str, SemesterRecord]] = {}
    for semester in semesters:
        by_year.setdefault(semester.academic_year, {}).setdefault(semester.semester_type, semester)

    result = []
    for academic_year in sorted(by_year):
        picked = by_year[academic_year]

        def qpi_of(semester_type: str) -> Optional[float]:
            sem = picked.get(semester_type)
            return sem.semester_qpi if sem else None

        present = [q for q in (qpi_of("first"), qpi_of("second"), qpi_of("summer")) if q is not None]
        result.append(
            YearlyQPI(
                academic_year=academic_year,
                first_sem_qpi=qpi_of("first"),
                second_sem_qpi=qpi_of("second"),
                summer_qpi=qpi_of("summer"),
                yearly_qpi=yearly_average(present) if present else None,
            )
        )
    return result


def _recalculate_record(
    record: AcademicRecord, semesters: List[SemesterRecord], graph: AcademicGraph, stamp: int
) -> AcademicRecord:
    owned_ids = set(record.semesters)
    owned = [s for s in semesters if s.id in owned_ids]
    totals = aggregate(g for g in graph.grades if g.semester_id in owned_ids)

    return record.model_copy(
        update={
            "total_units": totals.total_units,
            "total_quality_points": totals.total_quality_points,
            "cumulative_qpi": totals.qpi if totals.total_units > 0 else None,
            "yearly_qpis": _yearly_qpis(owned),
            "last_calculated": stamp,
        }
    )


def recalculate(graph: AcademicGraph, now: Optional[int] = None) -> AcademicGraph:
    """파생 필드를 모두 다시 계산한 `graph` 사본 반환"""
    stamp = now if now is not None else now_ms()

    semesters = [_recalculate_semester(s, graph) for s in graph.semesters]
    record = None
    if graph.academic_record is not None:
        record = _recalculate_record(graph.academic_record, semesters, graph, stamp)

    logger.debug(
        "Recalculated %d semesters / %d grades (cumulative QPI=%s)",
        len(semesters),
        len(graph.grades),
        record.cumulative_qpi if record else None,
    )
    return AcademicGraph(
        grades=[g.model_copy() for g in graph.grades],
        semesters=semesters,
        academic_record=record,
    )
