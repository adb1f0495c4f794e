"""
services/qpi_calculator.py

QPI = 총 QP / 총 학점.
값은 원래 정밀도로 보관하고, 반올림은 표시할 때만 (round_qpi).
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from schemas.academic import GradeRecord


@dataclass(frozen=True, slots=True)
class Totals:
    total_units: float
    total_quality_points: float
    qpi: float                                   # 채점된 학점이 없으면 0.0


def quality_points(units: float, grade_point: float) -> float:
    return units * grade_point


def aggregate(records: Iterable[GradeRecord]) -> Totals:
    """성적이 입력된 기록만 학점과 QP 합산"""
    total_units = 0.0
    total_quality_points = 0.0
    for record in records:
        if record.quality_points is None:
            continue
        total_units += record.units
        total_quality_points += record.quality_points

    qpi = total_quality_points / total_units if total_units > 0 else 0.0
    return Totals(total_units=total_units, total_quality_points=total_quality_points, qpi=qpi)


def yearly_average(qpis: Sequence[float], units: Optional[Sequence[float]] = None) -> float:
    """
    학기 QPI 평균.
    - units 없음: 단순 평균 (학년도별 표시 방식)
    - units 있음: 학점 가중 평균 sum(q*u) / sum(u), 두 리스트는 같은 순서
    """
    if not qpis:
        return 0.0

    if units is None:
        return sum(qpis) / len(qpis)

    if len(units) != len(qpis):
        raise ValueError("qpis and units must have the same length")
    total_units = sum(units)
    if total_units <= 0:
        return 0.0
    return sum(q * u for q, u in zip(qpis, units)) / total_units


def round_qpi(value: Optional[float], places: int = 2) -> Optional[float]:
    return None if value is None else round(value, places)
