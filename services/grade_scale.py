"""
services/grade_scale.py

고정 8구간 환산표: 점수(0-100) -> 등급 -> 평점(0.0-4.0).
구간은 [0, 100] 을 빈틈없이 덮으며 높은 구간부터 나열, 각 구간 하한 포함.
정수 경계 사이 점수(예: 97.5)는 하한에 도달한 구간에 속함.
"""

import math
from dataclasses import dataclass
from typing import List, Optional

from services.errors import InvalidGrade, InvalidLetterGrade

INCOMPLETE = "INC"
PASSING_SCORE = 75


@dataclass(frozen=True, slots=True)
class GradeScaleBand:
    letter: str
    min_score: int
    max_score: int
    grade_point: float


GRADE_SCALE: tuple = (
    GradeScaleBand("A", 98, 100, 4.0),
    GradeScaleBand("B+", 94, 97, 3.5),
    GradeScaleBand("B", 90, 93, 3.0),
    GradeScaleBand("C+", 86, 89, 2.5),
    GradeScaleBand("C", 82, 85, 2.0),
    GradeScaleBand("D+", 78, 81, 1.5),
    GradeScaleBand("D", 75, 77, 1.0),
    GradeScaleBand("F", 0, 74, 0.0),
)

_BY_LETTER = {band.letter: band for band in GRADE_SCALE}


@dataclass(frozen=True, slots=True)
class ParsedGrade:
    letter_grade: str
    grade_point: float
    numerical_grade: Optional[float] = None


def is_valid_numerical_grade(score) -> bool:
    try:
        value = float(score)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and 0 <= value <= 100


def classify(score) -> GradeScaleBand:
    """`score` 가 속한 구간 반환; [0, 100] 밖이면 InvalidGrade"""
    if isinstance(score, bool) or not is_valid_numerical_grade(score):
        raise InvalidGrade(score)
    value = float(score)
    for band in GRADE_SCALE:
        if value >= band.min_score:
            return band
    # 도달 불가: F 구간이 0 부터 시작
    raise InvalidGrade(score)


def letter_for(score) -> str:
    return classify(score).letter


def grade_point_for(score) -> float:
    return classify(score).grade_point


def band_for_letter(letter: str) -> GradeScaleBand:
    band = _BY_LETTER.get((letter or "").strip().upper())
    if band is None:
        raise InvalidLetterGrade(letter, available_letters())
    return band


def grade_point_of(letter: str) -> float:
    """대소문자 무시 역조회: "b+" -> 3.5"""
    return band_for_letter(letter).grade_point


def available_letters() -> List[str]:
    return [band.letter for band in GRADE_SCALE]


def is_passing(score) -> bool:
    return is_valid_numerical_grade(score) and float(score) >= PASSING_SCORE


def is_passing_letter(letter: str) -> bool:
    normalized = (letter or "").strip().upper()
    return normalized in _BY_LETTER and normalized != "F"


def parse_grade_entry(text: str) -> ParsedGrade:
    """
    자유 입력 성적 파싱.
    - "95" / "88.5"  -> 점수 + 파생 등급/평점
    - "b+"           -> 등급만
    - "INC"          -> 미이수, 평점 0
    """
    trimmed = (text or "").strip()
    if not trimmed:
        raise InvalidGrade(text)

    if trimmed.upper() == INCOMPLETE:
        return ParsedGrade(letter_grade=INCOMPLETE, grade_point=0.0)

    try:
        value = float(trimmed)
    except ValueError:
        band = band_for_letter(trimmed)
        return ParsedGrade(letter_grade=band.letter, grade_point=band.grade_point)

    band = classify(value)
    return ParsedGrade(letter_grade=band.letter, grade_point=band.grade_point, numerical_grade=value)
