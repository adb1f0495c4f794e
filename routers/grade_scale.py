from fastapi import APIRouter, Query

from schemas.common import ERROR_RESPONSES, ok
from services.grade_scale import GRADE_SCALE, PASSING_SCORE, classify, is_passing

router = APIRouter(prefix="/grade-scale", tags=["grade scale"])


# ✅ [READ] 전체 환산표 (높은 구간부터)
@router.get("")
def read_grade_scale():
    bands = [
        {"letter": b.letter, "minScore": b.min_score, "maxScore": b.max_score, "gradePoint": b.grade_point}
        for b in GRADE_SCALE
    ]
    return ok({"bands": bands, "passingScore": PASSING_SCORE})


# ✅ [READ] 점수 → 등급 / 평점
@router.get("/classify", responses=ERROR_RESPONSES)
def classify_score(score: float = Query(..., description="Numerical grade 0-100")):
    band = classify(score)
    return ok({
        "score": score,
        "letterGrade": band.letter,
        "gradePoint": band.grade_point,
        "isPassing": is_passing(score),
    })
