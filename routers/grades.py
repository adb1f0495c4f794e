from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from dependencies.services import get_academic_service
from schemas.academic import GradeCreate, GradeUpdate
from schemas.common import ERROR_RESPONSES, ok
from services.academic_service import AcademicService

router = APIRouter(prefix="/grades", tags=["grades"], responses=ERROR_RESPONSES)


# ==========================================================
# [1단계] CRUD 기본 라우터
# ==========================================================

# ✅ [CREATE] 성적 추가 (등급/평점/QP 는 자동 계산)
@router.post("")
def create_grade(payload: GradeCreate, service: AcademicService = Depends(get_academic_service)):
    return ok(service.add_grade(payload), "Grade added")


# ✅ [CREATE] 여러 성적을 한 번에 추가
@router.post("/bulk")
def create_grades(payloads: List[GradeCreate], service: AcademicService = Depends(get_academic_service)):
    grades = service.add_grades(payloads)
    return ok(grades, f"{len(grades)} grades added")


# ✅ [READ] 전체 성적 또는 특정 학기 성적 조회
@router.get("")
def read_grades(
    semester_id: Optional[str] = Query(default=None, alias="semesterId"),
    service: AcademicService = Depends(get_academic_service),
):
    if semester_id:
        return ok(service.get_grades_by_semester(semester_id))
    return ok(service.list_grades())


# ✅ [READ] 특정 성적 조회
@router.get("/{grade_id}")
def read_grade(grade_id: str, service: AcademicService = Depends(get_academic_service)):
    return ok(service.get_grade(grade_id))


# ✅ [UPDATE] 부분 수정 ("gradeEntry" 는 "95", "INC" 같은 자유 입력)
@router.put("/{grade_id}")
def update_grade(grade_id: str, payload: GradeUpdate, service: AcademicService = Depends(get_academic_service)):
    return ok(service.update_grade(grade_id, payload), "Grade updated")


# ✅ [DELETE] 성적 삭제
@router.delete("/{grade_id}")
def delete_grade(grade_id: str, service: AcademicService = Depends(get_academic_service)):
    service.remove_grade(grade_id)
    return ok({"id": grade_id}, "Grade deleted")
