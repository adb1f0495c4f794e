from fastapi import APIRouter, Depends

from dependencies.services import get_academic_service
from schemas.academic import SemesterCreate, SemesterUpdate
from schemas.common import ERROR_RESPONSES, ok
from services.academic_service import AcademicService

router = APIRouter(prefix="/semesters", tags=["semesters"], responses=ERROR_RESPONSES)


# ✅ [CREATE] 학기 생성
@router.post("")
def create_semester(payload: SemesterCreate, service: AcademicService = Depends(get_academic_service)):
    return ok(service.add_semester(payload), "Semester added")


# ✅ [READ] 전체 학기 조회 (등록 순)
@router.get("")
def read_semesters(service: AcademicService = Depends(get_academic_service)):
    return ok(service.list_semesters())


# ✅ [READ] 특정 학기 + 표시 순서대로 성적
@router.get("/{semester_id}")
def read_semester(semester_id: str, service: AcademicService = Depends(get_academic_service)):
    semester = service.get_semester(semester_id)
    return ok({"semester": semester, "grades": service.get_grades_by_semester(semester_id)})


# ✅ [UPDATE] 학기 수정
@router.put("/{semester_id}")
def update_semester(
    semester_id: str, payload: SemesterUpdate, service: AcademicService = Depends(get_academic_service)
):
    return ok(service.update_semester(semester_id, payload), "Semester updated")


# ✅ [DELETE] 학기 삭제 (소속 성적도 함께 삭제)
@router.delete("/{semester_id}")
def delete_semester(semester_id: str, service: AcademicService = Depends(get_academic_service)):
    service.remove_semester(semester_id)
    return ok({"id": semester_id}, "Semester deleted")
