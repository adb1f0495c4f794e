from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from dependencies.services import get_academic_service
from schemas.academic import AcademicConfiguration
from schemas.common import ERROR_RESPONSES, ok
from services.academic_service import AcademicService

router = APIRouter(prefix="/record", tags=["academic record"])


# ✅ [READ] 학적 요약: 누적/학년도별 QPI 와 학기별 합계
@router.get("")
def read_record(service: AcademicService = Depends(get_academic_service)):
    graph = service.graph
    return ok({
        "academicRecord": graph.academic_record,
        "semesters": graph.semesters,
        "gradeCount": len(graph.grades),
    })


# ✅ [CREATE] 메인 학적 기록 생성 (이미 있으면 그대로 유지)
@router.post("")
def initialize_record(
    configuration: Optional[AcademicConfiguration] = Body(default=None),
    service: AcademicService = Depends(get_academic_service),
):
    record = service.initialize_record(configuration)
    return ok(record, "Academic record ready")


# ✅ [UPDATE] 총 학년 수 / 여름학기 포함 여부
@router.put("/configuration", responses=ERROR_RESPONSES)
def update_configuration(
    configuration: AcademicConfiguration, service: AcademicService = Depends(get_academic_service)
):
    return ok(service.update_configuration(configuration), "Configuration updated")


# ✅ [READ] 특정 학년도의 QPI ("2023-2024" 또는 "2024")
#    normalized=true → 학기 QPI 단순 평균 대신 학점 가중 평균
@router.get("/yearly/{academic_year}", responses=ERROR_RESPONSES)
def read_yearly_qpi(
    academic_year: str,
    normalized: bool = Query(default=False),
    service: AcademicService = Depends(get_academic_service),
):
    return ok(service.get_yearly_qpi(academic_year, normalized=normalized))


# ✅ [DELETE] 학기, 성적, 학적 기록 전체 삭제
@router.delete("")
def reset_record(service: AcademicService = Depends(get_academic_service)):
    service.reset_all()
    return ok(None, "All academic data cleared")
