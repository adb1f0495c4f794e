from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import Response

from dependencies.services import get_academic_service, get_storage
from schemas.common import ERROR_RESPONSES, ok
from services.academic_service import AcademicService
from services.csv_export import generate_filename
from services.storage import AcademicStorage

router = APIRouter(prefix="/storage", tags=["storage"], responses=ERROR_RESPONSES)


# ✅ [INFO] 건수, 스키마 버전, 마지막 백업, 사용량/한도
@router.get("/info")
def read_storage_info(storage: AcademicStorage = Depends(get_storage)):
    return ok(storage.storage_info())


# ✅ [BACKUP] 전체 데이터 JSON 스냅샷
@router.get("/export")
def export_snapshot(storage: AcademicStorage = Depends(get_storage)):
    return Response(
        content=storage.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{generate_filename("qpi_backup", "json")}"'},
    )


# ✅ [RESTORE] 스냅샷에 있는 컬렉션만 덮어쓴 뒤 다시 로드
@router.post("/import")
def import_snapshot(
    snapshot: Dict[str, Any] = Body(...),
    service: AcademicService = Depends(get_academic_service),
):
    return ok(service.restore(snapshot), "Backup restored")


# ✅ [CLEAR] 저장된 키 전체 삭제
@router.delete("")
def clear_storage(
    storage: AcademicStorage = Depends(get_storage),
    service: AcademicService = Depends(get_academic_service),
):
    service.reset_all()
    return ok(storage.storage_info(), "Local storage cleared")
