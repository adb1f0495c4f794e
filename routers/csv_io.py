from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from config.settings import settings
from dependencies.services import get_academic_service, get_catalog_client
from schemas.common import ERROR_RESPONSES, ok
from services.academic_service import AcademicService
from services.catalog_client import CatalogClient
from services.csv_export import ExportLayout, ExportProfile, export_csv, generate_filename, with_bom
from services.csv_import import decode_csv_bytes, import_csv, template_csv
from services.errors import CSVFileError

router = APIRouter(prefix="/csv", tags=["csv"], responses=ERROR_RESPONSES)


async def _read_upload(file: UploadFile) -> str:
    limit = settings.MAX_UPLOAD_MB * 1024 * 1024
    data = await file.read()
    if len(data) > limit:
        raise CSVFileError(f"CSV file is larger than {settings.MAX_UPLOAD_MB} MB")
    return decode_csv_bytes(data)


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ==========================================================
# [1단계] CSV 가져오기
# ==========================================================

# ✅ [PREVIEW] 행 검증 + 학기별 그룹핑 (저장하지 않음)
@router.post("/preview")
async def preview_csv(file: UploadFile = File(...)):
    result = import_csv(await _read_upload(file))
    return ok(result, f"{result.imported_records} valid rows, {len(result.errors)} errors")


# ✅ [IMPORT] 검증 후 유효한 행만 저장, 잘못된 행은 보고 후 건너뜀
@router.post("/import")
async def import_grades_csv(
    file: UploadFile = File(...),
    default_semester_id: Optional[str] = Form(default=None, alias="defaultSemesterId"),
    link_catalog: bool = Form(default=False, alias="linkCatalog"),
    service: AcademicService = Depends(get_academic_service),
    catalog: CatalogClient = Depends(get_catalog_client),
):
    result = import_csv(await _read_upload(file))
    resolver = catalog.find_course_by_code if link_catalog and catalog.enabled else None
    # 저장/카탈로그 조회는 블로킹 I/O → 이벤트 루프 밖(스레드풀)에서 실행
    summary = await run_in_threadpool(
        service.commit_import, result, default_semester_id=default_semester_id, course_resolver=resolver
    )
    return ok(
        {"result": result, "summary": summary},
        f"Imported {summary.imported} grades, skipped {result.skipped_records} rows",
    )


# ==========================================================
# [2단계] CSV 내보내기
# ==========================================================

# ✅ [EXPORT] full / reimport 프로필, flat / sectioned 레이아웃
@router.get("/export")
def export_grades_csv(
    profile: ExportProfile = Query(default=ExportProfile.FULL),
    layout: ExportLayout = Query(default=ExportLayout.FLAT),
    summary: bool = Query(default=False),
    bom: bool = Query(default=False),
    semester_ids: Optional[List[str]] = Query(default=None, alias="semesterId"),
    service: AcademicService = Depends(get_academic_service),
):
    content = export_csv(service.graph, profile, layout, include_summary=summary, semester_ids=semester_ids)
    if bom:
        content = with_bom(content)
    return _csv_response(content, generate_filename())


# ✅ [TEMPLATE] 샘플 CSV 다운로드
@router.get("/template")
def download_template():
    return _csv_response(template_csv(), "grades_template.csv")
