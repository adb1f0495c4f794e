from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from dependencies.services import get_academic_service, get_catalog_client
from schemas.catalog import CourseCreate, TemplateApply, TemplateCreate
from schemas.common import ERROR_RESPONSES, ok
from services.academic_service import AcademicService
from services.catalog_client import CatalogClient

router = APIRouter(prefix="/catalog", tags=["catalog"], responses=ERROR_RESPONSES)


# ==========================================================
# [1단계] 과목
# ==========================================================

# ✅ [READ] 카탈로그 과목 검색 / 페이지 조회
@router.get("/courses")
def read_courses(
    search: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    cursor: Optional[str] = None,
    catalog: CatalogClient = Depends(get_catalog_client),
):
    return ok(catalog.list_courses(search=search, limit=limit, cursor=cursor))


# ✅ [CREATE] 과목 등록
@router.post("/courses")
def create_course(payload: CourseCreate, catalog: CatalogClient = Depends(get_catalog_client)):
    course = catalog.create_course(payload.course_code, payload.title, payload.units)
    return ok(course, "Course created")


# ==========================================================
# [2단계] 템플릿
# ==========================================================

# ✅ [CREATE] 템플릿 등록
@router.post("/templates")
def create_template(payload: TemplateCreate, catalog: CatalogClient = Depends(get_catalog_client)):
    template = catalog.create_template(payload.name, payload.description, payload.semesters)
    return ok(template, "Template created")


# ✅ [APPLY] 템플릿 조회 후 과목을 미채점 성적으로 추가
@router.post("/templates/{template_id}/apply")
def apply_template(
    template_id: str,
    payload: Optional[TemplateApply] = Body(default=None),
    catalog: CatalogClient = Depends(get_catalog_client),
    service: AcademicService = Depends(get_academic_service),
):
    template = catalog.get_template_by_id(template_id)
    semesters = service.apply_template(template, academic_year=payload.academic_year if payload else None)
    return ok(semesters, f'Template "{template.name}" applied')
