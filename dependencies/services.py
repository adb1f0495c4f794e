from functools import lru_cache
from typing import Iterator

from database.db import SessionLocal
from services.academic_service import AcademicService
from services.catalog_client import CatalogClient
from services.storage import AcademicStorage


# ✅ 프로세스당 저장소/서비스 1개 (변경 작업 직렬화는 서비스 내부 락)
@lru_cache
def get_storage() -> AcademicStorage:
    return AcademicStorage(SessionLocal)


@lru_cache
def get_academic_service() -> AcademicService:
    service = AcademicService(get_storage())
    service.load()
    return service


# ✅ 요청마다 카탈로그 클라이언트 생성, 응답 후 close
def get_catalog_client() -> Iterator[CatalogClient]:
    client = CatalogClient()
    try:
        yield client
    finally:
        client.close()
