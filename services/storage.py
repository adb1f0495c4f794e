"""
services/storage.py

학적 그래프용 버전 관리 키 -> JSON 문서 저장소.

- 키: qpi_grades / qpi_semesters / qpi_academic_record / qpi_schema_version / qpi_last_backup
- 모든 쓰기는 SQLAlchemy 트랜잭션 하나로 처리; 저장 용량이 한도를 넘으면
  롤백 후 StorageQuotaExceeded 발생.
- 손상된 문서(잘못된 JSON, 형식 불일치)는 로그를 남기고 없는 것으로 읽음.
- migrate() 는 저장된 문서를 한 버전씩 순서대로 업그레이드.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from config.settings import settings
from database.db import SessionLocal
from models.storage import StorageEntry
from schemas.academic import AcademicGraph, AcademicRecord, GradeRecord, SemesterRecord, now_ms
from services.errors import InvalidSnapshot, StorageError, StorageQuotaExceeded

logger = logging.getLogger(__name__)

KEY_GRADES = "qpi_grades"
KEY_SEMESTERS = "qpi_semesters"
KEY_ACADEMIC_RECORD = "qpi_academic_record"
KEY_SCHEMA_VERSION = "qpi_schema_version"
KEY_LAST_BACKUP = "qpi_last_backup"

STORAGE_KEYS = (KEY_GRADES, KEY_SEMESTERS, KEY_ACADEMIC_RECORD, KEY_SCHEMA_VERSION, KEY_LAST_BACKUP)

CURRENT_SCHEMA_VERSION = 1

_GRADES = TypeAdapter(List[GradeRecord])
_SEMESTERS = TypeAdapter(List[SemesterRecord])


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


def _is_capacity_error(exc: OperationalError) -> bool:
    text = str(exc.orig if exc.orig is not None else exc).lower()
    return "full" in text or "quota" in text or "disk i/o" in text


class AcademicStorage:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, quota_bytes: Optional[int] = None):
        self.session_factory = session_factory
        self.quota_bytes = quota_bytes if quota_bytes is not None else settings.STORAGE_QUOTA_BYTES

    # ==========================================================
    # [1] 키 단위 접근
    # ==========================================================

    def _get(self, key: str) -> Optional[Any]:
        db = self.session_factory()
        try:
            entry = db.get(StorageEntry, key)
            raw = entry.value if entry is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Error reading storage key '{key}': {e}") from e
        finally:
            db.close()

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error("Corrupt document under storage key %r, treating as absent: %s", key, e)
            return None

    def _write(self, changes: Dict[str, Optional[Any]]) -> None:
        """{키: 문서 | None} 를 트랜잭션 하나로 반영 (None 이면 키 삭제)"""
        stamp = now_ms()
        encoded = {key: (None if value is None else _dump(value)) for key, value in changes.items()}

        required = 0
        db = self.session_factory()
        try:
            current = {e.key: e for e in db.query(StorageEntry).all()}

            projected = {key: _size(key, e.value) for key, e in current.items()}
            for key, value in encoded.items():
                if value is None:
                    projected.pop(key, None)
                else:
                    projected[key] = _size(key, value)
            required = sum(projected.values())
            if required > self.quota_bytes:
                db.rollback()
                logger.warning("Storage quota exceeded: %d > %d bytes", required, self.quota_bytes)
                raise StorageQuotaExceeded(required, self.quota_bytes)

            for key, value in encoded.items():
                entry = current.get(key)
                if value is None:
                    if entry is not None:
                        db.delete(entry)
                elif entry is None:
                    db.add(StorageEntry(key=key, value=value, updated_at=stamp))
                else:
                    entry.value = value
                    entry.updated_at = stamp
            db.commit()
        except OperationalError as e:
            db.rollback()
            if _is_capacity_error(e):
                logger.warning("Storage backend is full: %s", e)
                raise StorageQuotaExceeded(required, self.quota_bytes) from e
            raise StorageError(f"Error writing to storage: {e}") from e
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Error writing to storage: {e}") from e
        finally:
            db.close()

    def bytes_used(self) -> int:
        db = self.session_factory()
        try:
            return sum(_size(e.key, e.value) for e in db.query(StorageEntry).all())
        finally:
            db.close()

    def _load_list(self, key: str, adapter: TypeAdapter) -> list:
        doc = self._get(key)
        if doc is None:
            return []
        if not isinstance(doc, list):
            logger.error("Storage key %r does not hold a list, treating as empty", key)
            return []
        try:
            return adapter.validate_python(doc)
        except PydanticValidationError as e:
            logger.error("Invalid records under storage key %r, treating as empty: %s", key, e)
            return []

    # ==========================================================
    # [2] 성적
    # ==========================================================

    def save_grades(self, grades: List[GradeRecord]) -> None:
        self._write({KEY_GRADES: [g.to_document() for g in grades]})

    def load_grades(self) -> List[GradeRecord]:
        return self._load_list(KEY_GRADES, _GRADES)

    def save_grade(self, grade: GradeRecord) -> GradeRecord:
        """id 기준 upsert (updatedAt 갱신)"""
        grades = self.load_grades()
        saved = grade.model_copy(update={"updated_at": now_ms()})
        for index, existing in enumerate(grades):
            if existing.id == grade.id:
                grades[index] = saved
                break
        else:
            grades.append(saved)
        self.save_grades(grades)
        return saved

    def remove_grade(self, grade_id: str) -> bool:
        grades = self.load_grades()
        kept = [g for g in grades if g.id != grade_id]
        if len(kept) == len(grades):
            return False
        self.save_grades(kept)
        return True

    # ==========================================================
    # [3] 학기
    # ==========================================================

    def save_semesters(self, semesters: List[SemesterRecord]) -> None:
        self._write({KEY_SEMESTERS: [s.to_document() for s in semesters]})

    def load_semesters(self) -> List[SemesterRecord]:
        return self._load_list(KEY_SEMESTERS, _SEMESTERS)

    def save_semester(self, semester: SemesterRecord) -> SemesterRecord:
        semesters = self.load_semesters()
        saved = semester.model_copy(update={"updated_at": now_ms()})
        for index, existing in enumerate(semesters):
            if existing.id == semester.id:
                semesters[index] = saved
                break
        else:
            semesters.append(saved)
        self.save_semesters(semesters)
        return saved

    def remove_semester(self, semester_id: str) -> bool:
        semesters = self.load_semesters()
        kept = [s for s in semesters if s.id != semester_id]
        if len(kept) == len(semesters):
            return False
        self.save_semesters(kept)
        return True

    # ==========================================================
    # [4] 학적 기록
    # ==========================================================

    def save_academic_record(self, record: AcademicRecord) -> None:
        self._write({KEY_ACADEMIC_RECORD: record.to_document()})

    def load_academic_record(self) -> Optional[AcademicRecord]:
        doc = self._get(KEY_ACADEMIC_RECORD)
        if doc is None:
            return None
        try:
            return AcademicRecord.model_validate(doc)
        except PydanticValidationError as e:
            logger.error("Invalid academic record in storage, treating as absent: %s", e)
            return None

    def remove_academic_record(self) -> None:
        self._write({KEY_ACADEMIC_RECORD: None})

    # ==========================================================
    # [5] 그래프 전체
    # ==========================================================

    def save_graph(self, graph: AcademicGraph) -> None:
        record = graph.academic_record
        self._write(
            {
                KEY_GRADES: [g.to_document() for g in graph.grades],
                KEY_SEMESTERS: [s.to_document() for s in graph.semesters],
                KEY_ACADEMIC_RECORD: record.to_document() if record is not None else None,
            }
        )

    def load_graph(self) -> AcademicGraph:
        self.migrate()
        return AcademicGraph(
            grades=self.load_grades(),
            semesters=self.load_semesters(),
            academic_record=self.load_academic_record(),
        )

    # ==========================================================
    # [6] 스키마 마이그레이션
    # ==========================================================

    def schema_version(self) -> int:
        version = self._get(KEY_SCHEMA_VERSION)
        return version if isinstance(version, int) and not isinstance(version, bool) else 0

    def migrate(self) -> int:
        """남은 마이그레이션 단계를 모두 실행하고 최종 스키마 버전 반환"""
        version = self.schema_version()
        if version >= CURRENT_SCHEMA_VERSION:
            return version

        logger.info("Migrating stored data from schema v%d to v%d", version, CURRENT_SCHEMA_VERSION)
        while version < CURRENT_SCHEMA_VERSION:
            step = _MIGRATIONS[version]
            step(self)
            version += 1
        self._write({KEY_SCHEMA_VERSION: CURRENT_SCHEMA_VERSION})
        return version

    def _migrate_v0_to_v1(self) -> None:
        stamp = now_ms()
        changes = {}
        for key in (KEY_GRADES, KEY_SEMESTERS):
            docs = self._get(key)
            if not isinstance(docs, list):
                continue
            touched = False
            for doc in docs:
                if not isinstance(doc, dict):
                    continue
                for field in ("createdAt", "updatedAt"):
                    if not doc.get(field):
                        doc[field] = stamp
                        touched = True
            if touched:
                changes[key] = docs
        if changes:
            self._write(changes)
            logger.info("Backfilled timestamps in %s", ", ".join(sorted(changes)))

    # ==========================================================
    # [7] 백업 / 복원
    # ==========================================================

    def export_all(self) -> dict:
        record = self.load_academic_record()
        return {
            "grades": [g.to_document() for g in self.load_grades()],
            "semesters": [s.to_document() for s in self.load_semesters()],
            "academicRecord": record.to_document() if record is not None else None,
            "schemaVersion": CURRENT_SCHEMA_VERSION,
            "exportedAt": now_ms(),
        }

    def export_json(self) -> str:
        return json.dumps(self.export_all(), ensure_ascii=False, indent=2)

    def import_all(self, snapshot: Union[str, bytes, dict]) -> dict:
        """
        전체 백업 스냅샷 복원.
        스냅샷에 있는 컬렉션만 덮어쓰며, 쓰기 전에 스냅샷 전체를 먼저 검증.
        """
        if isinstance(snapshot, (str, bytes)):
            try:
                snapshot = json.loads(snapshot)
            except ValueError as e:
                raise InvalidSnapshot(f"Failed to import data: {e}") from e
        if not isinstance(snapshot, dict):
            raise InvalidSnapshot("Failed to import data: snapshot must be a JSON object")

        changes: Dict[str, Any] = {}
        try:
            if snapshot.get("grades") is not None:
                changes[KEY_GRADES] = [g.to_document() for g in _GRADES.validate_python(snapshot["grades"])]
            if snapshot.get("semesters") is not None:
                changes[KEY_SEMESTERS] = [s.to_document() for s in _SEMESTERS.validate_python(snapshot["semesters"])]
            if snapshot.get("academicRecord") is not None:
                changes[KEY_ACADEMIC_RECORD] = AcademicRecord.model_validate(snapshot["academicRecord"]).to_document()
        except PydanticValidationError as e:
            raise InvalidSnapshot(f"Failed to import data: {e.error_count()} invalid field(s)") from e

        version = snapshot.get("schemaVersion")
        if version is not None:
            if isinstance(version, bool) or not isinstance(version, int):
                raise InvalidSnapshot("Failed to import data: schemaVersion must be an integer")
            changes[KEY_SCHEMA_VERSION] = version
        changes[KEY_LAST_BACKUP] = now_ms()

        self._write(changes)
        logger.info(
            "Imported snapshot: %s",
            ", ".join(k for k in (KEY_GRADES, KEY_SEMESTERS, KEY_ACADEMIC_RECORD) if k in changes) or "no collections",
        )
        return self.storage_info()

    # ==========================================================
    # [8] 정리 / 상태 조회
    # ==========================================================

    def clear_all(self) -> None:
        self._write({key: None for key in STORAGE_KEYS})
        logger.info("Cleared all stored academic data")

    def storage_info(self) -> dict:
        last_backup = self._get(KEY_LAST_BACKUP)
        return {
            "isAvailable": True,
            "gradeCount": len(self.load_grades()),
            "semesterCount": len(self.load_semesters()),
            "hasAcademicRecord": self.load_academic_record() is not None,
            "schemaVersion": self.schema_version(),
            "lastBackup": last_backup if isinstance(last_backup, int) else None,
            "bytesUsed": self.bytes_used(),
            "quotaBytes": self.quota_bytes,
        }


# 저장된 버전 -> 한 단계 올리는 마이그레이션 함수
_MIGRATIONS: Dict[int, Callable[[AcademicStorage], None]] = {
    0: AcademicStorage._migrate_v0_to_v1,
}
