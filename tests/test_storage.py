import json
import unittest
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from factories import STAMP, make_grade, make_graph, make_semester, make_storage
from models.storage import StorageEntry
from services.aggregation import recalculate
from services.errors import InvalidSnapshot, StorageQuotaExceeded
from services.storage import (
    CURRENT_SCHEMA_VERSION,
    KEY_GRADES,
    KEY_LAST_BACKUP,
    KEY_SCHEMA_VERSION,
    KEY_SEMESTERS,
    AcademicStorage,
)


def _graph():
    grades = [make_grade("g1", "s1", 3, 95), make_grade("g2", "s1", 4, 88)]
    return recalculate(make_graph([make_semester("s1", grades=grades)], grades), now=1)


def _put_raw(storage: AcademicStorage, key: str, raw: str) -> None:
    db = storage.session_factory()
    try:
        db.merge(StorageEntry(key=key, value=raw, updated_at=STAMP))
        db.commit()
    finally:
        db.close()


class TestCollections(unittest.TestCase):

    def setUp(self):
        self.storage = make_storage()

    def test_empty_store(self):
        self.assertEqual(self.storage.load_grades(), [])
        self.assertEqual(self.storage.load_semesters(), [])
        self.assertIsNone(self.storage.load_academic_record())

    def test_grades_round_trip(self):
        graph = _graph()
        self.storage.save_grades(graph.grades)
        self.assertEqual(self.storage.load_grades(), graph.grades)

    def test_documents_are_camel_case(self):
        self.storage.save_graph(_graph())
        db = self.storage.session_factory()
        try:
            semesters = json.loads(db.get(StorageEntry, KEY_SEMESTERS).value)
        finally:
            db.close()
        self.assertIn("semesterQPI", semesters[0])
        self.assertIn("yearLevel", semesters[0])

    def test_save_grade_upserts(self):
        grade = make_grade("g1", "s1", 3, 95)
        self.storage.save_grade(grade)
        self.storage.save_grade(grade.model_copy(update={"units": 2}))
        self.storage.save_grade(make_grade("g2", "s1", 3, 90))

        grades = self.storage.load_grades()
        self.assertEqual([g.id for g in grades], ["g1", "g2"])
        self.assertEqual(grades[0].units, 2)
        self.assertGreater(grades[0].updated_at, STAMP)

    def test_remove_grade_and_semester(self):
        graph = _graph()
        self.storage.save_graph(graph)
        self.assertTrue(self.storage.remove_grade("g1"))
        self.assertFalse(self.storage.remove_grade("missing"))
        self.assertTrue(self.storage.remove_semester("s1"))
        self.assertEqual([g.id for g in self.storage.load_grades()], ["g2"])
        self.assertEqual(self.storage.load_semesters(), [])

    def test_academic_record(self):
        graph = _graph()
        self.storage.save_academic_record(graph.academic_record)
        self.assertEqual(self.storage.load_academic_record(), graph.academic_record)
        self.storage.remove_academic_record()
        self.assertIsNone(self.storage.load_academic_record())

    def test_graph_round_trip(self):
        graph = _graph()
        self.storage.save_graph(graph)
        self.assertEqual(self.storage.load_graph().to_document(), graph.to_document())


class TestCorruptData(unittest.TestCase):

    def setUp(self):
        self.storage = make_storage()

    def test_unparsable_json_loads_as_empty(self):
        _put_raw(self.storage, KEY_GRADES, "{not json")
        with self.assertLogs("services.storage", level="ERROR"):
            self.assertEqual(self.storage.load_grades(), [])

    def test_wrong_shape_loads_as_empty(self):
        _put_raw(self.storage, KEY_SEMESTERS, json.dumps({"id": "s1"}))
        with self.assertLogs("services.storage", level="ERROR"):
            self.assertEqual(self.storage.load_semesters(), [])

    def test_invalid_records_load_as_empty(self):
        _put_raw(self.storage, KEY_GRADES, json.dumps([{"id": "g1", "units": -3}]))
        with self.assertLogs("services.storage", level="ERROR"):
            self.assertEqual(self.storage.load_grades(), [])

    def test_corrupt_record_is_absent(self):
        _put_raw(self.storage, "qpi_academic_record", "[]")
        with self.assertLogs("services.storage", level="ERROR"):
            self.assertIsNone(self.storage.load_academic_record())


class TestQuota(unittest.TestCase):

    def test_write_over_quota_is_rolled_back(self):
        storage = make_storage(quota_bytes=3000)
        small = [make_grade("g1", "s1", 3, 95)]
        storage.save_grades(small)

        many = [make_grade(f"g{i}", "s1", 3, 95) for i in range(50)]
        with self.assertRaises(StorageQuotaExceeded) as ctx:
            storage.save_grades(many)

        self.assertEqual(ctx.exception.quota_bytes, 3000)
        self.assertGreater(ctx.exception.required_bytes, 3000)
        self.assertEqual(storage.load_grades(), small)

    def test_save_graph_is_all_or_nothing(self):
        storage = make_storage(quota_bytes=600)
        with self.assertRaises(StorageQuotaExceeded):
            storage.save_graph(_graph())
        self.assertEqual(storage.storage_info()["bytesUsed"], 0)

    def test_database_full_error_maps_to_quota(self):
        session = MagicMock()
        session.query.return_value.all.return_value = []
        session.commit.side_effect = OperationalError("COMMIT", {}, Exception("database or disk is full"))
        storage = AcademicStorage(lambda: session, quota_bytes=10_000)

        with self.assertRaises(StorageQuotaExceeded):
            storage.save_grades([make_grade("g1", "s1", 3, 95)])
        session.rollback.assert_called()
        session.close.assert_called()


class TestMigration(unittest.TestCase):

    def setUp(self):
        self.storage = make_storage()

    def test_v0_backfills_timestamps(self):
        doc = make_grade("g1", "s1", 3, 95).to_document()
        del doc["createdAt"]
        doc["updatedAt"] = 0
        sem = make_semester("s1").to_document()
        del sem["updatedAt"]
        _put_raw(self.storage, KEY_GRADES, json.dumps([doc]))
        _put_raw(self.storage, KEY_SEMESTERS, json.dumps([sem]))

        with self.assertLogs("services.storage", level="INFO"):
            graph = self.storage.load_graph()

        self.assertEqual(self.storage.schema_version(), CURRENT_SCHEMA_VERSION)
        self.assertGreater(graph.grades[0].created_at, 0)
        self.assertGreater(graph.grades[0].updated_at, 0)
        self.assertEqual(graph.semesters[0].created_at, STAMP)
        self.assertGreater(graph.semesters[0].updated_at, 0)

    def test_current_version_is_left_alone(self):
        self.storage.migrate()
        self.assertEqual(self.storage.migrate(), CURRENT_SCHEMA_VERSION)
        self.assertEqual(self.storage.schema_version(), CURRENT_SCHEMA_VERSION)


class TestBackup(unittest.TestCase):

    def setUp(self):
        self.storage = make_storage()

    def test_export_shape(self):
        self.storage.save_graph(_graph())
        snapshot = self.storage.export_all()
        self.assertEqual(set(snapshot), {"grades", "semesters", "academicRecord", "schemaVersion", "exportedAt"})
        self.assertEqual(len(snapshot["grades"]), 2)
        self.assertEqual(snapshot["academicRecord"]["id"], "main")
        self.assertEqual(json.loads(self.storage.export_json())["schemaVersion"], CURRENT_SCHEMA_VERSION)

    def test_import_into_fresh_store(self):
        self.storage.save_graph(_graph())
        target = make_storage()
        info = target.import_all(self.storage.export_json())

        self.assertEqual(info["gradeCount"], 2)
        self.assertTrue(info["hasAcademicRecord"])
        self.assertIsNotNone(info["lastBackup"])
        self.assertEqual(target.load_graph().to_document(), self.storage.load_graph().to_document())

    def test_missing_collections_are_left_untouched(self):
        graph = _graph()
        self.storage.save_graph(graph)
        self.storage.import_all({"grades": [], "schemaVersion": 1})

        self.assertEqual(self.storage.load_grades(), [])
        self.assertEqual(len(self.storage.load_semesters()), 1)
        self.assertIsNotNone(self.storage.load_academic_record())

    def test_invalid_snapshots_write_nothing(self):
        self.storage.save_graph(_graph())
        for bad in ("invalid json", "[1, 2]", {"grades": "not an array"}, {"semesters": [{"id": 1}]},
                    {"schemaVersion": "one"}):
            with self.subTest(bad=bad):
                with self.assertRaises(InvalidSnapshot):
                    self.storage.import_all(bad)
        self.assertEqual(len(self.storage.load_grades()), 2)
        self.assertIsNone(self.storage._get(KEY_LAST_BACKUP))

    def test_schema_version_from_snapshot(self):
        self.storage.import_all({"schemaVersion": 1})
        self.assertEqual(self.storage._get(KEY_SCHEMA_VERSION), 1)


class TestHousekeeping(unittest.TestCase):

    def test_clear_all_and_info(self):
        storage = make_storage(quota_bytes=100_000)
        storage.save_graph(_graph())
        storage.migrate()

        info = storage.storage_info()
        self.assertEqual((info["gradeCount"], info["semesterCount"]), (2, 1))
        self.assertEqual(info["schemaVersion"], CURRENT_SCHEMA_VERSION)
        self.assertGreater(info["bytesUsed"], 0)
        self.assertEqual(info["quotaBytes"], 100_000)

        storage.clear_all()
        info = storage.storage_info()
        self.assertEqual((info["gradeCount"], info["semesterCount"], info["hasAcademicRecord"]), (0, 0, False))
        self.assertEqual(info["schemaVersion"], 0)
        self.assertEqual(info["bytesUsed"], 0)


if __name__ == "__main__":
    unittest.main()
