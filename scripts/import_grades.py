import argparse
import logging
import sys

from database.db import SessionLocal, init_db
from services.academic_service import AcademicService
from services.csv_import import import_csv_file
from services.errors import ServiceError
from services.storage import AcademicStorage

CSV_PATH = "data/grades.csv"  # ✅ 기본 파일 경로


def migrate_grades(path: str, dry_run: bool = False, default_semester_id: str = None) -> int:
    init_db()
    result = import_csv_file(path)

    print(f"Rows: {result.total_rows}  valid: {result.imported_records}  skipped: {result.skipped_records}")
    for key, rows in result.groups.items():
        print(f"  [{key or '(no semester)'}] rows {', '.join(map(str, rows))}")
    for error in result.errors:
        print(f"  ✗ {error.message}")

    if dry_run:
        print("Dry run, nothing stored")
        return 0 if result.is_valid else 1

    service = AcademicService(AcademicStorage(SessionLocal))
    service.load()
    summary = service.commit_import(result, default_semester_id=default_semester_id)
    print(f"✅ Imported {summary.imported} grades ({len(summary.created_semesters)} new semesters)")
    if service.get_cumulative_qpi() is not None:
        print(f"Cumulative QPI: {service.get_cumulative_qpi():.2f}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import a grades CSV into the local QPI store")
    parser.add_argument("file", nargs="?", default=CSV_PATH)
    parser.add_argument("--dry-run", action="store_true", help="validate only, do not store")
    parser.add_argument("--semester", dest="default_semester_id", default=None,
                        help="semester id for rows without semester / academic year")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")
    try:
        return migrate_grades(args.file, dry_run=args.dry_run, default_semester_id=args.default_semester_id)
    except ServiceError as e:
        print(f"✗ {e.code}: {e.message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
