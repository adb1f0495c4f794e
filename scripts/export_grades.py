import argparse
import logging
import sys
from pathlib import Path

from database.db import SessionLocal, init_db
from services.academic_service import AcademicService
from services.csv_export import ExportLayout, ExportProfile, export_csv, generate_filename, with_bom
from services.storage import AcademicStorage


def export_grades(out: str = None, profile: str = "full", layout: str = "flat",
                  summary: bool = False, bom: bool = False) -> Path:
    init_db()
    service = AcademicService(AcademicStorage(SessionLocal))
    graph = service.load()

    content = export_csv(graph, ExportProfile(profile), ExportLayout(layout), include_summary=summary)
    if bom:
        content = with_bom(content)

    path = Path(out or generate_filename())
    path.write_text(content, encoding="utf-8", newline="")
    print(f"✅ Exported {len(graph.grades)} grades -> {path}")
    return path


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Export the local QPI store as CSV")
    parser.add_argument("-o", "--out", default=None, help="output file (default: grades_<timestamp>.csv)")
    parser.add_argument("--profile", choices=[p.value for p in ExportProfile], default="full")
    parser.add_argument("--layout", choices=[l.value for l in ExportLayout], default="flat")
    parser.add_argument("--summary", action="store_true", help="append the academic summary block")
    parser.add_argument("--bom", action="store_true", help="prefix a UTF-8 BOM for spreadsheet apps")
    args = parser.parse_args(argv)
    if args.profile == ExportProfile.REIMPORT.value and args.layout == ExportLayout.SECTIONED.value:
        parser.error("--profile reimport needs --layout flat")

    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")
    export_grades(args.out, args.profile, args.layout, args.summary, args.bom)
    return 0


if __name__ == "__main__":
    sys.exit(main())
