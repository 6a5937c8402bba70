"""
Load medications and batches from a stock workbook directly into the database (development only).

Bypasses HTTP. Runs the same row processor as POST /api/pharmacy/bulk-upload-excel:
every sheet is read, medications are de-duplicated by name, batches already on
file are skipped.

Usage (from backend/):
  python scripts/load_medications_from_excel.py --file path/to/stock.xlsx

Optional:
  --db-url URL   Override database URL (default: from DATABASE_URL / DB_* env)
  --dry-run      Parse file and print sheet/row counts only; do not write to DB

Requires: openpyxl (xlsx) or pandas (csv).
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add backend to path when run as script
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from app import models  # noqa: F401  (registers tables on Base)
from app.database import Base, SessionLocal, init_db
from app.schemas.bulk_upload import ROW_SUCCESS
from app.services.bulk_upload_service import BulkUploadService, WorkbookReadError, read_workbook


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Load medications and batches from Excel/CSV into DB (development only).",
        epilog="Example: python scripts/load_medications_from_excel.py --file ./stock_march.xlsx --dry-run",
    )
    parser.add_argument(
        "--file",
        "-f",
        type=Path,
        required=True,
        help="Path to Excel (.xlsx) or CSV file",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL (default: from DATABASE_URL / DB_* env)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only parse file and print sheet/row counts; do not write to DB",
    )
    args = parser.parse_args(argv)

    path = args.file
    if not path.is_file():
        print(f"ERROR: File not found: {path}")
        return 1

    try:
        sheets = read_workbook(path.read_bytes(), path.name)
    except WorkbookReadError as e:
        print(f"ERROR: {e}")
        return 1

    for sheet in sheets:
        print(f"Sheet '{sheet.name}': {len(sheet.rows)} data rows")

    if args.dry_run:
        print("Dry-run: not writing to DB.")
        return 0

    if args.db_url:
        from sqlalchemy import create_engine
        from sqlalchemy.orm import sessionmaker
        engine = create_engine(args.db_url)
        Base.metadata.create_all(bind=engine)
        session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        db = session_factory()
    else:
        init_db()
        db = SessionLocal()

    try:
        result = BulkUploadService.process_sheets(db, sheets)
        print(f"Processed {result.total_processed} rows.")
        print(f"  Success: {result.success_count}")
        print(f"  Errors:  {result.error_count}")
        print(f"  Skipped: {result.skipped_count}")
        problems = [o for o in result.outcomes if o.status != ROW_SUCCESS]
        for o in problems[:10]:
            print(f"  [{o.status}] {o.sheet} row {o.row}: {o.medicine_name or ''} {o.message}")
        if len(problems) > 10:
            print(f"  ... and {len(problems) - 10} more")
        return 0
    except Exception as e:
        db.rollback()
        print(f"ERROR: {e}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
