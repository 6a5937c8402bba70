"""
CSV catalog upload: creates medications (no batches, no stock) from a
simple Medicine / Combination / Brand / Product sheet.
"""
import logging
from io import BytesIO
from typing import Dict, List, Optional

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import Medication
from app.services.bulk_upload_service import WorkbookReadError
from app.services.category_service import derive_therapeutic_class
from app.services.medication_cache import db_error_message, generate_medication_code
from app.utils.cells import safe_strip

logger = logging.getLogger(__name__)

NOT_SPECIFIED = "Not specified"
MAX_ERRORS_RETURNED = 10


def _column_value(row: Dict, name: str) -> Optional[str]:
    """Value of a column by case/space-insensitive header name."""
    if name in row:
        return safe_strip(row[name])
    wanted = name.replace(" ", "").lower()
    for key, value in row.items():
        if str(key).replace(" ", "").lower() == wanted:
            return safe_strip(value)
    return None


class MedicationCsvService:
    """Catalog-only CSV import"""

    @staticmethod
    def read_csv(contents: bytes) -> List[Dict]:
        """Parse CSV bytes into row dicts (all values as text, empty cells as None)."""
        try:
            df = pd.read_csv(BytesIO(contents), dtype=str, keep_default_na=False, skipinitialspace=True)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise WorkbookReadError(f"Could not read CSV file: {e}") from e
        df.columns = [str(c).strip().strip('"') for c in df.columns]
        raw = df.to_dict("records")
        return [{k: (None if pd.isna(v) else v) for k, v in row.items()} for row in raw]

    @staticmethod
    def import_medications(db: Session, rows: List[Dict]) -> Dict:
        """
        Insert one medication per row unless a medication with the exact same
        name exists. Returns counters and the first few errors.
        """
        success_count = 0
        error_count = 0
        duplicate_count = 0
        errors: List[Dict] = []

        for idx, row in enumerate(rows):
            row_number = idx + 2  # header is row 1
            name = _column_value(row, "Medicine")
            if not name:
                errors.append({"row": row_number, "field": "Medicine", "message": "Medicine name is required"})
                error_count += 1
                continue

            existing = db.query(Medication.id).filter(Medication.name == name).first()
            if existing:
                duplicate_count += 1
                continue

            combination = _column_value(row, "Combination")
            medication = Medication(
                medication_code=generate_medication_code(name, row_number),
                name=name,
                generic_name=combination or NOT_SPECIFIED,
                combination=combination,
                manufacturer=_column_value(row, "Brand") or NOT_SPECIFIED,
                category=derive_therapeutic_class(name, combination or ""),
                dosage_form=_column_value(row, "Product") or NOT_SPECIFIED,
                strength="N/A",
                unit="N/A",
                total_stock=0,
                available_stock=0,
                minimum_stock_level=0,
                purchase_price=0,
                selling_price=0,
                mrp=0,
                prescription_required=False,
                status="active",
                is_active=True,
            )
            try:
                db.add(medication)
                db.commit()
                success_count += 1
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Error inserting medication '%s' from row %d: %s", name, row_number, e)
                errors.append({"row": row_number, "message": db_error_message(e)})
                error_count += 1

        logger.info(
            "CSV medication upload: %d rows, %d created, %d duplicates, %d errors",
            len(rows), success_count, duplicate_count, error_count,
        )
        return {
            "success": True,
            "totalRows": len(rows),
            "successCount": success_count,
            "errorCount": error_count,
            "duplicateCount": duplicate_count,
            "errors": errors[:MAX_ERRORS_RETURNED],
        }
