"""
Dry run of the bulk upload: what would be created, what already exists,
and which batches are expired or close to expiry. Reads only.
"""
import logging
from datetime import date
from typing import Dict, Iterable, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import settings
from app.models import MedicineBatch
from app.schemas.bulk_upload import (
    PreviewBatch, PreviewError, PreviewMedication, PreviewResponse, PreviewSheet,
)
from app.services import column_mapper as cols
from app.services.bulk_upload_service import SheetData, extract_row, read_workbook
from app.services.category_service import derive_category
from app.services.medication_cache import MedicationCache, normalize_name
from app.utils.expiry import expiry_status, normalize_expiry_date

logger = logging.getLogger(__name__)


class PreviewService:
    """Analyse an upload against the current catalog without writing"""

    @staticmethod
    def preview_file(db: Session, contents: bytes, filename: Optional[str] = None,
                     today: Optional[date] = None) -> PreviewResponse:
        sheets = read_workbook(contents, filename)
        return PreviewService.preview_sheets(db, sheets, today=today)

    @staticmethod
    def preview_sheets(db: Session, sheets: Iterable[SheetData], today: Optional[date] = None) -> PreviewResponse:
        today = today or date.today()
        known = MedicationCache()
        known.preload(db)
        existing_batches: Dict[Tuple[UUID, str], UUID] = {
            (medicine_id, batch_number): batch_id
            for batch_id, medicine_id, batch_number in db.query(
                MedicineBatch.id, MedicineBatch.medicine_id, MedicineBatch.batch_number
            ).all()
        }

        result = PreviewResponse()
        medications: Dict[str, PreviewMedication] = {}
        seen_batches: Set[Tuple[str, str]] = set()

        for sheet in sheets:
            column_map = cols.map_columns(sheet.headers)
            if cols.missing_required(column_map):
                result.errors.append(PreviewError(row=0, sheet=sheet.name, message='Could not find "Medicine" column'))
                continue

            valid_rows = 0
            invalid_rows = 0
            for row in sheet.rows:
                data = extract_row(row, column_map)
                if not data.medicine_name:
                    invalid_rows += 1
                    continue
                valid_rows += 1

                key = normalize_name(data.medicine_name)
                existing_id = known.get(data.medicine_name)
                med = medications.get(key)
                if med is None:
                    med = PreviewMedication(
                        name=data.medicine_name,
                        combination=data.combination or None,
                        brand=data.brand or None,
                        product=data.product or None,
                        category=derive_category(data.medicine_name, data.combination, data.product),
                        status="existing" if existing_id else "new",
                        existing_medication_id=existing_id,
                    )
                    medications[key] = med

                if not data.batch_number:
                    continue

                expiry_date = normalize_expiry_date(data.expiry_raw)
                existing_batch_id = existing_batches.get((existing_id, data.batch_number)) if existing_id else None
                if existing_batch_id:
                    batch_status = "existing"
                elif (key, data.batch_number) in seen_batches:
                    batch_status = "duplicate"
                else:
                    batch_status = "new"
                seen_batches.add((key, data.batch_number))

                med.batches.append(PreviewBatch(
                    batch_number=data.batch_number,
                    expiry_date=expiry_date,
                    quantity=data.qty,
                    purchase_rate=data.purchase_rate,
                    mrp=data.mrp,
                    status=batch_status,
                    existing_batch_id=existing_batch_id,
                    expiry_status=expiry_status(expiry_date, today, settings.EXPIRING_SOON_DAYS),
                ))

            result.sheets.append(PreviewSheet(
                name=sheet.name,
                row_count=len(sheet.rows),
                valid_rows=valid_rows,
                invalid_rows=invalid_rows,
            ))

        result.preview_data = list(medications.values())
        result.medications.total = len(result.preview_data)
        result.medications.new = sum(1 for m in result.preview_data if m.status == "new")
        result.medications.existing = sum(1 for m in result.preview_data if m.status == "existing")
        for med in result.preview_data:
            for batch in med.batches:
                result.batches.total += 1
                if batch.status == "new":
                    result.batches.new += 1
                elif batch.status == "existing":
                    result.batches.existing += 1
                else:
                    result.batches.duplicate += 1
                if batch.expiry_status == "expired":
                    result.batches.expired += 1
                elif batch.expiry_status == "expiring-soon":
                    result.batches.expiring_soon += 1

        logger.info(
            "Upload preview: %d medications (%d new), %d batches (%d new)",
            result.medications.total, result.medications.new, result.batches.total, result.batches.new,
        )
        return result
