"""
Bulk medication + batch upload from supplier stock sheets.

One request, one pass, best effort:
- every sheet of the workbook is read; its header row is mapped to fields
- each data row resolves (or creates) its medication through a per-upload
  MedicationCache, then inserts its batch and adds the batch quantity to the
  medication's stock
- a failing row is rolled back on its own and reported; the upload never
  stops early, and every row gets an outcome in the response

Rows are processed strictly one after another; the cache is mutated as rows
go and is not safe to share between concurrent workers.
"""
import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, Iterable, List, Optional, Sequence

import openpyxl
import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.schemas.bulk_upload import (
    BulkUploadResponse, RowOutcome, ROW_ERROR, ROW_SKIPPED, ROW_SUCCESS,
)
from app.services import column_mapper as cols
from app.services.category_service import derive_category, derive_unit
from app.services.medication_cache import MedicationCache, MedicationResolutionError, db_error_message
from app.services.stock_service import StockService
from app.utils.cells import cell_text, parse_number
from app.utils.expiry import normalize_expiry_date

logger = logging.getLogger(__name__)

NO_BATCH_LABEL = "(none)"


class WorkbookReadError(ValueError):
    """Uploaded file could not be read as a workbook or CSV."""


@dataclass
class SheetData:
    """Header row plus data rows of one sheet (cells as read, not yet converted)."""
    name: str
    headers: List = field(default_factory=list)
    rows: List[Sequence] = field(default_factory=list)


@dataclass
class UploadRow:
    """Fields extracted from one data row"""
    medicine_name: str
    batch_number: str = ""
    purchase_rate: float = 0.0
    mrp: float = 0.0
    expiry_raw: object = None
    qty: float = 0.0
    pack: float = 1.0
    combination: str = ""
    route: str = ""
    ampoule: str = ""
    brand: str = ""
    product: str = ""


def read_workbook(contents: bytes, filename: Optional[str] = None) -> List[SheetData]:
    """
    Parse upload bytes into sheets. ``.csv`` files become a single sheet named
    after the file; anything else is opened as an Excel workbook.
    """
    if not contents:
        raise WorkbookReadError("Uploaded file is empty")
    if filename and filename.lower().endswith(".csv"):
        return [_read_csv(contents, filename)]
    try:
        workbook = openpyxl.load_workbook(BytesIO(contents), data_only=True)
    except Exception as e:
        raise WorkbookReadError(f"Could not read Excel file: {e}") from e

    sheets: List[SheetData] = []
    try:
        for worksheet in workbook.worksheets:
            rows = list(worksheet.iter_rows(values_only=True))
            headers = [cell_text(h) for h in rows[0]] if rows else []
            sheets.append(SheetData(name=worksheet.title, headers=headers, rows=rows[1:]))
    finally:
        workbook.close()
    return sheets


def _read_csv(contents: bytes, filename: str) -> SheetData:
    try:
        df = pd.read_csv(BytesIO(contents), header=None, dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise WorkbookReadError(f"Could not read CSV file: {e}") from e
    rows = df.values.tolist()
    headers = [cell_text(h) for h in rows[0]] if rows else []
    name = filename.rsplit("/", 1)[-1].rsplit(".", 1)[0] or "CSV"
    return SheetData(name=name, headers=headers, rows=rows[1:])


def extract_row(row: Sequence, column_map: Dict[str, int]) -> UploadRow:
    """Pull every mapped field out of a data row."""
    def value(name):
        return cols.get_cell(row, column_map, name)

    return UploadRow(
        medicine_name=cell_text(value(cols.MEDICINE)),
        batch_number=cell_text(value(cols.BATCH)),
        purchase_rate=parse_number(value(cols.PURCHASE_RATE)),
        mrp=parse_number(value(cols.MRP)),
        expiry_raw=value(cols.EXPIRY),
        qty=parse_number(value(cols.QTY)),
        pack=parse_number(value(cols.PACK), default=1.0),
        combination=cell_text(value(cols.COMBINATION)),
        route=cell_text(value(cols.ROUTE)),
        ampoule=cell_text(value(cols.AMPOULE)),
        brand=cell_text(value(cols.BRAND)),
        product=cell_text(value(cols.PRODUCT)),
    )


def new_medication_fields(data: UploadRow) -> Dict:
    """Columns for a medication first seen in this upload."""
    return {
        "generic_name": data.combination or None,
        "combination": data.combination or None,
        "manufacturer": data.brand or None,
        "category": derive_category(data.medicine_name, data.combination, data.product),
        "dosage_form": data.product or None,
        "strength": data.ampoule or None,
        "unit": derive_unit(data.product),
        "minimum_stock_level": 10,
        "purchase_price": data.purchase_rate,
        "selling_price": data.mrp,
        "mrp": data.mrp,
        "prescription_required": True,
        "status": "active",
        "is_active": True,
    }


class UploadResult:
    """Outcomes and counters for one upload"""

    def __init__(self):
        self.outcomes: List[RowOutcome] = []
        self.total_processed = 0
        self.success_count = 0
        self.error_count = 0
        self.skipped_count = 0

    def count_row(self) -> None:
        self.total_processed += 1

    def skip_blank_row(self) -> None:
        self.skipped_count += 1

    def record(self, outcome: RowOutcome, counted: bool = True) -> None:
        """
        Append an outcome. Success and error outcomes bump their counters;
        skipped outcomes (batch already on file) and uncounted sheet-level
        errors are reported without touching the counters.
        """
        self.outcomes.append(outcome)
        if not counted:
            return
        if outcome.status == ROW_SUCCESS:
            self.success_count += 1
        elif outcome.status == ROW_ERROR:
            self.error_count += 1

    def to_response(self, limit: Optional[int] = None) -> BulkUploadResponse:
        limit = settings.BULK_UPLOAD_RESULT_LIMIT if limit is None else limit
        return BulkUploadResponse(
            success=True,
            total_processed=self.total_processed,
            success_count=self.success_count,
            error_count=self.error_count,
            skipped_count=self.skipped_count,
            results=self.outcomes[:limit],
            all_results=list(self.outcomes),
        )


class BulkUploadService:
    """Row processor for the Excel/CSV bulk upload"""

    @staticmethod
    def upload_file(db: Session, contents: bytes, filename: Optional[str] = None,
                    cache: Optional[MedicationCache] = None) -> UploadResult:
        """Read the upload and process every sheet. Raises WorkbookReadError for unreadable files."""
        sheets = read_workbook(contents, filename)
        return BulkUploadService.process_sheets(db, sheets, cache=cache)

    @staticmethod
    def process_sheets(db: Session, sheets: Iterable[SheetData],
                       cache: Optional[MedicationCache] = None) -> UploadResult:
        """Process sheets in order. A new cache is created and preloaded unless one is passed in."""
        if cache is None:
            cache = MedicationCache()
            cache.preload(db)
        result = UploadResult()

        for sheet in sheets:
            column_map = cols.map_columns(sheet.headers)
            if cols.missing_required(column_map):
                logger.warning("Sheet '%s' has no medicine column; skipping it", sheet.name)
                result.record(RowOutcome(
                    row=0,
                    sheet=sheet.name,
                    status=ROW_ERROR,
                    message=f'Sheet "{sheet.name}": Could not find "Medicine" column',
                ), counted=False)
                continue

            logger.info("Processing sheet '%s' (%d data rows)", sheet.name, len(sheet.rows))
            for offset, row in enumerate(sheet.rows):
                row_number = offset + 2  # header is row 1
                result.count_row()
                data = extract_row(row, column_map)
                if not data.medicine_name:
                    result.skip_blank_row()
                    continue
                outcome = BulkUploadService._process_row(
                    db, cache, sheet.name, row_number, data, result.total_processed
                )
                result.record(outcome)

        logger.info(
            "Bulk upload finished: %d processed, %d success, %d errors, %d skipped",
            result.total_processed, result.success_count, result.error_count, result.skipped_count,
        )
        return result

    @staticmethod
    def _process_row(db: Session, cache: MedicationCache, sheet_name: str, row_number: int,
                     data: UploadRow, sequence: int) -> RowOutcome:
        def outcome(status: str, message: str, batch_number: Optional[str] = None) -> RowOutcome:
            return RowOutcome(
                row=row_number,
                sheet=sheet_name,
                medicine_name=data.medicine_name,
                batch_number=data.batch_number if batch_number is None else batch_number,
                status=status,
                message=message,
            )

        try:
            try:
                medication_id = cache.resolve_or_create(
                    db, data.medicine_name, new_medication_fields(data), sequence=sequence
                )
            except MedicationResolutionError as e:
                logger.warning("Row %d of '%s': %s", row_number, sheet_name, e)
                return outcome(ROW_ERROR, str(e))

            if not data.batch_number:
                StockService.update_prices(db, medication_id, data.purchase_rate, data.mrp)
                return outcome(ROW_SUCCESS, "Medication created/updated (no batch data)", NO_BATCH_LABEL)

            if StockService.find_batch(db, medication_id, data.batch_number):
                return outcome(ROW_SKIPPED, "Batch already exists")

            expiry_date = normalize_expiry_date(data.expiry_raw)
            try:
                StockService.create_batch(
                    db,
                    medicine_id=medication_id,
                    batch_number=data.batch_number,
                    expiry_date=expiry_date,
                    quantity=data.qty,
                    purchase_price=data.purchase_rate,
                    selling_price=data.mrp,
                )
            except SQLAlchemyError as e:
                logger.warning("Row %d of '%s': batch insert failed: %s", row_number, sheet_name, e)
                return outcome(ROW_ERROR, f"Batch insert failed: {db_error_message(e)}")

            StockService.add_batch_stock(db, medication_id, data.qty, data.purchase_rate, data.mrp)
            return outcome(ROW_SUCCESS, "Medication & batch uploaded")

        except Exception as e:
            db.rollback()
            logger.error("Row %d of '%s' failed: %s", row_number, sheet_name, e, exc_info=True)
            message = db_error_message(e) if isinstance(e, SQLAlchemyError) else (str(e) or "Unknown error")
            return outcome(ROW_ERROR, message)
