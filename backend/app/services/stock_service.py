"""
Batch and stock writes shared by the upload endpoints.

Stock on a medication is a running total: every new batch adds its received
quantity to both total_stock and available_stock. Each write commits on its
own so a failure in one upload row cannot roll back rows before it.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.models import Medication, MedicineBatch
from app.utils.cells import parse_number, safe_strip
from app.utils.expiry import EXPIRY_FALLBACK_DATE, normalize_expiry_date

logger = logging.getLogger(__name__)


def _dec(value) -> Decimal:
    return Decimal(str(value or 0))


class StockService:
    """Batch insert and stock aggregate updates"""

    @staticmethod
    def find_batch(db: Session, medicine_id: UUID, batch_number: str) -> Optional[MedicineBatch]:
        """Existing batch for (medication, batch number), if any."""
        return (
            db.query(MedicineBatch)
            .filter(
                MedicineBatch.medicine_id == medicine_id,
                MedicineBatch.batch_number == batch_number,
            )
            .first()
        )

    @staticmethod
    def create_batch(
        db: Session,
        medicine_id: UUID,
        batch_number: str,
        expiry_date: Optional[str],
        quantity: float,
        purchase_price: float = 0,
        selling_price: float = 0,
    ) -> MedicineBatch:
        """
        Insert a batch with received = current = quantity and commit.
        ``expiry_date`` is ISO text; None stores the 2099-12-31 sentinel.
        On a database error the session is rolled back and the error re-raised.
        """
        batch = MedicineBatch(
            medicine_id=medicine_id,
            batch_number=batch_number,
            expiry_date=date.fromisoformat(expiry_date or EXPIRY_FALLBACK_DATE),
            received_quantity=_dec(quantity),
            current_quantity=_dec(quantity),
            purchase_price=_dec(purchase_price),
            selling_price=_dec(selling_price),
            status="active",
            is_active=True,
        )
        try:
            db.add(batch)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return batch

    @staticmethod
    def add_batch_stock(
        db: Session,
        medication_id: UUID,
        quantity: float,
        purchase_price: float = 0,
        mrp: float = 0,
    ) -> Optional[Medication]:
        """
        Re-read the medication and add ``quantity`` to total and available stock.
        Non-zero prices replace the medication's current prices.
        Returns None when the medication no longer exists.
        """
        medication = db.query(Medication).filter(Medication.id == medication_id).first()
        if not medication:
            logger.warning("Medication %s vanished before its stock could be updated", medication_id)
            return None
        medication.total_stock = _dec(medication.total_stock) + _dec(quantity)
        medication.available_stock = _dec(medication.available_stock) + _dec(quantity)
        StockService._apply_prices(medication, purchase_price, mrp)
        medication.updated_at = func.now()
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        return medication

    @staticmethod
    def update_prices(db: Session, medication_id: UUID, purchase_price: float = 0, mrp: float = 0) -> None:
        """Refresh prices without touching stock (rows without batch data)."""
        medication = db.query(Medication).filter(Medication.id == medication_id).first()
        if not medication:
            return
        StockService._apply_prices(medication, purchase_price, mrp)
        medication.updated_at = func.now()
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def upload_batches(db: Session, batches: List[Dict]) -> Dict:
        """
        Insert batches for known medications (JSON upload from the batch
        validation page) and add each batch to its medication's stock.
        Entries without medicationId/batchNumber, for unknown medications, or
        for a batch already on file count as errors.
        """
        success_count = 0
        error_count = 0
        for entry in batches:
            if not isinstance(entry, dict):
                error_count += 1
                continue
            batch_number = safe_strip(entry.get("batchNumber"))
            try:
                medication_id = UUID(str(entry.get("medicationId")))
            except ValueError:
                medication_id = None
            if not medication_id or not batch_number:
                error_count += 1
                continue
            if not db.query(Medication.id).filter(Medication.id == medication_id).first():
                logger.warning("Batch %s refers to unknown medication %s", batch_number, medication_id)
                error_count += 1
                continue
            if StockService.find_batch(db, medication_id, batch_number):
                logger.info("Batch %s already exists for medication %s", batch_number, medication_id)
                error_count += 1
                continue

            quantity = parse_number(entry.get("quantity"))
            purchase_rate = parse_number(entry.get("purchaseRate"))
            mrp = parse_number(entry.get("mrp"))
            try:
                StockService.create_batch(
                    db,
                    medicine_id=medication_id,
                    batch_number=batch_number,
                    expiry_date=normalize_expiry_date(entry.get("expiryDate")),
                    quantity=quantity,
                    purchase_price=purchase_rate,
                    selling_price=mrp,  # MRP doubles as selling price
                )
                StockService.add_batch_stock(db, medication_id, quantity)
            except SQLAlchemyError as e:
                logger.error("Error inserting batch %s: %s", batch_number, e)
                error_count += 1
                continue
            success_count += 1

        return {"success": True, "successCount": success_count, "errorCount": error_count}

    @staticmethod
    def _apply_prices(medication: Medication, purchase_price: float, mrp: float) -> None:
        # Zero means "not in the sheet"; keep what we have
        if purchase_price:
            medication.purchase_price = _dec(purchase_price)
        if mrp:
            medication.selling_price = _dec(mrp)
            medication.mrp = _dec(mrp)
