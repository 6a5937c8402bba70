"""
Medication catalog queries and the danger-zone reset used before re-importing.
"""
import logging
from typing import Dict, List

from sqlalchemy import or_, func
from sqlalchemy.orm import Session

from app.models import Medication, MedicineBatch
from app.schemas.medication import MedicationSearchItem

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20


class CatalogService:
    """Medication search and bulk reset"""

    @staticmethod
    def search_medications(db: Session, query: str, limit: int = SEARCH_LIMIT) -> List[MedicationSearchItem]:
        """Active medications whose name, combination or code contains ``query`` (case-insensitive)."""
        term = f"%{query.strip().lower()}%"
        rows = (
            db.query(
                Medication.id,
                Medication.name,
                Medication.medication_code,
                Medication.manufacturer,
                Medication.category,
                Medication.combination,
            )
            .filter(
                Medication.is_active == True,  # noqa: E712
                or_(
                    func.lower(Medication.name).like(term),
                    func.lower(Medication.combination).like(term),
                    func.lower(Medication.medication_code).like(term),
                ),
            )
            .order_by(Medication.name.asc())
            .limit(limit)
            .all()
        )
        return [MedicationSearchItem.model_validate(row, from_attributes=True) for row in rows]

    @staticmethod
    def delete_all_medications(db: Session, hard: bool = False) -> Dict:
        """
        Hard: delete every batch, then every medication.
        Soft: deactivate both and zero their quantities, keeping rows for history.
        Counts are taken before the change.
        """
        batch_count = db.query(func.count(MedicineBatch.id)).scalar() or 0
        medication_count = db.query(func.count(Medication.id)).scalar() or 0

        try:
            if hard:
                db.query(MedicineBatch).delete(synchronize_session=False)
                db.query(Medication).delete(synchronize_session=False)
            else:
                db.query(MedicineBatch).update({
                    MedicineBatch.is_active: False,
                    MedicineBatch.status: "inactive",
                    MedicineBatch.current_quantity: 0,
                    MedicineBatch.received_quantity: 0,
                    MedicineBatch.updated_at: func.now(),
                }, synchronize_session=False)
                db.query(Medication).update({
                    Medication.is_active: False,
                    Medication.status: "inactive",
                    Medication.total_stock: 0,
                    Medication.available_stock: 0,
                    Medication.updated_at: func.now(),
                }, synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

        mode = "hard" if hard else "soft"
        logger.warning("Medication catalog reset (%s): %d batches, %d medications", mode, batch_count, medication_count)
        return {
            "success": True,
            "mode": mode,
            "deletedBatches": batch_count,
            "deletedMedications": medication_count,
        }
