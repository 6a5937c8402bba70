"""
Name -> medication id cache used while processing one upload.

The medications table has no unique constraint on name, so within a run
this cache is what stops two rows for "Paracetamol 500" and
" paracetamol 500 " from creating two catalog entries. Create one cache per
upload; it is not shared between requests.
"""
import logging
import re
import time
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import Medication

logger = logging.getLogger(__name__)

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


class MedicationResolutionError(Exception):
    """Raised when a medication can neither be created nor found."""


def normalize_name(name: str) -> str:
    """Cache key for a medication name."""
    return (name or "").strip().lower()


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_BASE36[r])
    return "".join(reversed(out))


def generate_medication_code(name: str, sequence: int, now_ms: Optional[int] = None) -> str:
    """
    Business code for a new medication: MED-<first 4 alphanumerics>-<time suffix><sequence>.
    The time suffix is the last 4 base-36 digits of the current epoch milliseconds.
    """
    prefix = re.sub(r"[^a-zA-Z0-9]", "", name or "")[:4].upper()
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    stamp = _to_base36(now_ms)[-4:]
    return f"MED-{prefix}-{stamp}{sequence}"


class MedicationCache:
    """Caller-owned map of normalized medication name to id for one upload."""

    def __init__(self):
        self._ids: Dict[str, UUID] = {}

    def __contains__(self, name: str) -> bool:
        return normalize_name(name) in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def get(self, name: str) -> Optional[UUID]:
        return self._ids.get(normalize_name(name))

    def put(self, name: str, medication_id: UUID) -> None:
        self._ids[normalize_name(name)] = medication_id

    def preload(self, db: Session) -> int:
        """Load (id, name) for every existing medication. Returns number of cached names."""
        rows = db.query(Medication.id, Medication.name).all()
        for medication_id, name in rows:
            if name:
                self.put(name, medication_id)
        logger.info("Medication cache preloaded with %d names", len(self._ids))
        return len(self._ids)

    def resolve_or_create(self, db: Session, name: str, fields: Dict, sequence: int = 0) -> UUID:
        """
        Return the id of the medication called ``name``, creating it when unknown.

        ``fields`` are the extra columns for a new medication (category,
        manufacturer, prices, ...). Creation is committed immediately so the
        cached id stays valid even if a later step for the same row fails.
        """
        cached = self.get(name)
        if cached:
            return cached

        medication = Medication(
            medication_code=generate_medication_code(name, sequence),
            name=name.strip(),
            total_stock=0,
            available_stock=0,
            **fields,
        )
        try:
            db.add(medication)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Creating medication '%s' failed, looking it up instead: %s", name, e)
            found = (
                db.query(Medication.id)
                .filter(func.lower(func.trim(Medication.name)) == normalize_name(name))
                .first()
            )
            if found:
                self.put(name, found[0])
                return found[0]
            raise MedicationResolutionError(f"Failed to create medication: {db_error_message(e)}") from e

        self.put(name, medication.id)
        return medication.id


def db_error_message(error: SQLAlchemyError) -> str:
    """Driver message without SQLAlchemy's statement/parameter dump."""
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else str(error).split("\n")[0]
