"""
Medication catalog and batch (lot) models
"""
from sqlalchemy import Column, String, Boolean, Numeric, ForeignKey, Date, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP
import uuid
from app.database import Base


class Medication(Base):
    """Catalog entry for one medicine. Stock totals are the sum of its batches."""
    __tablename__ = "medications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    medication_code = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False, index=True)  # de-duplication key (case/whitespace-insensitive)
    generic_name = Column(String(255))
    combination = Column(String(255))
    manufacturer = Column(String(255))  # brand
    category = Column(String(100))
    dosage_form = Column(String(100))  # product column of the upload
    strength = Column(String(100))  # ampoule column of the upload
    unit = Column(String(50), default="units")
    total_stock = Column(Numeric(14, 2), nullable=False, default=0)
    available_stock = Column(Numeric(14, 2), nullable=False, default=0)
    minimum_stock_level = Column(Numeric(14, 2), default=0)
    purchase_price = Column(Numeric(14, 2), default=0)
    selling_price = Column(Numeric(14, 2), default=0)
    mrp = Column(Numeric(14, 2), default=0)
    prescription_required = Column(Boolean, default=False)
    status = Column(String(20), default="active")  # active | inactive
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    batches = relationship("MedicineBatch", back_populates="medication", cascade="all, delete-orphan")


class MedicineBatch(Base):
    """Received lot of a medication, tracked separately for expiry and stock"""
    __tablename__ = "medicine_batches"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    medicine_id = Column(Uuid(as_uuid=True), ForeignKey("medications.id", ondelete="CASCADE"), nullable=False)
    batch_number = Column(String(100), nullable=False)
    expiry_date = Column(Date, nullable=False)  # 2099-12-31 when the upload had no readable date
    received_quantity = Column(Numeric(14, 2), nullable=False, default=0)
    current_quantity = Column(Numeric(14, 2), nullable=False, default=0)
    purchase_price = Column(Numeric(14, 2), default=0)
    selling_price = Column(Numeric(14, 2), default=0)
    status = Column(String(20), default="active")
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    medication = relationship("Medication", back_populates="batches")

    __table_args__ = (
        UniqueConstraint("medicine_id", "batch_number", name="uq_medicine_batches_medicine_batch"),
        {"comment": "One row per (medication, batch number). Re-uploads of the same pair are skipped."},
    )
