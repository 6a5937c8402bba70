"""
Medication catalog schemas
"""
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class MedicationSearchItem(BaseModel):
    """Lightweight search hit for pickers and prescriptions"""
    id: UUID
    name: str
    medication_code: str
    manufacturer: Optional[str] = None
    category: Optional[str] = None
    combination: Optional[str] = None


class DeleteAllMedicationsRequest(BaseModel):
    """Body for the delete-all endpoint. Soft delete unless hard is true."""
    hard: bool = Field(default=False, description="Delete rows instead of deactivating them")
