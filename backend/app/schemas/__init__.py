"""
Pydantic schemas for request/response validation
"""
from .bulk_upload import (
    RowOutcome, BulkUploadResponse,
    PreviewResponse, PreviewMedication, PreviewBatch, PreviewSheet,
)
from .medication import MedicationSearchItem, DeleteAllMedicationsRequest

__all__ = [
    "RowOutcome",
    "BulkUploadResponse",
    "PreviewResponse",
    "PreviewMedication",
    "PreviewBatch",
    "PreviewSheet",
    "MedicationSearchItem",
    "DeleteAllMedicationsRequest",
]
