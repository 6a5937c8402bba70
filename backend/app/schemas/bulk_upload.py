"""
Bulk upload schemas. Field aliases follow the camelCase JSON the pharmacy
settings pages already consume.
"""
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

ROW_SUCCESS = "success"
ROW_ERROR = "error"
ROW_SKIPPED = "skipped"


class RowOutcome(BaseModel):
    """Result for one spreadsheet row (row 0 = sheet-level problem)"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    row: int
    sheet: str
    medicine_name: str = Field("", alias="medicineName")
    batch_number: str = Field("", alias="batchNumber")
    status: str  # success | error | skipped
    message: str


class BulkUploadResponse(BaseModel):
    """Summary returned by POST /api/pharmacy/bulk-upload-excel"""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    total_processed: int = Field(0, alias="totalProcessed")
    success_count: int = Field(0, alias="successCount")
    error_count: int = Field(0, alias="errorCount")
    skipped_count: int = Field(0, alias="skippedCount")
    results: List[RowOutcome] = Field(default_factory=list)
    all_results: List[RowOutcome] = Field(default_factory=list, alias="allResults")


class PreviewSheet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    row_count: int = Field(0, alias="rowCount")
    valid_rows: int = Field(0, alias="validRows")
    invalid_rows: int = Field(0, alias="invalidRows")


class PreviewBatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    batch_number: str = Field(..., alias="batchNumber")
    expiry_date: Optional[str] = Field(None, alias="expiryDate")
    quantity: float = 0
    purchase_rate: float = Field(0, alias="purchaseRate")
    mrp: float = 0
    status: str = "new"  # new | existing | duplicate
    existing_batch_id: Optional[UUID] = Field(None, alias="existingBatchId")
    expiry_status: str = Field("valid", alias="expiryStatus")  # valid | expired | expiring-soon


class PreviewMedication(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    combination: Optional[str] = None
    brand: Optional[str] = None
    product: Optional[str] = None
    category: str
    batches: List[PreviewBatch] = Field(default_factory=list)
    status: str = "new"  # new | existing
    existing_medication_id: Optional[UUID] = Field(None, alias="existingMedicationId")


class PreviewMedicationTotals(BaseModel):
    total: int = 0
    new: int = 0
    existing: int = 0


class PreviewBatchTotals(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int = 0
    new: int = 0
    existing: int = 0
    duplicate: int = 0
    expired: int = 0
    expiring_soon: int = Field(0, alias="expiringSoon")


class PreviewError(BaseModel):
    row: int
    sheet: str
    message: str


class PreviewResponse(BaseModel):
    """Dry-run analysis of an upload; nothing is written"""
    model_config = ConfigDict(populate_by_name=True)

    sheets: List[PreviewSheet] = Field(default_factory=list)
    medications: PreviewMedicationTotals = Field(default_factory=PreviewMedicationTotals)
    batches: PreviewBatchTotals = Field(default_factory=PreviewBatchTotals)
    preview_data: List[PreviewMedication] = Field(default_factory=list, alias="previewData")
    errors: List[PreviewError] = Field(default_factory=list)
