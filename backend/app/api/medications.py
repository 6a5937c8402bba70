"""
Medication catalog API: search, CSV catalog upload and batch JSON upload
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from sqlalchemy.orm import Session

from app.api.pharmacy import error_response
from app.database import get_db
from app.services.catalog_service import CatalogService
from app.services.medication_csv_service import MedicationCsvService
from app.services.stock_service import StockService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/medications/search")
def search_medications(
    q: Optional[str] = Query(None, description="Name, combination or medication code"),
    db: Session = Depends(get_db),
):
    """Search active medications (max 20). Empty query returns an empty list."""
    if not q or not q.strip():
        return {"medications": []}
    try:
        hits = CatalogService.search_medications(db, q)
        return {"medications": [hit.model_dump(mode="json") for hit in hits]}
    except Exception as e:
        logger.error(f"Error searching medications: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Error searching medications")


@router.post("/upload-medications")
async def upload_medications(
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    """Create catalog entries from a CSV with Medicine, Combination, Brand and Product columns."""
    if file is None:
        return error_response(status.HTTP_400_BAD_REQUEST, "No file provided")
    try:
        contents = await file.read()
        rows = MedicationCsvService.read_csv(contents)
        return MedicationCsvService.import_medications(db, rows)
    except ValueError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except Exception as e:
        logger.error(f"Medication CSV upload error: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Unknown error")


@router.post("/upload-batches")
async def upload_batches(request: Request, db: Session = Depends(get_db)):
    """
    Insert batches for existing medications from JSON:
    {"batches": [{"medicationId", "batchNumber", "expiryDate", "quantity", "purchaseRate", "mrp"}]}
    """
    try:
        payload = await request.json()
    except ValueError:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid data format")
    batches = payload.get("batches") if isinstance(payload, dict) else None
    if not isinstance(batches, list):
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid data format")
    try:
        return StockService.upload_batches(db, batches)
    except Exception as e:
        logger.error(f"Batch upload error: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Unknown error")
