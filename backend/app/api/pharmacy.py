"""
Pharmacy bulk upload API: Excel/CSV stock sheets, dry-run preview, and the
danger-zone catalog reset.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.schemas.medication import DeleteAllMedicationsRequest
from app.services.bulk_upload_service import BulkUploadService
from app.services.catalog_service import CatalogService
from app.services.preview_service import PreviewService

logger = logging.getLogger(__name__)
router = APIRouter()


def error_response(status_code: int, message: str) -> JSONResponse:
    """Error body used by the upload endpoints: {"error": message}."""
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/bulk-upload-excel")
async def bulk_upload_excel(
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    """
    Upload medications and batches from an Excel workbook (every sheet) or a CSV.

    Each row gets an outcome (success / error / skipped). Row failures never
    stop the upload; only an unreadable file fails the whole request.
    Returns counters, the first results for display, and allResults.
    """
    if file is None:
        return error_response(status.HTTP_400_BAD_REQUEST, "No file provided")
    try:
        contents = await file.read()
        logger.info(f"Bulk upload of '{file.filename}' ({len(contents)} bytes)")
        result = BulkUploadService.upload_file(db, contents, file.filename)
        return result.to_response().model_dump(by_alias=True, mode="json")
    except ValueError as e:
        logger.warning(f"Bulk upload rejected: {str(e)}")
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except Exception as e:
        logger.error(f"Bulk upload error: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Unknown error")


@router.post("/bulk-upload-excel/preview")
async def preview_bulk_upload(
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    """Analyse an upload without writing: new vs existing medications and batches, expiry warnings."""
    if file is None:
        return error_response(status.HTTP_400_BAD_REQUEST, "No file provided")
    try:
        contents = await file.read()
        preview = PreviewService.preview_file(db, contents, file.filename)
        return preview.model_dump(by_alias=True, mode="json")
    except ValueError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except Exception as e:
        logger.error(f"Upload preview error: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Unknown error")


@router.post("/delete-all-medications")
def delete_all_medications(
    body: Optional[DeleteAllMedicationsRequest] = Body(None),
    db: Session = Depends(get_db),
):
    """
    Clear the medication catalog before a fresh import.
    Soft (default) deactivates and zeroes stock; {"hard": true} deletes rows.
    Refused in production unless ALLOW_DANGER_ZONE_DELETES is set.
    """
    if settings.is_production and not settings.ALLOW_DANGER_ZONE_DELETES:
        return error_response(
            status.HTTP_403_FORBIDDEN,
            "This endpoint is disabled in production. Set ALLOW_DANGER_ZONE_DELETES='true' to enable it.",
        )
    hard = bool(body.hard) if body else False
    try:
        return CatalogService.delete_all_medications(db, hard=hard)
    except Exception as e:
        logger.error(f"Delete all medications failed: {str(e)}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Unknown error")
