"""
Business logic services for the hospital pharmacy backend
"""
from .stock_service import StockService
from .medication_cache import MedicationCache
from .bulk_upload_service import BulkUploadService
from .preview_service import PreviewService
from .medication_csv_service import MedicationCsvService
from .catalog_service import CatalogService

__all__ = [
    "StockService",
    "MedicationCache",
    "BulkUploadService",
    "PreviewService",
    "MedicationCsvService",
    "CatalogService",
]
