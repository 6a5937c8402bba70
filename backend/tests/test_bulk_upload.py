from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.models import Medication, MedicineBatch
from app.services.bulk_upload_service import (
    BulkUploadService,
    SheetData,
    WorkbookReadError,
    read_workbook,
)
from app.services.medication_cache import MedicationCache, MedicationResolutionError
from app.services.stock_service import StockService

URL = "/api/pharmacy/bulk-upload-excel"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER = ["Medicine", "Batch No", "Purchase Rate", "MRP", "Expiry", "Qty", "Pack", "Brand", "Product"]


def _upload(client: TestClient, content: bytes, filename: str = "stock.xlsx", content_type: str = XLSX):
    return client.post(URL, files={"file": (filename, content, content_type)})


def test_case_different_duplicate_batch_is_skipped(client: TestClient, db: Session, workbook) -> None:
    content = workbook(("Stock", [
        ["Medicine", "Batch No", "Qty", "Expiry"],
        ["Amoxicillin", "B100", 50, "15-08-2025"],
        ["amoxicillin", "B100", 30, "15-08-2025"],
    ]))

    response = _upload(client, content)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["totalProcessed"] == 2
    assert body["successCount"] == 1
    assert body["skippedCount"] == 0
    assert body["errorCount"] == 0
    assert [r["status"] for r in body["allResults"]] == ["success", "skipped"]
    skipped = body["allResults"][1]
    assert skipped["row"] == 3
    assert skipped["sheet"] == "Stock"
    assert skipped["medicineName"] == "amoxicillin"
    assert skipped["batchNumber"] == "B100"
    assert skipped["message"] == "Batch already exists"

    assert db.query(Medication).count() == 1
    batch = db.query(MedicineBatch).one()
    assert batch.current_quantity == 50
    assert batch.received_quantity == 50
    assert batch.expiry_date == date(2025, 8, 15)
    assert db.query(Medication).one().total_stock == 50


def test_stock_is_the_sum_of_new_batches(client: TestClient, db: Session, workbook) -> None:
    content = workbook(("Stock", [
        HEADER,
        ["Paracetamol 500", "P1", 2.5, 4, "08/2026", 10, 10, "GSK", "Tablet"],
        ["Paracetamol 500", "P2", 2.75, 5, "Aug-27", 15, 10, "GSK", "Tablet"],
    ]))

    body = _upload(client, content).json()

    assert body["successCount"] == 2
    medication = db.query(Medication).one()
    assert medication.total_stock == 25
    assert medication.available_stock == 25
    assert float(medication.purchase_price) == 2.75
    assert medication.mrp == 5
    assert medication.selling_price == 5
    expiries = {b.batch_number: b.expiry_date for b in db.query(MedicineBatch).all()}
    assert expiries == {"P1": date(2026, 8, 31), "P2": date(2027, 8, 31)}


def test_new_medication_gets_upload_defaults(client: TestClient, db: Session, workbook) -> None:
    content = workbook(("Stock", [
        HEADER + ["Combination", "Ampoule"],
        ["Amoxicillin 500", "A1", 3, 6, "15-08-2025", 20, 10, "Cipla", "Capsule", "Amoxicillin", "500mg"],
    ]))

    assert _upload(client, content).json()["successCount"] == 1

    medication = db.query(Medication).one()
    assert medication.medication_code.startswith("MED-AMOX-")
    assert medication.category == "Capsule"
    assert medication.unit == "units"
    assert medication.manufacturer == "Cipla"
    assert medication.dosage_form == "Capsule"
    assert medication.combination == "Amoxicillin"
    assert medication.generic_name == "Amoxicillin"
    assert medication.strength == "500mg"
    assert medication.minimum_stock_level == 10
    assert medication.prescription_required is True
    assert medication.is_active is True


def test_reupload_skips_every_batch_and_keeps_stock(client: TestClient, db: Session, workbook) -> None:
    content = workbook(("Stock", [
        ["Medicine", "Batch No", "Qty"],
        ["Ibuprofen 400", "I1", 40],
        ["Cetirizine 10", "C1", 60],
    ]))

    assert _upload(client, content).json()["successCount"] == 2
    body = _upload(client, content).json()

    assert body["successCount"] == 0
    assert body["errorCount"] == 0
    assert [r["status"] for r in body["allResults"]] == ["skipped", "skipped"]
    assert db.query(Medication).count() == 2
    assert db.query(MedicineBatch).count() == 2
    stocks = {m.name: m.total_stock for m in db.query(Medication).all()}
    assert stocks == {"Ibuprofen 400": 40, "Cetirizine 10": 60}


def test_row_without_batch_updates_prices_only(client: TestClient, db: Session, workbook) -> None:
    content = workbook(("Stock", [
        ["Medicine", "Batch No", "MRP", "Purchase Rate"],
        ["Pantoprazole 40", None, 12, 7],
    ]))

    body = _upload(client, content).json()

    assert body["successCount"] == 1
    outcome = body["allResults"][0]
    assert outcome["status"] == "success"
    assert outcome["batchNumber"] == "(none)"
    assert outcome["message"] == "Medication created/updated (no batch data)"
    medication = db.query(Medication).one()
    assert medication.mrp == 12
    assert medication.purchase_price == 7
    assert medication.total_stock == 0
    assert db.query(MedicineBatch).count() == 0


def test_unreadable_expiry_stores_sentinel_date(client: TestClient, db: Session, workbook) -> None:
    content = workbook(("Stock", [
        ["Medicine", "Batch No", "Expiry", "Qty"],
        ["Metformin 500", "M1", "someday", 5],
    ]))

    assert _upload(client, content).json()["successCount"] == 1
    assert db.query(MedicineBatch).one().expiry_date == date(2099, 12, 31)


def test_blank_name_rows_count_as_skipped_without_outcome(client: TestClient, db: Session, workbook) -> None:
    content = workbook(("Stock", [
        ["Medicine", "Batch No", "Qty"],
        ["Losartan 50", "L1", 10],
        [None, "L2", 5],
        ["   ", "L3", 5],
    ]))

    body = _upload(client, content).json()

    assert body["totalProcessed"] == 3
    assert body["successCount"] == 1
    assert body["skippedCount"] == 2
    assert len(body["allResults"]) == 1
    assert db.query(MedicineBatch).count() == 1


def test_sheet_without_medicine_column_is_reported_and_others_processed(
    client: TestClient, db: Session, workbook
) -> None:
    content = workbook(
        ("Prices", [["Item", "Rate"], ["Something", 4]]),
        ("Stock", [["Medicine Name", "Batch No", "Qty"], ["Atenolol 50", "AT1", 30]]),
    )

    body = _upload(client, content).json()

    assert body["totalProcessed"] == 1
    assert body["successCount"] == 1
    assert body["errorCount"] == 0
    sheet_error = body["allResults"][0]
    assert sheet_error["row"] == 0
    assert sheet_error["sheet"] == "Prices"
    assert sheet_error["status"] == "error"
    assert sheet_error["message"] == 'Sheet "Prices": Could not find "Medicine" column'
    assert body["allResults"][1]["sheet"] == "Stock"
    assert body["allResults"][1]["row"] == 2


def test_results_are_truncated_but_all_results_are_not(
    client: TestClient, workbook, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings, "BULK_UPLOAD_RESULT_LIMIT", 2)
    rows = [["Medicine", "Batch No", "Qty"]] + [[f"Drug {i}", f"D{i}", 1] for i in range(5)]

    body = _upload(client, workbook(("Stock", rows))).json()

    assert body["successCount"] == 5
    assert len(body["results"]) == 2
    assert len(body["allResults"]) == 5


def test_csv_file_goes_through_the_same_pipeline(client: TestClient, db: Session) -> None:
    content = b"Medicine,Batch No,Qty,Expiry,Product\nParacetamol 500,P1,100,15-08-2025,Tablet\n"

    body = _upload(client, content, filename="stock.csv", content_type="text/csv").json()

    assert body["successCount"] == 1
    assert body["allResults"][0]["sheet"] == "stock"
    medication = db.query(Medication).one()
    assert medication.category == "Tablet"
    assert medication.unit == "tablets"
    assert medication.total_stock == 100


def test_missing_file_is_rejected(client: TestClient) -> None:
    response = client.post(URL)
    assert response.status_code == 400
    assert response.json() == {"error": "No file provided"}


def test_corrupt_workbook_is_rejected(client: TestClient) -> None:
    response = _upload(client, b"definitely not a zip file")
    assert response.status_code == 400
    assert "Could not read Excel file" in response.json()["error"]


def test_empty_file_is_rejected() -> None:
    with pytest.raises(WorkbookReadError):
        read_workbook(b"", "stock.xlsx")


class _BrokenNameCache(MedicationCache):
    def resolve_or_create(self, db, name, fields, sequence=0):
        if name == "Broken":
            raise MedicationResolutionError("Failed to create medication: boom")
        return super().resolve_or_create(db, name, fields, sequence)


def test_failing_row_does_not_stop_the_upload(db: Session) -> None:
    sheet = SheetData(
        name="Stock",
        headers=["Medicine", "Batch No", "Qty"],
        rows=[("Broken", "X1", 1), ("Omeprazole 20", "O1", 12)],
    )

    result = BulkUploadService.process_sheets(db, [sheet], cache=_BrokenNameCache())

    assert result.total_processed == 2
    assert result.error_count == 1
    assert result.success_count == 1
    assert result.outcomes[0].message == "Failed to create medication: boom"
    assert result.outcomes[0].row == 2
    assert db.query(Medication).one().name == "Omeprazole 20"


def test_failed_batch_insert_leaves_stock_untouched(db: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    def reject_batch(db, **kwargs):
        raise IntegrityError("INSERT INTO medicine_batches", {}, Exception("dup key"))

    monkeypatch.setattr(StockService, "create_batch", staticmethod(reject_batch))
    sheet = SheetData(
        name="Stock",
        headers=["Medicine", "Batch No", "Qty"],
        rows=[("Azithromycin 500", "AZ1", 12)],
    )

    result = BulkUploadService.process_sheets(db, [sheet])

    assert result.error_count == 1
    assert result.success_count == 0
    assert result.outcomes[0].status == "error"
    assert result.outcomes[0].message == "Batch insert failed: dup key"
    medication = db.query(Medication).one()
    assert medication.total_stock == 0
    assert medication.available_stock == 0
    assert db.query(MedicineBatch).count() == 0


def test_upload_logs_file_name(client: TestClient, workbook, caplog: pytest.LogCaptureFixture) -> None:
    content = workbook(("Stock", [["Medicine", "Batch No", "Qty"], ["Ranitidine 150", "R1", 3]]))

    with caplog.at_level("INFO", logger="app.api.pharmacy"):
        _upload(client, content, filename="ward_c.xlsx")

    assert any("Bulk upload of 'ward_c.xlsx'" in record.getMessage() for record in caplog.records)
