from __future__ import annotations

import importlib.util
import sys
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.models import Medication, MedicineBatch

BACKEND = Path(__file__).resolve().parents[1]
_MODULE_PATH = BACKEND / "scripts" / "load_medications_from_excel.py"
_SPEC = importlib.util.spec_from_file_location("load_medications_from_excel", _MODULE_PATH)
assert _SPEC and _SPEC.loader
loader = importlib.util.module_from_spec(_SPEC)
sys.modules[_SPEC.name] = loader
_SPEC.loader.exec_module(loader)


def _stock_file(tmp_path: Path, workbook) -> Path:
    path = tmp_path / "stock.xlsx"
    path.write_bytes(workbook(
        ("Ward A", [["Medicine", "Batch No", "Qty"], ["Ondansetron 4", "ON1", 10], ["Ondansetron 4", "ON2", 5]]),
        ("Ward B", [["Medicine", "Batch No", "Qty"], ["ondansetron 4", "ON1", 10]]),
    ))
    return path


def test_dry_run_only_counts_rows(tmp_path: Path, workbook, capsys) -> None:
    path = _stock_file(tmp_path, workbook)

    assert loader.main(["--file", str(path), "--dry-run"]) == 0

    out = capsys.readouterr().out
    assert "Sheet 'Ward A': 2 data rows" in out
    assert "Sheet 'Ward B': 1 data rows" in out
    assert "Dry-run" in out


def test_load_into_separate_database(tmp_path: Path, workbook, capsys) -> None:
    path = _stock_file(tmp_path, workbook)
    db_url = f"sqlite:///{tmp_path / 'pharmacy.db'}"

    assert loader.main(["--file", str(path), "--db-url", db_url]) == 0

    out = capsys.readouterr().out
    assert "Success: 2" in out
    assert "[skipped] Ward B row 2" in out

    engine = create_engine(db_url)
    session = sessionmaker(bind=engine)()
    try:
        assert session.query(Medication).count() == 1
        assert session.query(MedicineBatch).count() == 2
        assert session.query(Medication).one().total_stock == 15
    finally:
        session.close()
        engine.dispose()


def test_missing_file(tmp_path: Path, capsys) -> None:
    assert loader.main(["--file", str(tmp_path / "nope.xlsx")]) == 1
    assert "File not found" in capsys.readouterr().out


def test_load_into_configured_database(tmp_path: Path, workbook, db, capsys) -> None:
    path = _stock_file(tmp_path, workbook)

    assert loader.main(["--file", str(path)]) == 0

    assert "Success: 2" in capsys.readouterr().out
    assert db.query(Medication).count() == 1
    assert db.query(MedicineBatch).count() == 2
