from __future__ import annotations

import os

# Point the app at a throwaway in-memory database before app.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"

from io import BytesIO
from typing import Callable, Iterator, Sequence

import openpyxl
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app import models  # noqa: F401
from app.database import Base, SessionLocal, engine, get_db
from app.main import app
from app.models import Medication


@pytest.fixture
def db() -> Iterator[Session]:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    app.dependency_overrides[get_db] = lambda: db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def build_workbook(*sheets: tuple[str, Sequence[Sequence]]) -> bytes:
    """xlsx bytes with one worksheet per (title, rows); rows[0] is the header."""
    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets:
        worksheet = workbook.create_sheet(title)
        for row in rows:
            worksheet.append(list(row))
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def workbook() -> Callable[..., bytes]:
    return build_workbook


@pytest.fixture
def make_medication(db: Session) -> Callable[..., Medication]:
    counter = {"n": 0}

    def _make(name: str, **fields) -> Medication:
        counter["n"] += 1
        fields.setdefault("medication_code", f"MED-TEST-{counter['n']}")
        medication = Medication(name=name, **fields)
        db.add(medication)
        db.commit()
        return medication

    return _make
