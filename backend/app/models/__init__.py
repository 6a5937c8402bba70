"""
Database models for the hospital pharmacy backend
"""
from app.database import Base

from .medication import Medication, MedicineBatch

__all__ = [
    "Base",
    "Medication",
    "MedicineBatch",
]
