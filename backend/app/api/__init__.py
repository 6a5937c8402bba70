"""
API routes for the hospital pharmacy backend
"""
from .pharmacy import router as pharmacy_router
from .medications import router as medications_router

__all__ = [
    "pharmacy_router",
    "medications_router",
]
