"""
Hospital Pharmacy - Main FastAPI Application
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import init_db

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Hospital pharmacy stock: bulk medication and batch uploads",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


@app.on_event("startup")
def create_tables():
    """Create missing tables on the configured database."""
    try:
        init_db()
        logger.info("Database tables ready (%s)", settings.ENVIRONMENT)
    except Exception as e:
        logger.exception("Database initialisation failed: %s", e)
        raise


# Import and include routers
from app.api import pharmacy_router, medications_router

app.include_router(pharmacy_router, prefix="/api/pharmacy", tags=["Pharmacy Bulk Upload"])
app.include_router(medications_router, prefix="/api", tags=["Medications"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
