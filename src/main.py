# src/main.py
import logging
from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .database import create_db_and_tables, SessionLocal
from .routers import connections_router, discovery_router, org_admin_router, profile_router

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(
    title="Cross-Organization Mentoring Connections API",
    description="Peer connections and organization-scoped visibility of mentors, mentees and sessions.",
    version="1.0.0",
)

# Include routers
app.include_router(connections_router.router)
app.include_router(discovery_router.router)
app.include_router(org_admin_router.router)
app.include_router(profile_router.router)

@app.on_event("startup")
async def startup_event():
    """Initialize application on startup"""
    logger.info("Application startup event triggered.")
    try:
        create_db_and_tables()
        if not settings.DEFAULT_ORG_ID:
            logger.warning("DEFAULT_ORG_ID is not set; users of organizations without policies will be rejected")
        logger.info("Startup sequence completed successfully.")
    except SQLAlchemyError as e:
        logger.critical(f"Critical error during startup: {e}", exc_info=True)

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        return {"status": "healthy", "default_org_id": settings.DEFAULT_ORG_ID}
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}
