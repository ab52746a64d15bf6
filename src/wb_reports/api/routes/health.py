"""
Health check endpoint.
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wb_reports import __version__
from wb_reports.database.connection import get_db
from wb_reports.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health", status_code=status.HTTP_200_OK)
def health_check(response: Response, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """
    Liveness and database connectivity.

    Returns 503 when the database cannot be reached.
    """
    try:
        db.execute(text("SELECT 1"))
        database = {"status": "healthy"}
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        database = {"status": "unhealthy", "error": str(e)}
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": database["status"],
        "timestamp": datetime.utcnow().isoformat(),
        "service": "wb-reports",
        "version": __version__,
        "database": database,
    }
