import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.settings import settings
from app.db.session import get_session

logger = logging.getLogger("API_Health")
router = APIRouter()


@router.get("/health")
async def health_check(session: AsyncSession = Depends(get_session)):
    """
    Liveness + DB ping for monitoring.

    Returns:
        {
            "status": "healthy" | "degraded",
            "timestamp": ISO timestamp,
            "components": {"database": "ok" | "unreachable"}
        }
    """
    database = "ok"
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"❌ Health check DB ping failed: {e}")
        database = "unreachable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "app": settings.APP_NAME,
        "env": settings.ENV,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {"database": database},
    }
