"""Health check endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_session
from ..models import UsagePeriod

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(session: AsyncSession = Depends(get_session)) -> dict:
    """Check that the ledger tables are reachable."""
    try:
        await session.execute(select(func.count()).select_from(UsagePeriod))
    except (SQLAlchemyError, OSError) as e:
        return {"status": "not ready", "database": str(e)}
    return {
        "status": "ready",
        "database": "connected",
        "reservation_mode": settings.reservation_mode,
    }
