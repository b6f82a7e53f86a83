"""FastAPI dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import get_session_factory
from ..services.ledger import UsageLedger
from ..tasks.usage_tasks import defer_commit_retry


def get_ledger(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> UsageLedger:
    """Usage ledger bound to the application database."""
    return UsageLedger(session_factory, on_commit_failure=defer_commit_retry)
