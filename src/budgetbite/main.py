"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api.errors import register_exception_handlers
from .api.router import router
from .config import settings
from .database import init_db
from .tasks.worker import app as procrastinate_app
from .utils.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    setup_logging()
    await init_db()
    await procrastinate_app.open_async()
    yield
    # Shutdown
    await procrastinate_app.close_async()


app = FastAPI(
    title="BudgetBite",
    description="Monthly AI usage ledger for the nutrition app's AI features",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# Include routes
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "budgetbite.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
    )
