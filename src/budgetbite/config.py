"""Application configuration using Pydantic settings."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database - SQLAlchemy (asyncpg)
    database_url: str = Field(
        ...,
        description="SQLAlchemy connection string (postgresql+asyncpg://...)",
    )

    # Database - Procrastinate (psycopg)
    procrastinate_database_url: str = Field(
        ...,
        description="Procrastinate connection string (postgresql://...)",
    )

    # Ceilings (monthly, in USD cents)
    default_monthly_ceiling_cents: int = Field(
        200,
        gt=0,
        description="Ceiling for users whose tier is unknown ($2.00)",
    )
    tier_ceilings_cents: dict[str, int] = Field(
        default_factory=lambda: {"free": 200, "premium": 200, "family": 400},
        description="Monthly ceiling per subscription tier",
    )

    # Estimated cost per operation, in cents
    chat_cost_cents: int = Field(2, ge=0, description="~$0.02 per chat message")
    scan_image_cost_cents: int = Field(8, ge=0, description="~$0.08 per food scan")
    shopping_list_cost_cents: int = Field(3, ge=0, description="~$0.03 per shopping list")
    body_scan_cost_cents: int = Field(8, ge=0, description="~$0.08 per body scan")

    # Reservation protocol
    reservation_mode: Literal["hard", "soft"] = Field(
        "hard",
        description="hard: hold estimated cost at check time; soft: sticky flag only",
    )
    reservation_ttl_seconds: int = Field(
        300,
        description="Pending reservations older than this are released by the sweeper",
    )

    # Commit retries (inline, before handing off to the task queue)
    commit_retry_attempts: int = Field(3, ge=1)
    commit_retry_backoff_seconds: float = Field(0.2, ge=0)

    # Server
    host: str = Field("0.0.0.0")
    port: int = Field(8000)
    log_level: str = Field("INFO")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
