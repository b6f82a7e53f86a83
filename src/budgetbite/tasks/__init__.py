"""Procrastinate task definitions."""

from .usage_tasks import defer_commit_retry, retry_usage_commit, sweep_expired_reservations
from .worker import app as procrastinate_app

__all__ = [
    "defer_commit_retry",
    "procrastinate_app",
    "retry_usage_commit",
    "sweep_expired_reservations",
]
