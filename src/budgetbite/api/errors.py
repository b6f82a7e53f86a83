"""Translate ledger errors into HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..exceptions import (
    BudgetExceeded,
    PeriodClosed,
    ReservationNotFound,
    StoreUnavailable,
    UnknownOperationType,
)

logger = logging.getLogger(__name__)


async def budget_exceeded_handler(request: Request, exc: BudgetExceeded) -> JSONResponse:
    body = {
        "allowed": False,
        "reason": exc.reason.value,
        "message": exc.message,
        "message_en": exc.message_en,
    }
    if exc.summary is not None:
        body.update(
            remaining_cents=exc.summary.remaining_cents,
            total_used_cents=exc.summary.total_cost_cents,
            limit_cents=exc.summary.ceiling_cents,
        )
    return JSONResponse(status_code=429, content=body)


async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"detail": "Usage ledger temporarily unavailable, try again"},
    )


async def period_closed_handler(request: Request, exc: PeriodClosed) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"detail": f"AI usage limit already reached for {exc.year}-{exc.month:02d}"},
    )


async def unknown_operation_handler(
    request: Request, exc: UnknownOperationType
) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


async def reservation_not_found_handler(
    request: Request, exc: ReservationNotFound
) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Reservation not found"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BudgetExceeded, budget_exceeded_handler)
    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)
    app.add_exception_handler(PeriodClosed, period_closed_handler)
    app.add_exception_handler(UnknownOperationType, unknown_operation_handler)
    app.add_exception_handler(ReservationNotFound, reservation_not_found_handler)
