"""Domain error taxonomy and FastAPI exception handlers.

Every pricing failure is a ``PricingError`` subclass carrying a stable
machine-readable ``error`` code and the HTTP status the API answers with.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger("pricing.errors")


class PricingError(Exception):
    error = "pricing_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def as_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "detail": self.detail}


class InvalidAmount(PricingError):
    """Non-positive or non-finite amount handed to rounding or pricing."""

    error = "invalid_amount"
    status_code = status.HTTP_400_BAD_REQUEST


class UnknownCurrency(PricingError):
    error = "unknown_currency"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidConfig(PricingError):
    """A settings replace would break a named invariant."""

    error = "invalid_config"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, invariant: str, detail: str):
        super().__init__(f"{invariant}: {detail}")
        self.invariant = invariant

    def as_dict(self) -> Dict[str, Any]:
        data = super().as_dict()
        data["invariant"] = self.invariant
        return data


class ModeMismatch(PricingError):
    error = "mode_mismatch"
    status_code = status.HTTP_409_CONFLICT


class StaleSettings(PricingError):
    """Optimistic write lost against a newer committed settings version."""

    error = "stale_settings"
    status_code = status.HTTP_409_CONFLICT


class OutOfOrderSample(PricingError):
    error = "out_of_order_sample"
    status_code = status.HTTP_409_CONFLICT


def pricing_error_handler(request: Request, exc: PricingError):  # type: ignore
    logger.info(
        "request rejected",
        extra={"error": exc.error, "path": request.url.path, "detail": exc.detail},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())


def not_found_handler(request: Request, exc):  # type: ignore
    if exc.status_code != status.HTTP_404_NOT_FOUND:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "http_error", "detail": exc.detail},
        )
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "not_found",
            "detail": f"No route for {request.method} {request.url.path}",
        },
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "detail": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold raw exception objects which json cannot encode
    out = []
    for err in exc.errors():
        item = {k: v for k, v in err.items() if k not in ("ctx", "input", "url")}
        out.append(item)
    return out


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": "An unexpected error occurred.",
        },
    )
