"""Domain exceptions and the handlers that render them.

Services raise these; routers let them propagate and the handlers below
turn them into the standard error envelope:

    {"error": {"code": "ERROR_CODE", "message": "...", "details": {...}}}

Taxonomy:
  - RecipeConfigurationError    master data is incomplete (no variety link,
                                no seed requirement, duplicate step order)
  - InsufficientInventoryError  no seed batch holds enough seed
  - TerminalStateError          acting on a lost/harvested tray or a request
                                that is no longer pending
  - DuplicateTaskError          the ledger already records the task as done
"""

import logging
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class SproutifyException(Exception):
    """Base exception for Sproutify application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class BusinessLogicError(SproutifyException):
    """Exception for business logic violations."""

    def __init__(self, message: str, error_code: str = "BUSINESS_LOGIC_ERROR"):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=error_code,
        )


class ResourceNotFoundError(SproutifyException):
    """Exception for resources not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class RecipeConfigurationError(SproutifyException):
    """The recipe or its variety is missing data needed for seeding."""

    def __init__(self, message: str, recipe_id: str | None = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="RECIPE_CONFIGURATION_ERROR",
            details={"recipe_id": recipe_id} if recipe_id else None,
        )


class InsufficientInventoryError(SproutifyException):
    """No seed batch can cover the requirement."""

    def __init__(
        self,
        required_grams: float,
        best_available_grams: float,
        variety: str | None = None,
    ):
        self.required_grams = required_grams
        self.best_available_grams = best_available_grams
        self.shortfall_grams = round(required_grams - best_available_grams, 2)
        label = f" of {variety}" if variety else ""
        super().__init__(
            message=(
                f"Insufficient seed{label}: need {required_grams:.2f} g, "
                f"largest batch holds {best_available_grams:.2f} g "
                f"(short {self.shortfall_grams:.2f} g)"
            ),
            status_code=status.HTTP_409_CONFLICT,
            error_code="INSUFFICIENT_INVENTORY",
            details={
                "required_grams": required_grams,
                "best_available_grams": best_available_grams,
                "shortfall_grams": self.shortfall_grams,
            },
        )


class TerminalStateError(SproutifyException):
    """The target is in a state that no longer accepts this action."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="TERMINAL_STATE",
        )


class DuplicateTaskError(SproutifyException):
    """The task ledger already records this task as completed."""

    def __init__(self, task_key: str):
        super().__init__(
            message=f"Task already completed: {task_key}",
            status_code=status.HTTP_409_CONFLICT,
            error_code="DUPLICATE_TASK",
            details={"task_key": task_key},
        )


# ── Handlers ────────────────────────────────────────────────

def create_error_response(
    status_code: int,
    message: str,
    error_code: str,
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": error_code, "message": message, "details": details or {}}},
    )


async def sproutify_exception_handler(request: Request, exc: SproutifyException) -> JSONResponse:
    logger.warning("%s %s: %s - %s", request.method, request.url.path, exc.error_code, exc.message)
    return create_error_response(exc.status_code, exc.message, exc.error_code, exc.details)


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    return create_error_response(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error", "VALIDATION_ERROR", {"errors": errors},
    )


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("%s %s: integrity error: %s", request.method, request.url.path, exc.orig)
    return create_error_response(
        status.HTTP_409_CONFLICT, "The change conflicts with existing data", "CONFLICT",
    )


async def operational_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("%s %s: database unavailable: %s", request.method, request.url.path, exc.orig)
    return create_error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE, "Database temporarily unavailable", "DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s: unhandled error", request.method, request.url.path)
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred", "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    app.add_exception_handler(SproutifyException, sproutify_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
