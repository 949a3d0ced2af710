"""Typed failures raised by the equipment engine and their HTTP rendering.

Every exception carries a static ``code`` so callers branch on type or code,
never on message text. The API layer turns them into the same JSON envelope
used for framework errors: ``{"code", "message", "details"}``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class EquipTrackError(Exception):
    """Base class for every engine failure."""

    code: str = "EQUIPTRACK_ERROR"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(EquipTrackError):
    """A required field is missing or malformed."""

    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(EquipTrackError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, key: str, *, message: str | None = None) -> None:
        self.entity = entity
        self.key = key
        super().__init__(message or f"{entity} not found: {key}", details={"entity": entity, "key": key})


class NoMatchError(NotFoundError):
    """A selector (category, work order, ...) matched no rows."""

    code = "NO_MATCH"


class AlreadyExistsError(EquipTrackError):
    code = "ALREADY_EXISTS"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, entity: str, key: str) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} already exists: {key}", details={"entity": entity, "key": key})


class ConflictError(EquipTrackError):
    """Another request changed the row first; re-fetch and retry."""

    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class IneligibleStateError(EquipTrackError):
    """The item exists but its current state does not allow the operation."""

    code = "INELIGIBLE_STATE"
    status_code = 422


class InvalidCategoryError(IneligibleStateError):
    code = "INVALID_CATEGORY"


class NotAvailableError(IneligibleStateError):
    code = "NOT_AVAILABLE"


class LinkedEquipmentError(IneligibleStateError):
    code = "EQUIPMENT_LINKED"


class InvariantViolationError(EquipTrackError):
    """A committed state would break a record invariant. Always a bug."""

    code = "INVARIANT_VIOLATION"


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def equiptrack_exception_handler(request: Request, exc: EquipTrackError):
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        "request.rejected",
        extra={"extra_data": {"code": exc.code, "path": request.url.path, "error": exc.message}},
    )
    return ErrorEnvelope(status_code=exc.status_code, code=exc.code, message=exc.message, details=exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(status_code=exc.status_code, code="HTTP_ERROR", message=message, details=details)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return ErrorEnvelope(
        status_code=422,
        code="REQUEST_VALIDATION_ERROR",
        message="Validation failed",
        details={"errors": jsonable_encoder(exc.errors())},
    )
