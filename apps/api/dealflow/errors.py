from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

from dealflow.context import get_correlation_id


class DomainError(Exception):
    """Base class for failures the caller can act on."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "error"

    def __init__(self, message: str, details: Any = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(DomainError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"

    def __init__(self, message: str, missing_fields: list[str] | None = None) -> None:
        self.missing_fields = list(missing_fields or [])
        super().__init__(message, {"missing_fields": self.missing_fields} if self.missing_fields else None)

    @classmethod
    def missing(cls, fields: list[str]) -> "ValidationError":
        return cls(f"Missing required fields: {', '.join(fields)}", fields)


class AuthorizationError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class StateError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_state"

    def __init__(self, message: str, precondition: str | None = None) -> None:
        self.precondition = precondition
        super().__init__(message, {"precondition": precondition} if precondition else None)


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    payload = ErrorEnvelope(code=code, message=message, details=details, correlation_id=correlation_id)
    return JSONResponse(status_code=status_code, content=payload.__dict__)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )
