"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors raised by the OTP core and the
auth flows. The exception handler converts them into consistent JSON
responses of the form ``{"error": ..., "code": ..., "details": ...}``.

Expected outcomes such as a wrong OTP code or a rate-limited request are
structured results in the core; they only become errors at the flow layer.
"""

from typing import Any

from fastapi import FastAPI, Request  # type: ignore[import-untyped]
from fastapi.responses import JSONResponse  # type: ignore[import-untyped]


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: Any | None = None,  # noqa: ANN401
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class VerificationFailedError(AppError):
    """A submitted OTP code was rejected (not found, expired, exhausted or wrong)."""

    status_code = 400
    error_code = "verification_failed"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class StorageError(AppError):
    """
    The document store could not complete a read or write.

    Kept distinct from verification failures so callers never report
    "wrong code" when the real cause is an infrastructure fault.
    """

    status_code = 503
    error_code = "storage_unavailable"


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
        headers = None
        if isinstance(exc, RateLimitError) and isinstance(exc.details, dict):
            retry_after = exc.details.get("retry_after_seconds")
            if retry_after is not None:
                headers = {"Retry-After": str(retry_after)}
        return JSONResponse(
            status_code=exc.status_code, content=exc.to_dict(), headers=headers
        )
