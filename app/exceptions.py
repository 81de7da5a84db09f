# app/exceptions.py
from fastapi import Request
from fastapi.responses import JSONResponse


class NotificationError(Exception):
    """Base class for errors raised by the notification store and emitter."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(NotificationError):
    """Malformed request, rejected before any write."""


class NotFoundError(NotificationError):
    """Target is missing or not owned by the caller."""


class TransportError(NotificationError):
    """Real-time delivery failed. Never surfaced to the triggering action."""


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": exc.detail})


async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": exc.detail})
