"""Exception handler registration rendering every failure as an envelope."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from httpapi.core.config import get_settings
from httpapi.core.errors import APIError
from httpapi.core.errors import EnvelopeWritten
from httpapi.core.gateway import ResponseWriter
from httpapi.core.gateway import write_envelope
from httpapi.schemas.envelope import Violation

logger = logging.getLogger(__name__)


def _build_envelope_response(
    *,
    status_code: int,
    message: str,
    violations: Sequence[Violation] | None = None,
    headers: dict[str, str] | None = None,
) -> Response:
    writer = ResponseWriter()
    if headers:
        writer.headers.update(headers)
    write_envelope(writer, status_code, message, violations)
    return writer.to_response()


def _format_location(location: tuple[Any, ...] | list[Any] | Any) -> str:
    if not isinstance(location, (tuple, list)):
        return str(location)

    prefixes = {"body", "query", "path", "header", "cookie"}
    filtered = [str(part) for part in location if part not in prefixes]
    if filtered:
        return ".".join(filtered)

    if not location:
        return "request"

    return str(location[0])


def _request_violations(exc: RequestValidationError) -> list[Violation]:
    violations: list[Violation] = []
    for issue in exc.errors():
        field = _format_location(issue.get("loc", ()))
        code = str(issue.get("type") or "invalid")
        violations.append(Violation(field=field, code=code))
    return violations


async def envelope_written_handler(_: Request, exc: EnvelopeWritten) -> Response:
    """Return the response the gateway already wrote."""

    return exc.writer.to_response()


async def request_validation_exception_handler(_: Request, exc: RequestValidationError) -> Response:
    """Normalize FastAPI parameter validation errors to the envelope."""

    return _build_envelope_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        message=get_settings().validation_message,
        violations=_request_violations(exc),
    )


async def http_exception_handler(_: Request, exc: StarletteHTTPException) -> Response:
    """Normalize HTTP exceptions to the envelope."""

    message = str(exc.detail) if isinstance(exc.detail, str) and exc.detail else "Request failed"
    violations: list[Violation] | None = [] if exc.status_code >= status.HTTP_400_BAD_REQUEST else None
    return _build_envelope_response(
        status_code=exc.status_code,
        message=message,
        violations=violations,
        headers=dict(exc.headers) if exc.headers else None,
    )


async def api_error_handler(_: Request, exc: APIError) -> Response:
    """Return explicit handler errors in the shared envelope."""

    return _build_envelope_response(
        status_code=exc.status_code,
        message=exc.message,
        violations=exc.violations if exc.violations is not None else [],
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    """Avoid leaking internal exceptions while keeping response shape stable."""

    logger.error(
        "Unhandled exception in %s %s", request.method, request.url.path, exc_info=exc
    )
    return _build_envelope_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="Internal server error",
        violations=[],
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach all envelope error handlers to a FastAPI app instance."""

    app.add_exception_handler(EnvelopeWritten, envelope_written_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
