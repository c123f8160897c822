"""Request decoding, validation and envelope writing for API handlers.

Handlers get a single gate: ``read_validated`` returns the decoded payload,
or ``None`` after it has already written the failure envelope.
"""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Sequence
from typing import Any
from typing import TypeVar
import logging

from fastapi import Request
from fastapi import status
from pydantic import BaseModel
from pydantic import ValidationError
from pydantic_core import from_json
from starlette.responses import Response

from httpapi.core.config import get_settings
from httpapi.core.errors import ConfigurationError
from httpapi.core.errors import EnvelopeWritten
from httpapi.schemas.envelope import Envelope
from httpapi.schemas.envelope import Violation
from httpapi.validation.descriptors import zero_on_null_keys
from httpapi.validation.engine import Validator
from httpapi.validation.engine import get_validator

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

# Characters that must not appear raw when JSON is embedded in HTML.
_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}
_HTML_ESCAPE_TABLE = str.maketrans(_HTML_ESCAPES)


class ResponseWriter:
    """Outbound channel with a settable status, header map and body."""

    def __init__(self) -> None:
        self.status_code: int | None = None
        self.headers: dict[str, str] = {}
        self._body = bytearray()

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    @property
    def written(self) -> bool:
        return self.status_code is not None or bool(self._body)

    def write_header(self, status_code: int) -> None:
        if self.status_code is not None:
            logger.warning(
                "Superfluous write_header(%s); status already %s", status_code, self.status_code
            )
            return
        self.status_code = status_code

    def write(self, data: bytes) -> int:
        if self.status_code is None:
            self.write_header(status.HTTP_200_OK)
        self._body.extend(data)
        return len(data)

    def to_response(self) -> Response:
        return Response(
            content=self.body,
            status_code=self.status_code or status.HTTP_200_OK,
            headers=self.headers,
        )


def escape_html(document: str) -> str:
    """Escape HTML-sensitive characters in a serialized JSON document."""
    return document.translate(_HTML_ESCAPE_TABLE)


def _write_fallback(writer: ResponseWriter) -> None:
    writer.headers["Content-Type"] = TEXT_CONTENT_TYPE
    writer.headers["X-Content-Type-Options"] = "nosniff"
    writer.write_header(status.HTTP_500_INTERNAL_SERVER_ERROR)
    writer.write(b"Internal Server Error\n")


def write_envelope(
    writer: ResponseWriter,
    status_code: int,
    message: str,
    violations: Sequence[Violation] | None = None,
) -> bool:
    """Write a JSON envelope; fall back to plain text if it cannot be built.

    Returns ``False`` when the fallback response was written instead.
    """
    try:
        envelope = Envelope(
            message=message,
            errors=list(violations) if violations is not None else None,
        )
        document = envelope.model_dump_json(exclude_none=True)
    except (ValidationError, TypeError, ValueError):
        logger.exception("Failed to serialize response envelope")
        _write_fallback(writer)
        return False

    payload = (escape_html(document) + "\n").encode("utf-8")
    writer.headers["Content-Type"] = JSON_CONTENT_TYPE
    writer.write_header(status_code)
    writer.write(payload)
    return True


def _describe_decode_error(exc: ValueError) -> str:
    if not isinstance(exc, ValidationError):
        return f"invalid JSON: {exc}"
    parts: list[str] = []
    for issue in exc.errors(include_url=False):
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = str(issue.get("msg", "invalid value"))
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or str(exc)


def _decode_json(body: bytes, model: type[BaseModel]) -> Any:
    """Parse ``body``, leaving non-nullable fields sent as ``null`` at their default."""
    data = from_json(body)
    if isinstance(data, dict):
        keys = zero_on_null_keys(model)
        data = {key: value for key, value in data.items() if value is not None or key not in keys}
    return data


def _write_configuration_fault(writer: ResponseWriter, model: type[BaseModel], exc: ConfigurationError) -> None:
    logger.error("Validation misconfigured for %s: %s", model.__name__, exc)
    write_envelope(writer, status.HTTP_500_INTERNAL_SERVER_ERROR, f"validation: {exc}", [])


def validate_body(
    body: bytes,
    writer: ResponseWriter,
    model: type[PayloadT],
    *,
    validator: Validator | None = None,
) -> PayloadT | None:
    """Decode ``body`` into ``model`` and validate it.

    On any failure the envelope is written to ``writer`` and ``None`` is
    returned. On success the writer is left untouched.
    """
    settings = get_settings()
    validator = validator or get_validator()

    if settings.max_body_bytes and len(body) > settings.max_body_bytes:
        write_envelope(
            writer,
            status.HTTP_400_BAD_REQUEST,
            f"read body: request body exceeds {settings.max_body_bytes} bytes",
            [],
        )
        return None

    try:
        validator.check(model)
    except ConfigurationError as exc:
        _write_configuration_fault(writer, model, exc)
        return None

    try:
        payload = model.model_validate(_decode_json(body, model))
    except ValueError as exc:
        detail = _describe_decode_error(exc)
        logger.debug("Rejected %s body: %s", model.__name__, detail)
        write_envelope(writer, status.HTTP_400_BAD_REQUEST, f"read body: {detail}", [])
        return None

    try:
        violations = validator.validate(payload)
    except ConfigurationError as exc:
        _write_configuration_fault(writer, model, exc)
        return None

    if violations:
        logger.debug("Validation failed for %s: %s", model.__name__, violations)
        write_envelope(writer, status.HTTP_400_BAD_REQUEST, settings.validation_message, violations)
        return None

    return payload


async def read_validated(
    request: Request,
    writer: ResponseWriter,
    model: type[PayloadT],
    *,
    validator: Validator | None = None,
) -> PayloadT | None:
    """Read the request body and delegate to ``validate_body``."""
    body = await request.body()
    return validate_body(body, writer, model, validator=validator)


def validated_body(
    model: type[PayloadT],
    *,
    validator: Validator | None = None,
) -> Callable[[Request], Awaitable[PayloadT]]:
    """Build a FastAPI dependency yielding a validated ``model`` payload.

    Failures raise ``EnvelopeWritten``; ``register_error_handlers`` turns it
    into the already-written response.
    """

    async def dependency(request: Request) -> PayloadT:
        writer = ResponseWriter()
        payload = await read_validated(request, writer, model, validator=validator)
        if payload is None:
            raise EnvelopeWritten(writer)
        return payload

    return dependency
