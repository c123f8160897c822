"""Exception taxonomy for request decoding, validation and envelope writing."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from httpapi.schemas.envelope import Violation

if TYPE_CHECKING:
    from httpapi.core.gateway import ResponseWriter


class RegistryError(RuntimeError):
    """Raised when the rule registry is misused during initialization."""


class ConfigurationError(RuntimeError):
    """Raised when a payload declaration does not match the rule registry.

    This is a defect in the service's own payload shapes, never caused by
    client input, and is always answered with a server fault.
    """


class EnvelopeWritten(Exception):
    """Raised after the gateway already wrote a failure envelope."""

    def __init__(self, writer: ResponseWriter) -> None:
        super().__init__(f"envelope written with status {writer.status_code}")
        self.writer = writer


class APIError(Exception):
    """Base application exception for explicit API error responses."""

    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        violations: Sequence[Violation] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.violations = list(violations) if violations is not None else None
