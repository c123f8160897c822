"""Response envelope schemas shared across API handlers."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field


class Violation(BaseModel):
    """Single field-level validation failure."""

    field: str = Field(min_length=1)
    code: str = Field(min_length=1)


class Envelope(BaseModel):
    """Top-level API response envelope."""

    message: str = Field(min_length=1)
    errors: list[Violation] | None = None
