"""Rule definitions and the built-in field predicates."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Sized
from dataclasses import dataclass
from typing import Any
import re

Predicate = Callable[[Any], bool]

USERNAME_MIN_LENGTH = 1
USERNAME_MAX_LENGTH = 32
USERNAME_PATTERN = re.compile(r"[a-zA-Z0-9]+(?:-[a-zA-Z0-9]+)*")


@dataclass(frozen=True)
class Rule:
    """Named predicate over one field value.

    The name doubles as the violation code reported when the predicate fails.
    ``value_types`` restricts which declared field types the rule may be
    attached to; ``None`` accepts any type.
    """

    name: str
    predicate: Predicate
    value_types: tuple[type, ...] | None = None

    def accepts(self, value_type: type) -> bool:
        if self.value_types is None:
            return True
        return issubclass(value_type, self.value_types)


class Rules:
    """Attach rule names to a payload field via ``Annotated`` metadata.

    Example::

        username: Annotated[str, Rules("required", "username")] = ""
    """

    __slots__ = ("names",)

    def __init__(self, *names: str) -> None:
        if not names:
            raise ValueError("at least one rule name is required")
        self.names = tuple(names)

    def __repr__(self) -> str:
        return f"Rules({', '.join(repr(name) for name in self.names)})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Rules) and other.names == self.names

    def __hash__(self) -> int:
        return hash(self.names)


def is_zero(value: Any) -> bool:
    """Return whether ``value`` is the zero value of its type."""
    if value is None:
        return True
    if isinstance(value, (bool, int, float, complex)):
        return not value
    if isinstance(value, Sized):
        return len(value) == 0
    return False


def required(value: Any) -> bool:
    return not is_zero(value)


def username(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    if not USERNAME_MIN_LENGTH <= len(value) <= USERNAME_MAX_LENGTH:
        return False
    return USERNAME_PATTERN.fullmatch(value) is not None
