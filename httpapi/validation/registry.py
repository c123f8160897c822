"""Process-wide registry of validation rules and the field namer."""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
import logging

from pydantic import AliasChoices
from pydantic import AliasPath
from pydantic.fields import FieldInfo

from httpapi.core.errors import ConfigurationError
from httpapi.core.errors import RegistryError
from httpapi.validation import rules
from httpapi.validation.rules import Predicate
from httpapi.validation.rules import Rule

logger = logging.getLogger(__name__)

FieldNamer = Callable[[str, FieldInfo], str]

# Namer result for fields that are never validated or reported.
EXCLUDED = ""


def _alias_name(alias: object) -> str | None:
    if isinstance(alias, str):
        return alias or None
    if isinstance(alias, AliasPath):
        return ".".join(str(part) for part in alias.path)
    if isinstance(alias, AliasChoices):
        return _alias_name(alias.choices[0]) if alias.choices else None
    raise ConfigurationError(f"unsupported validation alias {alias!r}")


def json_field_namer(name: str, field: FieldInfo) -> str:
    """Return the JSON name a payload field is read from.

    ``AliasPath`` aliases are reported dotted and ``AliasChoices`` by their
    first choice.
    """
    if field.exclude:
        return EXCLUDED
    if field.validation_alias is not None:
        external_name = _alias_name(field.validation_alias)
        if external_name:
            return external_name
    if field.alias:
        return field.alias
    return name


class RuleRegistry:
    """Named rules plus the field namer, frozen once initialization ends.

    Registration is only allowed before ``freeze``. Afterwards the registry is
    read-only, so lookups from concurrent requests need no locking.
    """

    def __init__(self) -> None:
        self._rules: dict[str, Rule] = {}
        self._namer: FieldNamer = json_field_namer
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register_field_namer(self, namer: FieldNamer) -> None:
        """Install the function mapping field metadata to external names."""
        self._ensure_mutable()
        self._namer = namer

    def register_rule(
        self,
        name: str,
        predicate: Predicate,
        *,
        value_types: tuple[type, ...] | None = None,
    ) -> Rule:
        """Register a named predicate; names are unique for the process."""
        self._ensure_mutable()
        if not name:
            raise RegistryError("rule name must not be empty")
        if name in self._rules:
            raise RegistryError(f"rule {name!r} is already registered")
        rule = Rule(name=name, predicate=predicate, value_types=value_types)
        self._rules[name] = rule
        return rule

    def freeze(self) -> RuleRegistry:
        """End initialization; further registration raises ``RegistryError``."""
        self._frozen = True
        logger.debug("Rule registry frozen with rules=%s", sorted(self._rules))
        return self

    def lookup(self, name: str) -> Rule:
        try:
            return self._rules[name]
        except KeyError:
            raise ConfigurationError(f"undefined validation rule {name!r}") from None

    def external_name(self, name: str, field: FieldInfo) -> str:
        return self._namer(name, field)

    def __contains__(self, name: object) -> bool:
        return name in self._rules

    def _ensure_mutable(self) -> None:
        if self._frozen:
            raise RegistryError("rule registry is frozen")


def register_builtin_rules(registry: RuleRegistry) -> None:
    """Register the rules every payload may reference."""
    registry.register_rule("required", rules.required)
    registry.register_rule("username", rules.username, value_types=(str,))


def build_registry() -> RuleRegistry:
    """Create a frozen registry holding the built-in rules."""
    registry = RuleRegistry()
    register_builtin_rules(registry)
    return registry.freeze()


@lru_cache(maxsize=1)
def get_registry() -> RuleRegistry:
    """Return the process-wide rule registry."""
    return build_registry()
