"""Validation engine evaluating registered rules against decoded payloads."""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel

from httpapi.core.errors import ConfigurationError
from httpapi.core.errors import RegistryError
from httpapi.schemas.envelope import Violation
from httpapi.validation.descriptors import FieldDescriptor
from httpapi.validation.descriptors import describe_payload
from httpapi.validation.registry import RuleRegistry
from httpapi.validation.registry import get_registry


class Validator:
    """Walk payload fields and report the first failing rule of each field.

    Usage:
        validator = Validator(get_registry())
        violations = validator.validate(payload)

    Violations follow field declaration order. A field contributes at most
    one violation per pass.
    """

    def __init__(self, registry: RuleRegistry) -> None:
        if not registry.frozen:
            raise RegistryError("validator requires a frozen rule registry")
        self._registry = registry

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    def describe(self, model: type[BaseModel]) -> tuple[FieldDescriptor, ...]:
        return describe_payload(model, self._registry)

    def check(self, *models: type[BaseModel]) -> None:
        """Surface configuration faults of ``models`` before serving traffic."""
        for model in models:
            self.describe(model)

    def validate(self, payload: BaseModel) -> list[Violation]:
        violations: list[Violation] = []
        for descriptor in self.describe(type(payload)):
            value = getattr(payload, descriptor.name)
            failed = self._first_failure(descriptor, value)
            if failed is not None:
                violations.append(Violation(field=descriptor.external_name, code=failed))
        return violations

    def _first_failure(self, descriptor: FieldDescriptor, value: object) -> str | None:
        for rule_name in descriptor.rules:
            rule = self._registry.lookup(rule_name)
            try:
                passed = rule.predicate(value)
            except Exception as exc:
                raise ConfigurationError(
                    f"rule {rule_name!r} raised on field {descriptor.external_name!r}: {exc}"
                ) from exc
            if not passed:
                return rule_name
        return None


@lru_cache(maxsize=1)
def get_validator() -> Validator:
    """Return the process-wide validator over the default registry."""
    return Validator(get_registry())
