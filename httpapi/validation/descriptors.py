"""Per-payload field descriptors derived from pydantic model declarations."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from types import NoneType
from types import UnionType
from typing import Any
from typing import Union
from typing import get_args
from typing import get_origin

from pydantic import AliasChoices
from pydantic import BaseModel
from pydantic.fields import FieldInfo

from httpapi.core.errors import ConfigurationError
from httpapi.validation.registry import EXCLUDED
from httpapi.validation.registry import RuleRegistry
from httpapi.validation.rules import Rules


@dataclass(frozen=True)
class FieldDescriptor:
    """Validation view of one declared payload field."""

    name: str
    external_name: str
    rules: tuple[str, ...]


def _attached_rules(metadata: list[Any]) -> tuple[str, ...]:
    names: list[str] = []
    for item in metadata:
        if isinstance(item, Rules):
            names.extend(item.names)
    return tuple(names)


def _declared_types(annotation: Any) -> tuple[type, ...] | None:
    """Reduce a field annotation to concrete types, or ``None`` when unknown."""
    if annotation is Any:
        return None

    origin = get_origin(annotation)
    if origin is Union or origin is UnionType:
        collected: list[type] = []
        for arg in get_args(annotation):
            if arg is NoneType:
                continue
            arg_types = _declared_types(arg)
            if arg_types is None:
                return None
            collected.extend(arg_types)
        return tuple(collected)

    if origin is not None:
        annotation = origin
    if isinstance(annotation, type):
        return (annotation,)
    return None


def _check_rule_types(model: type[BaseModel], name: str, annotation: Any, rule_names: tuple[str, ...], registry: RuleRegistry) -> None:
    declared = _declared_types(annotation)
    for rule_name in rule_names:
        rule = registry.lookup(rule_name)
        if declared is None:
            continue
        for value_type in declared:
            if not rule.accepts(value_type):
                raise ConfigurationError(
                    f"rule {rule_name!r} cannot validate {model.__name__}.{name} of type {value_type.__name__}"
                )


@lru_cache(maxsize=None)
def describe_payload(model: type[BaseModel], registry: RuleRegistry) -> tuple[FieldDescriptor, ...]:
    """Return descriptors for ``model`` fields in declaration order.

    Fields resolving to the excluded name are left out. Unknown rule names,
    rules attached to incompatible field types and rule-bearing fields
    without a default raise ``ConfigurationError``.
    """
    descriptors: list[FieldDescriptor] = []
    for name, field in model.model_fields.items():
        external_name = registry.external_name(name, field)
        if external_name == EXCLUDED:
            continue
        rule_names = _attached_rules(field.metadata)
        if rule_names and field.is_required():
            # A missing key must decode to the zero value for rules to see it.
            raise ConfigurationError(
                f"{model.__name__}.{name} carries rules but declares no default"
            )
        _check_rule_types(model, name, field.annotation, rule_names, registry)
        descriptors.append(FieldDescriptor(name=name, external_name=external_name, rules=rule_names))
    return tuple(descriptors)


def _accepts_none(annotation: Any) -> bool:
    if annotation is Any or annotation is None or annotation is NoneType:
        return True
    origin = get_origin(annotation)
    if origin is Union or origin is UnionType:
        return any(_accepts_none(arg) for arg in get_args(annotation))
    return False


def _input_keys(name: str, field: FieldInfo) -> set[str]:
    alias = field.validation_alias
    if isinstance(alias, str):
        return {alias}
    if isinstance(alias, AliasChoices):
        return {choice for choice in alias.choices if isinstance(choice, str)}
    if alias is not None:
        return set()
    return {field.alias} if field.alias else {name}


@lru_cache(maxsize=None)
def zero_on_null_keys(model: type[BaseModel]) -> frozenset[str]:
    """Return top-level input keys where JSON ``null`` means "leave at default".

    These are fields with a default whose type does not admit ``None``.
    """
    keys: set[str] = set()
    for name, field in model.model_fields.items():
        if field.is_required() or _accepts_none(field.annotation):
            continue
        keys |= _input_keys(name, field)
    return frozenset(keys)
