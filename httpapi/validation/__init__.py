"""Rule registry and validation engine exports."""

from httpapi.validation.descriptors import FieldDescriptor
from httpapi.validation.engine import Validator
from httpapi.validation.engine import get_validator
from httpapi.validation.registry import EXCLUDED
from httpapi.validation.registry import RuleRegistry
from httpapi.validation.registry import build_registry
from httpapi.validation.registry import get_registry
from httpapi.validation.registry import json_field_namer
from httpapi.validation.rules import Rule
from httpapi.validation.rules import Rules

__all__ = [
    "EXCLUDED",
    "FieldDescriptor",
    "Rule",
    "RuleRegistry",
    "Rules",
    "Validator",
    "build_registry",
    "get_registry",
    "get_validator",
    "json_field_namer",
]
