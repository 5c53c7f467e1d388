"""Nested configuration binding and recursive validation."""
from __future__ import annotations

from .classifier import FieldKind, classify, classify_type
from .constraints import (
    Constraint,
    Length,
    Pattern,
    Range,
    Required,
    SchemaError,
    Violation,
    ViolationKind,
)
from .errors import ConfigError, ConfigValidationError
from .registry import ConstraintRegistry, FieldSpec, NodeSchema, default_registry
from .result import ValidationResult
from .validator import RecursiveValidator, TypedValidator, typed_validator, validate
from .version import __version__

__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "Constraint",
    "ConstraintRegistry",
    "FieldKind",
    "FieldSpec",
    "Length",
    "NodeSchema",
    "Pattern",
    "Range",
    "RecursiveValidator",
    "Required",
    "SchemaError",
    "TypedValidator",
    "ValidationResult",
    "Violation",
    "ViolationKind",
    "__version__",
    "classify",
    "classify_type",
    "default_registry",
    "typed_validator",
    "validate",
]
