"""Declarative per-field constraint markers."""
from __future__ import annotations

import re
from collections.abc import Sized
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from numbers import Real
from typing import Any, ClassVar, Optional


class SchemaError(ValueError):
    """Raised when a configuration type declares an invalid constraint."""


class ViolationKind(str, Enum):
    """Categories of problems reported by the validator."""

    MISSING_REQUIRED_VALUE = "missing_required_value"
    OUT_OF_RANGE = "out_of_range"
    INVALID_LENGTH = "invalid_length"
    PATTERN_MISMATCH = "pattern_mismatch"
    STRUCTURAL_ERROR = "structural_error"


@dataclass(frozen=True)
class Violation:
    """A single failed constraint located by its dotted path from the root."""

    path: str
    message: str
    kind: ViolationKind = ViolationKind.STRUCTURAL_ERROR

    def render(self) -> str:
        return f"{self.path}: {self.message}"

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message, "kind": self.kind.value}


class Constraint:
    """Base class for markers placed in ``typing.Annotated`` metadata."""

    kind: ClassVar[ViolationKind]
    message: Optional[str]

    def check(self, value: Any, field_name: str) -> Optional[str]:
        """Return an error message when ``value`` fails the rule, else ``None``."""

        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError

    def _format(self, default: str, field_name: str) -> str:
        if self.message:
            return self.message.format(field=field_name)
        return default


@dataclass(frozen=True)
class Required(Constraint):
    """Value must be present; strings must contain non-whitespace text."""

    message: Optional[str] = None

    kind: ClassVar[ViolationKind] = ViolationKind.MISSING_REQUIRED_VALUE

    def check(self, value: Any, field_name: str) -> Optional[str]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return self._format(f"The {field_name} field is required.", field_name)
        return None

    def describe(self) -> str:
        return "required"


def _is_number(value: Any) -> bool:
    return isinstance(value, (Real, Decimal)) and not isinstance(value, bool)


@dataclass(frozen=True)
class Range(Constraint):
    """Numeric value must lie between ``minimum`` and ``maximum``.

    Bounds are inclusive unless ``exclusive_minimum``/``exclusive_maximum``
    is set, which is how pydantic's ``gt``/``lt`` are represented.
    """

    minimum: Optional[float] = None
    maximum: Optional[float] = None
    message: Optional[str] = None
    exclusive_minimum: bool = False
    exclusive_maximum: bool = False

    kind: ClassVar[ViolationKind] = ViolationKind.OUT_OF_RANGE

    def __post_init__(self) -> None:
        if self.minimum is None and self.maximum is None:
            raise SchemaError("Range requires at least one bound")
        if (
            self.minimum is not None
            and self.maximum is not None
            and self.minimum > self.maximum
        ):
            raise SchemaError(
                f"Range minimum {self.minimum} is greater than maximum {self.maximum}"
            )

    def check(self, value: Any, field_name: str) -> Optional[str]:
        if value is None:
            return None
        if self.exclusive_minimum or self.exclusive_maximum:
            default = f"The field {field_name} must be {self.describe()}."
        else:
            default = (
                f"The field {field_name} must be between "
                f"{_bound(self.minimum)} and {_bound(self.maximum)}."
            )
        if not _is_number(value) or not self._contains(value):
            return self._format(default, field_name)
        return None

    def _contains(self, value: Any) -> bool:
        if self.minimum is not None:
            if value < self.minimum or (self.exclusive_minimum and value == self.minimum):
                return False
        if self.maximum is not None:
            if value > self.maximum or (self.exclusive_maximum and value == self.maximum):
                return False
        return True

    def describe(self) -> str:
        parts = []
        if self.minimum is not None:
            parts.append(f"{'>' if self.exclusive_minimum else '>='} {self.minimum}")
        if self.maximum is not None:
            parts.append(f"{'<' if self.exclusive_maximum else '<='} {self.maximum}")
        return ", ".join(parts)


@dataclass(frozen=True)
class Length(Constraint):
    """String or collection length must lie within ``[minimum, maximum]``."""

    minimum: int = 0
    maximum: Optional[int] = None
    message: Optional[str] = None

    kind: ClassVar[ViolationKind] = ViolationKind.INVALID_LENGTH

    def __post_init__(self) -> None:
        if self.minimum < 0:
            raise SchemaError("Length minimum must be non-negative")
        if self.maximum is not None and self.minimum > self.maximum:
            raise SchemaError(
                f"Length minimum {self.minimum} is greater than maximum {self.maximum}"
            )

    def check(self, value: Any, field_name: str) -> Optional[str]:
        if value is None:
            return None
        if self.maximum is None:
            default = (
                f"The field {field_name} must be a string or collection with a "
                f"minimum length of {self.minimum}."
            )
        else:
            default = (
                f"The field {field_name} must be a string or collection with a "
                f"minimum length of {self.minimum} and a maximum length of {self.maximum}."
            )
        if not isinstance(value, Sized):
            return self._format(default, field_name)
        size = len(value)
        if size < self.minimum or (self.maximum is not None and size > self.maximum):
            return self._format(default, field_name)
        return None

    def describe(self) -> str:
        if self.maximum is None:
            return f"len>= {self.minimum}"
        return f"len>= {self.minimum}, len<= {self.maximum}"


@dataclass(frozen=True)
class Pattern(Constraint):
    """String value must match ``regex``.

    The whole string must match unless ``search`` is set, in which case a
    match anywhere is enough (pydantic's own ``pattern`` semantics).
    """

    regex: str
    message: Optional[str] = None
    search: bool = False
    _compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    kind: ClassVar[ViolationKind] = ViolationKind.PATTERN_MISMATCH

    def __post_init__(self) -> None:
        try:
            compiled = re.compile(self.regex)
        except re.error as exc:
            raise SchemaError(f"Invalid pattern {self.regex!r}: {exc}") from exc
        object.__setattr__(self, "_compiled", compiled)

    def check(self, value: Any, field_name: str) -> Optional[str]:
        if value is None:
            return None
        text = value.value if isinstance(value, Enum) else value
        matcher = self._compiled.search if self.search else self._compiled.fullmatch
        if not isinstance(text, str) or matcher(text) is None:
            return self._format(
                f"The field {field_name} must match the regular expression '{self.regex}'.",
                field_name,
            )
        return None


    def describe(self) -> str:
        return f"pattern {self.regex}"


def _bound(value: Optional[float]) -> str:
    return "unbounded" if value is None else str(value)


__all__ = [
    "Constraint",
    "Length",
    "Pattern",
    "Range",
    "Required",
    "SchemaError",
    "Violation",
    "ViolationKind",
]
