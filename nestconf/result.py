"""Aggregate per-field violations into a single pass/fail outcome."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from nestconf.constraints import Violation
from nestconf.errors import ConfigValidationError

MESSAGE_SEPARATOR = "; "


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one validation run.

    A result is either a success (no violations) or a failure carrying the
    violations in traversal order. Instances are immutable.
    """

    violations: Tuple[Violation, ...] = ()

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(())

    @classmethod
    def fail(cls, violations: Iterable[Violation]) -> "ValidationResult":
        collected = tuple(violations)
        if not collected:
            raise ValueError("A failed validation result needs at least one violation")
        return cls(collected)

    @classmethod
    def from_violations(cls, violations: Iterable[Violation]) -> "ValidationResult":
        collected = tuple(violations)
        return cls.fail(collected) if collected else cls.success()

    @property
    def succeeded(self) -> bool:
        return not self.violations

    @property
    def failed(self) -> bool:
        return bool(self.violations)

    @property
    def failures(self) -> list[str]:
        """Rendered ``path: message`` lines, one per violation."""

        return [violation.render() for violation in self.violations]

    @property
    def failure_message(self) -> Optional[str]:
        if self.succeeded:
            return None
        return MESSAGE_SEPARATOR.join(self.failures)

    def raise_for_failure(self) -> "ValidationResult":
        if self.failed:
            raise ConfigValidationError(self)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "message": self.failure_message,
            "violations": [violation.to_dict() for violation in self.violations],
        }

    def __bool__(self) -> bool:
        return self.succeeded


__all__ = ["MESSAGE_SEPARATOR", "ValidationResult"]
