"""Exceptions raised outside the validation core."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from nestconf.result import ValidationResult


class ConfigError(RuntimeError):
    """Raised when configuration loading, binding or persistence fails."""


class ConfigValidationError(ConfigError):
    """Raised when a bound configuration tree violates its declared constraints."""

    def __init__(self, result: "ValidationResult", message: str | None = None) -> None:
        self.result = result
        super().__init__(message or f"Configuration validation failed: {result.failure_message}")

    @property
    def failures(self) -> list[str]:
        return self.result.failures


__all__ = ["ConfigError", "ConfigValidationError"]
