"""Startup validation hook.

Applications call :meth:`StartupValidator.start` before serving anything: the
configuration is resolved, validated and summarised in the log, and startup is
aborted with :class:`~nestconf.errors.ConfigValidationError` when any declared
constraint is violated. Once the tree is known to be valid its ``logging``
section is applied, so the summary already goes to the configured sinks.
"""
from __future__ import annotations

from typing import Callable, Optional

from loguru import logger

from nestconf.errors import ConfigValidationError
from nestconf.logging_setup import configure_logging
from nestconf.options import AppOptions
from nestconf.result import ValidationResult
from nestconf.validator import RecursiveValidator

OptionsProvider = Callable[[], AppOptions]


class StartupValidator:
    """Validates configuration once when the host starts."""

    def __init__(
        self,
        provider: OptionsProvider,
        validator: Optional[RecursiveValidator] = None,
        *,
        configure_logs: bool = True,
    ) -> None:
        self._provider = provider
        self._validator = validator or RecursiveValidator()
        self._configure_logs = configure_logs
        self.options: Optional[AppOptions] = None
        self.result: Optional[ValidationResult] = None

    def start(self) -> AppOptions:
        try:
            options = self._provider()
        except ConfigValidationError as exc:
            logger.error("Configuration validation failed: {}", ", ".join(exc.failures))
            raise
        result = self._validator.validate(options)
        self.options, self.result = options, result
        if result.failed:
            logger.error(
                "Configuration validation failed: {}", ", ".join(result.failures)
            )
            raise ConfigValidationError(result)

        if self._configure_logs:
            configure_logging(options.logging, force=True)
        logger.info("Configuration validation completed successfully")
        logger.debug(
            "Using model: {} with temperature: {}",
            options.model.name,
            options.model.temperature,
        )
        logger.debug("Authentication method: {}", options.authentication.method.value)
        logger.debug("UI theme: {}", options.ui.theme)
        return options

    def stop(self) -> None:
        self.options = None
        self.result = None


__all__ = ["OptionsProvider", "StartupValidator"]
