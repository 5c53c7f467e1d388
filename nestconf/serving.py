"""HTTP surface for inspecting and validating configuration on demand."""
from __future__ import annotations

import os
from typing import Any, Callable, Dict

from fastapi import Body, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ValidationError

from nestconf.config_manager import DEFAULT_ENV_PREFIX, DEFAULT_ENVIRONMENT, masked_dump
from nestconf.options import AppOptions, AuthenticationMethod, SECTION_NAMES
from nestconf.validator import RecursiveValidator

OptionsProvider = Callable[[], AppOptions]


def _binding_errors(exc: ValidationError) -> list[Dict[str, str]]:
    return [
        {
            "path": ".".join(str(part) for part in record.get("loc", ())) or "<root>",
            "message": record.get("msg", "invalid value"),
            "kind": "binding_error",
        }
        for record in exc.errors()
    ]


def create_app(
    provider: OptionsProvider,
    *,
    validator: RecursiveValidator | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
) -> FastAPI:
    """Build the configuration API around a provider of the current options."""

    checker = validator or RecursiveValidator()
    app = FastAPI(title="nestconf configuration API")
    section_models: Dict[str, type[BaseModel]] = {
        name: AppOptions.model_fields[name].annotation for name in SECTION_NAMES
    }

    def _validate_payload(model: type[BaseModel], payload: Dict[str, Any]) -> JSONResponse:
        try:
            bound = model.model_validate(payload)
        except ValidationError as exc:
            return JSONResponse(
                status_code=400,
                content={"message": "Validation failed", "violations": _binding_errors(exc)},
            )
        result = checker.validate(bound)
        if result.succeeded:
            return JSONResponse(
                status_code=200,
                content={"message": "Validation passed", "model": bound.model_dump(mode="json")},
            )
        return JSONResponse(
            status_code=400,
            content={
                "message": "Validation failed",
                "errors": result.failure_message,
                "violations": [violation.to_dict() for violation in result.violations],
            },
        )

    @app.get("/api/configuration")
    def get_configuration() -> Dict[str, Any]:
        logger.info("Retrieving configuration")
        return masked_dump(provider())

    @app.get("/api/configuration/section/{section_name}")
    def get_section(section_name: str) -> Dict[str, Any]:
        data = masked_dump(provider())
        key = section_name.lower()
        if key not in data:
            raise HTTPException(
                status_code=404,
                detail=f"Configuration section '{section_name}' not found",
            )
        return data[key]

    @app.get("/api/configuration/metadata")
    def get_metadata() -> Dict[str, Any]:
        return {
            "configuration_sections": list(SECTION_NAMES),
            "authentication_methods": [method.value for method in AuthenticationMethod],
            "current_environment": os.environ.get(
                f"{env_prefix}_ENVIRONMENT", DEFAULT_ENVIRONMENT
            ),
        }

    @app.get("/api/configuration/validation")
    def get_validation() -> Dict[str, Any]:
        return checker.validate(provider()).to_dict()

    @app.post("/api/configuration/test-validation")
    def test_validation(payload: Dict[str, Any] = Body(...)) -> JSONResponse:
        return _validate_payload(AppOptions, payload)

    @app.post("/api/configuration/section/{section_name}/test-validation")
    def test_section_validation(
        section_name: str, payload: Dict[str, Any] = Body(...)
    ) -> JSONResponse:
        model = section_models.get(section_name.lower())
        if model is None:
            raise HTTPException(
                status_code=404,
                detail=f"Configuration section '{section_name}' not found",
            )
        return _validate_payload(model, payload)

    return app


__all__ = ["create_app"]
