"""Declarative application options schema."""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nestconf.classifier import FieldKind, classify_type
from nestconf.constraints import Length, Pattern, Range, Required
from nestconf.registry import ConstraintRegistry, default_registry


class StrictModel(BaseModel):
    """Base model for option sections.

    Binding only coerces types; declared constraints are checked by the
    recursive validator so that a bound tree can report every problem at once.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
    )


class AuthenticationMethod(str, Enum):
    """Supported authentication flows."""

    OAUTH = "oauth"
    API_KEY = "api_key"
    VERTEX_AI = "vertex_ai"


class ModelOptions(StrictModel):
    """Language model selection and sampling parameters."""

    name: Annotated[str, Required()] = Field(
        default="gemini-2.0-flash-exp",
        description="Model identifier sent to the provider.",
        examples=["gpt-4-turbo"],
    )
    temperature: Annotated[float, Range(0.0, 2.0)] = Field(
        default=0.7,
        description="Sampling temperature (0.0 to 2.0).",
    )
    max_tokens: Annotated[Optional[int], Range(1, 32_768)] = Field(
        default=None,
        description="Maximum number of tokens in a response.",
        examples=[2048],
    )
    top_p: Annotated[Optional[float], Range(0.0, 1.0)] = Field(
        default=None,
        description="Nucleus sampling probability mass.",
    )
    top_k: Annotated[Optional[int], Range(1, 100)] = Field(
        default=None,
        description="Top-k sampling cutoff.",
    )


class OAuthOptions(StrictModel):
    """OAuth client settings."""

    client_id: Optional[str] = Field(default=None, description="OAuth client ID.")
    client_secret: Optional[str] = Field(
        default=None, description="OAuth client secret; treated as secret."
    )
    redirect_uri: Annotated[str, Pattern(r"https?://\S+")] = Field(
        default="http://localhost:8080/callback",
        description="Redirect URI registered with the identity provider.",
    )


class VertexAIOptions(StrictModel):
    """Google Cloud Vertex AI settings."""

    project_id: Optional[str] = Field(default=None, description="Google Cloud project ID.")
    region: Annotated[str, Pattern(r"[a-z]+-[a-z]+\d+")] = Field(
        default="us-central1",
        description="Google Cloud region.",
        examples=["europe-west4"],
    )
    service_account_key_path: Optional[str] = Field(
        default=None, description="Path to the service account key file."
    )


class AuthenticationOptions(StrictModel):
    """Credentials and provider selection."""

    method: Annotated[AuthenticationMethod, Required()] = Field(
        default=AuthenticationMethod.OAUTH,
        description="Authentication flow used at startup.",
    )
    cache_tokens: bool = Field(default=True, description="Cache issued tokens on disk.")
    api_key: Annotated[Optional[str], Length(8, 256)] = Field(
        default=None, description="API key for direct authentication; treated as secret."
    )
    oauth: OAuthOptions = Field(default_factory=OAuthOptions)
    vertex_ai: VertexAIOptions = Field(default_factory=VertexAIOptions)
    default_provider: Annotated[str, Required()] = Field(
        default="OpenAI", description="Provider used when none is requested."
    )

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_")
            return {"apikey": "api_key", "vertexai": "vertex_ai"}.get(normalized, normalized)
        return value


class UIOptions(StrictModel):
    """Terminal presentation settings."""

    theme: Annotated[str, Required()] = Field(
        default="default", description="Theme name.", examples=["dark"]
    )
    enable_syntax_highlighting: bool = Field(default=True)
    enable_auto_scroll: bool = Field(default=True)
    max_display_messages: Annotated[int, Range(10, 1_000)] = Field(
        default=100, description="Maximum number of messages kept on screen."
    )


class ToolOptions(StrictModel):
    """Tool execution guards."""

    require_confirmation: bool = Field(
        default=True, description="Ask before running dangerous operations."
    )
    default_timeout_ms: Annotated[int, Range(1_000, 300_000)] = Field(
        default=30_000, description="Default tool timeout in milliseconds."
    )
    max_file_size_bytes: Annotated[int, Range(1_024, 100 * 1024 * 1024)] = Field(
        default=10 * 1024 * 1024, description="Largest file a tool may read."
    )


class LoggingOptions(StrictModel):
    """Logging sinks."""

    minimum_level: Annotated[
        str,
        Required(),
        Pattern(r"(?i)trace|debug|info|information|success|warn|warning|error|critical|fatal"),
    ] = Field(default="INFO", description="Minimum level emitted to every sink.")
    write_to_file: bool = Field(default=True)
    file_path: Annotated[str, Length(1, 4_096)] = Field(
        default="logs/nestconf.log", description="Rotating log file location."
    )
    write_to_console: bool = Field(default=True)
    rotation: str = Field(default="10 MB", description="Size or age triggering rotation.")
    retention: str = Field(default="30 days", description="How long rotated files are kept.")


class AppOptions(StrictModel):
    """Root application options."""

    model: Annotated[ModelOptions, Required()] = Field(default_factory=ModelOptions)
    authentication: Annotated[AuthenticationOptions, Required()] = Field(
        default_factory=AuthenticationOptions
    )
    ui: Annotated[UIOptions, Required()] = Field(default_factory=UIOptions)
    tools: Annotated[ToolOptions, Required()] = Field(default_factory=ToolOptions)
    logging: Annotated[LoggingOptions, Required()] = Field(default_factory=LoggingOptions)


SECTION_NAMES: tuple[str, ...] = tuple(AppOptions.model_fields)

DEFAULT_CONFIG = AppOptions()


def iter_field_docs(
    model: BaseModel | type[BaseModel] = DEFAULT_CONFIG,
    prefix: str = "",
    *,
    include_defaults: bool = True,
    registry: ConstraintRegistry | None = None,
) -> Iterable[dict[str, object]]:
    """Yield flattened schema documentation entries."""

    registry = registry or default_registry
    instance = model() if isinstance(model, type) else model
    schema = registry.schema_for(type(instance))

    for spec in schema.fields:
        info = type(instance).model_fields.get(spec.name)
        value = getattr(instance, spec.name, None)
        key = _join(prefix, spec.name)
        is_nested = classify_type(spec.annotation, registry) is FieldKind.STRUCTURED_NODE
        entry: dict[str, object] = {
            "name": key,
            "type": getattr(spec.annotation, "__name__", str(spec.annotation)),
            "description": spec.description,
            "default": None if (is_nested or not include_defaults) else _plain(value),
            "examples": (info.examples if info else None) or [],
            "constraints": ", ".join(c.describe() for c in spec.constraints),
            "is_nested": is_nested,
        }
        yield entry
        if is_nested and isinstance(value, BaseModel):
            yield from iter_field_docs(
                value, key, include_defaults=include_defaults, registry=registry
            )


def _join(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


__all__ = [
    "AppOptions",
    "AuthenticationMethod",
    "AuthenticationOptions",
    "DEFAULT_CONFIG",
    "LoggingOptions",
    "ModelOptions",
    "OAuthOptions",
    "SECTION_NAMES",
    "StrictModel",
    "ToolOptions",
    "UIOptions",
    "VertexAIOptions",
    "iter_field_docs",
]
