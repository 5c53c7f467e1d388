"""Layered configuration loader, persistence helpers and CLI."""
from __future__ import annotations

import argparse
import copy
import json
import os
import shutil
import sys
import tempfile
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Sequence

import tomli_w
from dotenv import dotenv_values
from loguru import logger
from pydantic import ValidationError

from nestconf.errors import ConfigError, ConfigValidationError
from nestconf.options import DEFAULT_CONFIG, AppOptions, iter_field_docs
from nestconf.result import ValidationResult
from nestconf.validator import DEFAULT_MAX_DEPTH, validate

DEFAULT_ENV_PREFIX = "NESTCONF"
DEFAULT_ENVIRONMENT = "production"
DEFAULT_CONFIG_FILENAME = "config.toml"
DEFAULT_ENV_FILENAME = ".env"
BACKUP_DIRNAME = "backups"
MASK = "***masked***"


@dataclass(frozen=True)
class ConfigValueOrigin:
    """Which layer supplied a value, and from where."""

    layer: str
    source: str
    env_var: str | None = None

    def render(self) -> str:
        details = [item for item in (self.env_var, self.source) if item]
        if details:
            return f"{self.layer} ({', '.join(details)})"
        return self.layer


@dataclass
class ConfigMetadata:
    """Where a load looked for sources and what each key resolved from."""

    config_path: Path
    environment_path: Optional[Path]
    env_path: Optional[Path]
    env_prefix: str
    environment: str
    provenance: Dict[str, ConfigValueOrigin] = field(default_factory=dict)
    load_order: tuple[str, ...] = (
        "defaults",
        "file",
        "environment-file",
        "env-file",
        "env",
        "cli",
    )

    def describe_sources(self) -> list[str]:
        sources: list[str] = [
            "defaults: built into nestconf.options",
            f"config file: {self.config_path}",
        ]
        if self.environment_path:
            sources.append(f"{self.environment} file: {self.environment_path}")
        else:
            sources.append(f"{self.environment} file: not found")
        if self.env_path:
            sources.append(f".env file: {self.env_path}")
        else:
            sources.append(".env file: not found")
        sources.append(f"environment prefix: {self.env_prefix}__*")
        sources.append("command line: --override KEY=VALUE")
        return sources


@dataclass
class LoadedConfig:
    """A bound options tree together with where every value came from."""

    options: AppOptions
    metadata: ConfigMetadata
    result: ValidationResult = field(default_factory=ValidationResult.success)


def _is_secret(path: str) -> bool:
    lowered = path.lower()
    return any(token in lowered for token in ("password", "secret", "api_key"))


def _merge_layer(
    target: MutableMapping[str, Any],
    updates: Mapping[str, Any],
    provenance: Dict[str, ConfigValueOrigin],
    *,
    origin: ConfigValueOrigin,
    prefix: str = "",
) -> None:
    """Overlay ``updates`` onto ``target`` section by section, recording ``origin``."""

    for key, value in updates.items():
        dotted = _dotted(prefix, key)
        if not isinstance(value, Mapping):
            target[key] = value
            provenance[dotted] = origin
            continue
        section = target.setdefault(key, {})
        if not isinstance(section, MutableMapping):
            section = target[key] = {}
        _merge_layer(section, value, provenance, origin=origin, prefix=dotted)


def _dotted(prefix: str, key: Any) -> str:
    return f"{prefix}.{key}" if prefix else str(key)


def _parse_env_key(raw_key: str, prefix: str) -> str:
    if not raw_key.upper().startswith(prefix.upper() + "__"):
        raise ConfigError(
            f"Environment override '{raw_key}' does not start with prefix {prefix}__"
        )
    segments = [segment for segment in raw_key[len(prefix) + 2 :].split("__") if segment]
    if not segments:
        raise ConfigError(f"Environment override '{raw_key}' is missing key segments")
    return ".".join(segment.lower() for segment in segments)


def _coerce_text(value: str) -> Any:
    """Turn override text into a bindable value.

    Scalars stay text so pydantic can coerce them against the declared type;
    only explicit nulls and JSON containers are decoded here.
    """

    text = value.strip()
    if text.lower() in {"null", "none"}:
        return None
    if (text.startswith("[") and text.endswith("]")) or (
        text.startswith("{") and text.endswith("}")
    ):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return text


def _assign_path(target: MutableMapping[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    node = target
    for name in parents:
        child = node.get(name)
        if not isinstance(child, MutableMapping):
            child = node[name] = {}
        node = child
    node[leaf] = value


def _serialize_for_toml(value: Any) -> Any:
    if isinstance(value, AppOptions):
        return _serialize_for_toml(value.model_dump(mode="python"))
    if isinstance(value, Mapping):
        # TOML has no null; unset optionals are simply omitted.
        return {
            key: _serialize_for_toml(val) for key, val in value.items() if val is not None
        }
    if isinstance(value, (list, tuple)):
        return [_serialize_for_toml(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    return value


def _backup(path: Path) -> Path:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    destination = path.parent / BACKUP_DIRNAME / f"{path.name}.{stamp}.bak"
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(path, destination)
    return destination


def _write_atomic(path: Path, payload: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, staging_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    staging = Path(staging_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            tomli_w.dump(payload, handle)
        if path.exists():
            logger.debug("Backed up {} to {}", path, _backup(path))
        os.replace(staging, path)
    except OSError as exc:
        staging.unlink(missing_ok=True)
        raise ConfigError(f"Could not write {path}: {exc}") from exc


def _load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError:
        return {}
    except (tomllib.TOMLDecodeError, OSError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _environment_file(config_path: Path, environment: str) -> Path:
    return config_path.with_name(f"{config_path.stem}.{environment.lower()}{config_path.suffix}")


def _format_binding_error(
    error: ValidationError,
    provenance: Mapping[str, ConfigValueOrigin],
) -> ConfigError:
    messages: list[str] = []
    for record in error.errors():
        location = ".".join(str(part) for part in record.get("loc", ()))
        origin = provenance.get(location)
        origin_text = f" [{origin.render()}]" if origin else ""
        detail = record.get("msg", "invalid value")
        input_value = record.get("input")
        if input_value is not None and not _is_secret(location):
            detail += f" (received={input_value!r})"
        messages.append(f"{location or '<root>'}: {detail}{origin_text}")
    combined = "\n - ".join(messages)
    return ConfigError(f"Configuration binding failed:\n - {combined}")


def _format_violations(
    result: ValidationResult,
    provenance: Mapping[str, ConfigValueOrigin],
) -> ConfigValidationError:
    messages: list[str] = []
    for violation in result.violations:
        origin = provenance.get(violation.path)
        origin_text = f" [{origin.render()}]" if origin else ""
        messages.append(f"{violation.render()}{origin_text}")
    combined = "\n - ".join(messages)
    return ConfigValidationError(
        result, f"Configuration validation failed:\n - {combined}"
    )


def bind_layers(
    path: Path | None = None,
    *,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
    environment: str | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> LoadedConfig:
    """Merge every source by precedence and bind the result without validating it.

    Precedence, lowest to highest: compiled-in defaults, ``config.toml``,
    ``config.<environment>.toml``, ``.env``, process environment and
    command-line/in-memory ``overrides`` (dotted keys).
    """

    config_path = path if path else Path.cwd() / DEFAULT_CONFIG_FILENAME
    runtime_env = os.environ if environ is None else environ
    env_path = config_path.parent / DEFAULT_ENV_FILENAME
    env_file_data: Dict[str, str] = {}
    if env_path.exists():
        env_file_data = {
            key: value
            for key, value in dotenv_values(env_path, verbose=False).items()
            if value is not None
        }
    environment_name = (
        environment
        or runtime_env.get(f"{env_prefix}_ENVIRONMENT")
        or env_file_data.get(f"{env_prefix}_ENVIRONMENT")
        or DEFAULT_ENVIRONMENT
    )
    environment_path = _environment_file(config_path, environment_name)

    defaults = DEFAULT_CONFIG.model_dump(mode="python")
    merged = copy.deepcopy(defaults)
    provenance: Dict[str, ConfigValueOrigin] = {}
    _merge_layer(
        merged,
        defaults,
        provenance,
        origin=ConfigValueOrigin(layer="defaults", source="nestconf.options.DEFAULT_CONFIG"),
    )

    for layer, file_path in (("file", config_path), ("environment-file", environment_path)):
        file_data = _load_toml(file_path)
        if file_data:
            logger.debug("Merging {} layer from {}", layer, file_path)
            origin = ConfigValueOrigin(layer=layer, source=str(file_path))
            _merge_layer(merged, file_data, provenance, origin=origin)

    prefix_marker = env_prefix.upper() + "__"
    for layer, source, values in (
        ("env-file", str(env_path), env_file_data),
        ("env", "process", runtime_env),
    ):
        for key, value in values.items():
            if not key.upper().startswith(prefix_marker):
                continue
            path_key = _parse_env_key(key, env_prefix)
            _assign_path(merged, path_key, _coerce_text(value))
            provenance[path_key] = ConfigValueOrigin(layer=layer, source=source, env_var=key)

    for key, value in (overrides or {}).items():
        parsed = _coerce_text(value) if isinstance(value, str) else value
        _assign_path(merged, key, parsed)
        provenance[key] = ConfigValueOrigin(layer="cli", source="command line")

    try:
        options = AppOptions.model_validate(merged)
    except ValidationError as exc:
        raise _format_binding_error(exc, provenance) from exc
    metadata = ConfigMetadata(
        config_path=config_path,
        environment_path=environment_path if environment_path.exists() else None,
        env_path=env_path if env_path.exists() else None,
        env_prefix=env_prefix,
        environment=environment_name,
        provenance=provenance,
    )
    return LoadedConfig(options=options, metadata=metadata)


def load_config(
    path: Path | None = None,
    *,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
    environment: str | None = None,
    overrides: Mapping[str, Any] | None = None,
    check: bool = True,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> LoadedConfig:
    """Load, bind and validate configuration.

    Raises ``ConfigError`` when a source cannot be read or a value cannot be
    bound to its declared type, and ``ConfigValidationError`` when the bound
    tree violates declared constraints (unless ``check`` is false, in which
    case the result is returned on the ``LoadedConfig`` for the caller).
    """

    loaded = bind_layers(
        path,
        env_prefix=env_prefix,
        environ=environ,
        environment=environment,
        overrides=overrides,
    )
    loaded.result = validate(loaded.options, max_depth=max_depth)
    if check and loaded.result.failed:
        raise _format_violations(loaded.result, loaded.metadata.provenance)
    return loaded


def save_config(loaded: LoadedConfig, path: Path | None = None) -> Path:
    """Write the options to ``path`` (default: the file they were loaded from).

    The previous file, if any, is copied to ``backups/`` first; unset optional
    values are omitted since TOML has no null.
    """

    target_path = path or loaded.metadata.config_path
    _write_atomic(target_path, _serialize_for_toml(loaded.options))
    logger.info("Saved configuration to {}", target_path)
    return target_path


def _flatten_mapping(mapping: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in mapping.items():
        if isinstance(value, Mapping):
            flat.update(_flatten_mapping(value, _dotted(prefix, key)))
        else:
            flat[_dotted(prefix, key)] = value
    return flat


def _resolve_value(mapping: Mapping[str, Any], path: str) -> Any:
    flat = _flatten_mapping(mapping)
    if path not in flat:
        raise ConfigError(f"Unknown configuration key: {path}")
    return flat[path]


def _safe_repr(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    try:
        return json.dumps(value, ensure_ascii=False)
    except TypeError:
        return repr(value)


def masked_dump(options: AppOptions) -> Dict[str, Any]:
    """Return the options as plain data with secret values masked."""

    data = options.model_dump(mode="json")
    for key, value in _flatten_mapping(data).items():
        if value is not None and _is_secret(key):
            _assign_path(data, key, MASK)
    return data


def _diff_configs(before: Mapping[str, Any], after: Mapping[str, Any]) -> list[str]:
    """One ``key: old -> new`` line per changed leaf, secrets masked."""

    old_values = _flatten_mapping(before)
    new_values = _flatten_mapping(after)
    lines: list[str] = []
    for key in sorted(old_values.keys() | new_values.keys()):
        old, new = old_values.get(key), new_values.get(key)
        if old == new:
            continue
        shown = (MASK, MASK) if _is_secret(key) else (_safe_repr(old), _safe_repr(new))
        lines.append(f"{key}: {shown[0]} -> {shown[1]}")
    return lines


def _table_row(cells: Sequence[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def _format_schema_table() -> str:
    columns = ("Field", "Type", "Default", "Description", "Constraints", "Example")
    rows = [_table_row(columns), _table_row(["---"] * len(columns))]
    for entry in iter_field_docs(DEFAULT_CONFIG):
        rows.append(
            _table_row(
                [
                    str(entry["name"]),
                    str(entry["type"]),
                    "" if entry["default"] is None else _safe_repr(entry["default"]),
                    str(entry["description"]),
                    str(entry["constraints"]),
                    ", ".join(str(item) for item in entry["examples"] or ()),
                ]
            )
        )
    return "\n".join(rows)


def _dump_defaults() -> str:
    return tomli_w.dumps(_serialize_for_toml(DEFAULT_CONFIG))


def _show_sources(metadata: ConfigMetadata) -> str:
    details = "\n".join(f"- {item}" for item in metadata.describe_sources())
    return f"Active configuration sources:\n{details}"


def _explain(loaded: LoadedConfig, key: str) -> str:
    data = loaded.options.model_dump(mode="python")
    value = _resolve_value(data, key)
    origin = loaded.metadata.provenance.get(key)
    origin_text = origin.render() if origin else "unknown"
    formatted_value = MASK if _is_secret(key) else _safe_repr(value)
    return f"{key} = {formatted_value}\nsource: {origin_text}"


def _apply_updates(loaded: LoadedConfig, updates: Mapping[str, str]) -> LoadedConfig:
    baseline = loaded.options.model_dump(mode="python")
    updated = copy.deepcopy(baseline)
    known_paths = set(_flatten_mapping(baseline))
    provenance = dict(loaded.metadata.provenance)
    for key, raw_value in updates.items():
        if key not in known_paths:
            raise ConfigError(f"Unknown configuration key: {key}")
        _assign_path(updated, key, _coerce_text(raw_value))
        provenance[key] = ConfigValueOrigin(layer="cli", source="--set")
    try:
        options = AppOptions.model_validate(updated)
    except ValidationError as exc:
        raise _format_binding_error(exc, provenance) from exc
    result = validate(options)
    if result.failed:
        raise _format_violations(result, provenance)
    metadata = ConfigMetadata(
        config_path=loaded.metadata.config_path,
        environment_path=loaded.metadata.environment_path,
        env_path=loaded.metadata.env_path,
        env_prefix=loaded.metadata.env_prefix,
        environment=loaded.metadata.environment,
        provenance=provenance,
    )
    return LoadedConfig(options=options, metadata=metadata, result=result)


def _parse_assignments(items: Sequence[str], flag: str) -> Dict[str, str]:
    parsed: Dict[str, str] = {}
    for item in items:
        if "=" not in item:
            raise ConfigError(f"Invalid {flag} argument: '{item}'")
        key, value = item.split("=", 1)
        parsed[key.strip()] = value
    return parsed


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="nestconf configuration utilities",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="Path to the TOML configuration file")
    parser.add_argument(
        "--env-prefix",
        default=DEFAULT_ENV_PREFIX,
        help="Environment variable prefix (e.g. NESTCONF__MODEL__NAME)",
    )
    parser.add_argument(
        "--environment",
        help="Environment name selecting config.<environment>.toml",
    )
    parser.add_argument(
        "--override",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Highest-precedence override applied for this invocation only",
    )
    actions = parser.add_mutually_exclusive_group(required=True)
    actions.add_argument("--validate", action="store_true", help="Validate the active configuration")
    actions.add_argument("--dump-defaults", action="store_true", help="Print built-in defaults as TOML")
    actions.add_argument("--print-schema", action="store_true", help="Print Markdown table documenting all fields")
    actions.add_argument("--show-sources", action="store_true", help="Show configuration source precedence")
    actions.add_argument("--explain", metavar="KEY", help="Explain where a field value originates")
    actions.add_argument(
        "--set",
        nargs="+",
        metavar="KEY=VALUE",
        help="Apply one or more validated updates and persist them to the config file",
    )

    args = parser.parse_args(argv)
    logger.remove()
    logger.add(sys.stderr, level="WARNING")

    try:
        if args.dump_defaults:
            sys.stdout.write(_dump_defaults())
            return 0
        if args.print_schema:
            sys.stdout.write(_format_schema_table() + "\n")
            return 0

        loaded = load_config(
            args.config,
            env_prefix=args.env_prefix,
            environment=args.environment,
            overrides=_parse_assignments(args.override, "--override"),
            # --set validates the updated tree, so a broken file can be repaired.
            check=not args.set,
        )
        if args.validate:
            print("Configuration OK")
            return 0
        if args.show_sources:
            print(_show_sources(loaded.metadata))
            return 0
        if args.explain:
            print(_explain(loaded, args.explain))
            return 0
        if args.set:
            updated = _apply_updates(loaded, _parse_assignments(args.set, "--set"))
            before = loaded.options.model_dump(mode="python")
            after = updated.options.model_dump(mode="python")
            save_path = save_config(updated, args.config)
            for line in _diff_configs(before, after):
                print(line)
            print(f"Saved configuration to {save_path}")
            return 0
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI entry point
    raise SystemExit(main())
