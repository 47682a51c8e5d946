"""Configuration loading utilities for the libsql CLI suite."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from . import paths
from .connection_url import ConnectionTarget, parse_connection_url
from .exceptions import ConfigurationError, ValidationError

DEFAULT_SERVER_URL = "http://127.0.0.1:8080"
DEFAULT_CLIENT_ID = "libsql-cli/1.0"
OUTPUT_FORMATS = ("table", "csv", "tsv", "json")


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Remote endpoint configuration handed to the transport client."""

    url: str
    auth_token: str | None
    client_id: str
    timeout: float


@dataclass(frozen=True, slots=True)
class OutputSettings:
    """Rendering defaults for the query CLI."""

    default_format: str
    row_limit: int


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Top-level application configuration."""

    source_path: Path
    server: ServerSettings
    output: OutputSettings

    def with_server(self, url: str | None = None, auth_token: str | None = None) -> AppConfig:
        """Return a copy pointing at another server and/or carrying another token."""
        server = self.server
        if url:
            target = _parse_url(url)
            server = replace(server, url=target.base_url, auth_token=target.auth_token or server.auth_token)
        if auth_token:
            server = replace(server, auth_token=auth_token)
        return replace(self, server=server)


def _default_config() -> dict[str, Any]:
    return {
        "server": {
            "url": DEFAULT_SERVER_URL,
            "auth_token": None,
            "auth_token_env": "LIBSQL_AUTH_TOKEN",
            "client_id": DEFAULT_CLIENT_ID,
            "timeout": 30.0,
        },
        "output": {
            "default_format": "table",
            "row_limit": 200,
        },
    }


ENV_OVERRIDE_SPEC: dict[str, tuple[str, type]] = {
    "server.url": ("LIBSQL_CLI_SERVER_URL", str),
    "server.auth_token_env": ("LIBSQL_CLI_AUTH_TOKEN_ENV", str),
    "server.client_id": ("LIBSQL_CLI_CLIENT_ID", str),
    "server.timeout": ("LIBSQL_CLI_TIMEOUT", float),
    "output.default_format": ("LIBSQL_CLI_OUTPUT_FORMAT", str),
    "output.row_limit": ("LIBSQL_CLI_ROW_LIMIT", int),
}


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from defaults, YAML file, and env overrides."""
    env = dict(env if env is not None else os.environ)
    resolved_config_path = _resolve_config_path(config_path, env)
    file_data = _load_yaml(resolved_config_path)
    merged: dict[str, Any] = _deep_merge(_default_config(), file_data)
    merged = _apply_env_overrides(merged, env)
    return _build_config(merged, resolved_config_path, env)


def _resolve_config_path(config_path: str | Path | None, env: Mapping[str, str]) -> Path:
    if config_path:
        return paths.resolve_path(config_path)
    return paths.default_config_path(env=env)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Config file at {path} is not valid YAML: {exc}") from exc
        if not isinstance(data, MutableMapping):
            raise ConfigurationError(f"Config file at {path} must define a mapping root object.")
        return dict(data)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    config_copy = _deep_merge(config, {})
    for dotted_key, (env_key, expected_type) in ENV_OVERRIDE_SPEC.items():
        if env_key not in env:
            continue
        raw_value = env[env_key]
        try:
            value = _coerce_env_value(raw_value, expected_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Environment override {env_key} has invalid value '{raw_value}': {exc}"
            ) from exc
        _assign_nested(config_copy, dotted_key.split("."), value)
    return config_copy


def _coerce_env_value(raw: str, expected_type: type) -> Any:
    cleaned = raw.strip()
    if expected_type is int:
        return int(cleaned)
    if expected_type is float:
        return float(cleaned)
    return cleaned


def _assign_nested(target: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    current = target
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], MutableMapping):
            current[key] = {}
        current = current[key]  # type: ignore[assignment]
    current[keys[-1]] = value


def _parse_url(url: str) -> ConnectionTarget:
    try:
        return parse_connection_url(url)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def _build_config(data: Mapping[str, Any], source_path: Path, env: Mapping[str, str]) -> AppConfig:
    try:
        server_cfg = data["server"]
        target = _parse_url(str(server_cfg["url"]))
        token = server_cfg.get("auth_token")
        token_env = server_cfg.get("auth_token_env")
        if not token and token_env:
            token = env.get(str(token_env)) or None
        if not token:
            token = target.auth_token
        timeout = float(server_cfg["timeout"])
        if timeout <= 0:
            raise ValueError("server.timeout must be positive")
        server = ServerSettings(
            url=target.base_url,
            auth_token=str(token) if token else None,
            client_id=str(server_cfg["client_id"]),
            timeout=timeout,
        )
        output_cfg = data["output"]
        default_format = str(output_cfg["default_format"]).lower()
        if default_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"output.default_format must be one of {', '.join(OUTPUT_FORMATS)}"
            )
        output = OutputSettings(
            default_format=default_format,
            row_limit=int(output_cfg["row_limit"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration structure: {exc}") from exc

    return AppConfig(source_path=source_path, server=server, output=output)
