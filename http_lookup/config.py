"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
import yaml

from .retry_config import (
    BACKOFF_MULTIPLIER,
    FIXED_DELAY,
    INITIAL_BACKOFF,
    MAX_BACKOFF,
    MAX_RETRIES,
    STRATEGY_TYPE,
    ConfigError,
)


RETRY_ENV_OPTIONS = {
    "RETRY_STRATEGY_TYPE": STRATEGY_TYPE,
    "RETRY_FIXED_DELAY": FIXED_DELAY,
    "RETRY_INITIAL_BACKOFF": INITIAL_BACKOFF,
    "RETRY_MAX_BACKOFF": MAX_BACKOFF,
    "RETRY_BACKOFF_MULTIPLIER": BACKOFF_MULTIPLIER,
    "MAX_RETRIES": MAX_RETRIES,
}


@dataclass(frozen=True)
class Config:
    lookup_url: str
    lookup_arguments: List[str]
    lookup_headers: Dict[str, str]
    http_timeout: float
    log_file: str
    log_level: str
    schema_file: Optional[str]
    retry_options: Dict[str, Any] = field(default_factory=dict)


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ConfigError(f"Missing required environment variable: {name}")
    return value


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_headers(value: Optional[str]) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    if not value:
        return headers
    for item in value.split(";"):
        if not item.strip():
            continue
        name, sep, header_value = item.partition(":")
        if not sep or not name.strip():
            raise ConfigError(f"Invalid LOOKUP_HEADERS entry: {item.strip()!r}")
        headers[name.strip()] = header_value.strip()
    return headers


def load_options_file(path: str | Path) -> Dict[str, Any]:
    """Read a YAML options file and flatten nested mappings into dotted keys."""
    raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Options file {path} must contain a mapping")
    return _flatten(raw)


def _flatten(raw: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in raw.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{name}."))
        else:
            flat[name] = value
    return flat


def load_retry_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    options_file = _normalize_optional(os.getenv("LOOKUP_OPTIONS_FILE"))
    if options_file:
        options.update(load_options_file(options_file))
    for env_name, key in RETRY_ENV_OPTIONS.items():
        value = _normalize_optional(os.getenv(env_name))
        if value is not None:
            options[key] = value
    return options


def load_config() -> Config:
    load_dotenv()

    arguments = _parse_list(_require_env("LOOKUP_ARGUMENTS"))
    if not arguments:
        raise ConfigError("LOOKUP_ARGUMENTS must name at least one argument")

    try:
        http_timeout = float(os.getenv("HTTP_TIMEOUT", "30"))
    except ValueError as exc:
        raise ConfigError(f"HTTP_TIMEOUT must be a number: {exc}") from exc

    return Config(
        lookup_url=_require_env("LOOKUP_URL"),
        lookup_arguments=arguments,
        lookup_headers=_parse_headers(os.getenv("LOOKUP_HEADERS")),
        http_timeout=http_timeout,
        log_file=os.getenv("LOG_FILE", "logs/lookup.log"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        schema_file=_normalize_optional(os.getenv("LOOKUP_SCHEMA_FILE")),
        retry_options=load_retry_options(),
    )


def _normalize_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned if cleaned else None
