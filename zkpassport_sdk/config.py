"""Shared configuration loader for the ZKPassport client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml

from .constants import DEFAULT_BRIDGE_URL, DEFAULT_REQUEST_URL
from .errors import ZkPassportError


class ConfigurationError(ZkPassportError):
    """Raised when configuration or builder usage is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".zkpassport.yaml"
_CONFIG_PATH_OVERRIDE: Path | None = None


@dataclass(frozen=True)
class ClientConfig:
    """Where requests point: the requesting domain, the relay and the wallet link."""

    domain: str
    bridge_url: str = DEFAULT_BRIDGE_URL
    request_url: str = DEFAULT_REQUEST_URL

    def bridge_url_for(self, topic: str) -> str:
        return f"{self.bridge_url}?topic={topic}"


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with a 'client' section")
    return loaded


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _validate_url(raw: str, *, schemes: set[str], source: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme.lower() not in schemes or not parsed.hostname:
        allowed = ", ".join(sorted(schemes))
        raise ConfigurationError(f"Invalid URL for {source}: {raw} (expected {allowed})")
    return raw.rstrip("/")


def load_client_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ClientConfig:
    """Load client configuration from overrides, environment variables and optional YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    client_section = file_config.get("client", {})
    if client_section is None:
        client_section = {}
    if not isinstance(client_section, dict):
        raise ConfigurationError(f"Expected 'client' to be a mapping in {path}")

    override_map = dict(overrides or {})

    resolved_domain = _first_value(
        override_map.get("domain"),
        env_map.get("ZKPASSPORT_DOMAIN"),
        client_section.get("domain"),
    )
    if not resolved_domain:
        raise ConfigurationError(
            "A requesting domain must be provided via ZKPASSPORT_DOMAIN, overrides or a config file"
        )

    resolved_bridge = _first_value(
        override_map.get("bridge_url"),
        env_map.get("ZKPASSPORT_BRIDGE_URL"),
        client_section.get("bridge_url"),
        default=DEFAULT_BRIDGE_URL,
    )
    resolved_request = _first_value(
        override_map.get("request_url"),
        env_map.get("ZKPASSPORT_REQUEST_URL"),
        client_section.get("request_url"),
        default=DEFAULT_REQUEST_URL,
    )

    return ClientConfig(
        domain=str(resolved_domain),
        bridge_url=_validate_url(str(resolved_bridge), schemes={"ws", "wss"}, source="bridge_url"),
        request_url=_validate_url(str(resolved_request), schemes={"http", "https"}, source="request_url"),
    )
