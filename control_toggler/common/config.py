"""
Configuration Dataclasses

Type-safe configuration for a toggler instance, loaded from a YAML file
with credential overrides from the environment.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from .exceptions import ConfigError

if TYPE_CHECKING:
    from control_toggler.toggler.toggler import ControlToggler

TOKEN_ENV = "CONTROL_TOGGLER_TOKEN"
SECRET_ENV = "CONTROL_TOGGLER_SECRET"


@dataclass
class TogglerConfig:
    """Settings for one toggler"""
    base_url: str
    device_id: int
    control_id: str
    query_url: str | None = None  # Reading API host, if different
    token_id: str | None = None
    token_secret: str | None = None
    refresh_ms: int = 20000
    pending_refresh_ms: int = 5000
    request_timeout_s: float = 30.0
    log_level: str = "INFO"
    log_format: str = "json"

    def to_dict(self) -> dict[str, Any]:
        """Dictionary view for display; the secret is masked"""
        return {
            "base_url": self.base_url,
            "query_url": self.query_url,
            "device_id": self.device_id,
            "control_id": self.control_id,
            "token_id": self.token_id,
            "token_secret": "****" if self.token_secret else None,
            "refresh_ms": self.refresh_ms,
            "pending_refresh_ms": self.pending_refresh_ms,
            "request_timeout_s": self.request_timeout_s,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }

    def create_toggler(self, transport=None) -> "ControlToggler":
        """Build the API clients, auth and toggler described by this config"""
        from control_toggler.api.auth import AuthorizationV2Builder
        from control_toggler.api.client import CommandApi, ReadingApi
        from control_toggler.toggler.toggler import ControlToggler

        api = CommandApi(self.base_url, timeout=self.request_timeout_s, transport=transport)
        query_api = None
        if self.query_url:
            query_api = ReadingApi(
                self.query_url, timeout=self.request_timeout_s, transport=transport
            )
        auth = AuthorizationV2Builder(self.token_id, self.token_secret)

        toggler = ControlToggler(api, auth, self.device_id, self.control_id, query_api)
        toggler.refresh_ms = self.refresh_ms
        toggler.pending_refresh_ms = self.pending_refresh_ms
        return toggler


def _int(data: dict, key: str, default: int | None = None) -> int | None:
    value = data.get(key, default)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {value!r}")


def load_toggler_config(data: dict, env: dict | None = None) -> TogglerConfig:
    """
    Load TogglerConfig from a dictionary (e.g., parsed YAML).

    Expected sections: api (base_url, query_url, token, secret, timeout_s),
    control (device_id, control_id), polling (refresh_ms, pending_refresh_ms),
    logging (level, format). Credentials in the environment take precedence.
    """
    env = os.environ if env is None else env
    api = data.get("api") or {}
    control = data.get("control") or {}
    polling = data.get("polling") or {}
    logging_data = data.get("logging") or {}

    base_url = api.get("base_url")
    if not base_url:
        raise ConfigError("api.base_url is required")

    device_id = _int(control, "device_id")
    if device_id is None:
        raise ConfigError("control.device_id is required")

    control_id = control.get("control_id")
    if not control_id:
        raise ConfigError("control.control_id is required")

    refresh_ms = _int(polling, "refresh_ms", 20000)
    pending_refresh_ms = _int(polling, "pending_refresh_ms", 5000)
    if refresh_ms <= 0 or pending_refresh_ms <= 0:
        raise ConfigError("polling intervals must be positive")

    try:
        timeout_s = float(api.get("timeout_s", 30.0))
    except (TypeError, ValueError):
        raise ConfigError(f"api.timeout_s must be a number, got {api.get('timeout_s')!r}")

    return TogglerConfig(
        base_url=base_url,
        query_url=api.get("query_url"),
        device_id=device_id,
        control_id=str(control_id),
        token_id=env.get(TOKEN_ENV) or api.get("token"),
        token_secret=env.get(SECRET_ENV) or api.get("secret"),
        refresh_ms=refresh_ms,
        pending_refresh_ms=pending_refresh_ms,
        request_timeout_s=timeout_s,
        log_level=str(logging_data.get("level", "INFO")),
        log_format=str(logging_data.get("format", "json")),
    )


def load_config_file(path: str | Path, env: dict | None = None) -> TogglerConfig:
    """Load TogglerConfig from a YAML file"""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping: {path}")

    return load_toggler_config(data, env)
