from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/statebridge/config.json").expanduser()
DEFAULT_DATA_DIR = "~/.statebridge/data"
DEFAULT_HOST_BRIDGE_PORT = 26040

CONFIG_ENV_OVERRIDES = {
    "data_dir": "STATEBRIDGE_DATA_DIR",
    "host_bridge_address": "STATEBRIDGE_HOST_BRIDGE_ADDRESS",
    "host_bridge_port": "STATEBRIDGE_HOST_BRIDGE_PORT",
    "broker_timeout_s": "STATEBRIDGE_BROKER_TIMEOUT_S",
    "broker_backend": "STATEBRIDGE_BROKER_BACKEND",
    "keychain_service": "STATEBRIDGE_KEYCHAIN_SERVICE",
    "legacy_keychain_service": "STATEBRIDGE_LEGACY_KEYCHAIN_SERVICE",
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("STATEBRIDGE_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class StateBridgeConfig:
    data_dir: str = DEFAULT_DATA_DIR
    # host:port of the credential broker; falls back to loopback + host_bridge_port
    host_bridge_address: str | None = None
    host_bridge_port: int = DEFAULT_HOST_BRIDGE_PORT
    broker_timeout_s: float = 3.0
    broker_backend: str = "keychain"
    keychain_service: str = "statebridge-credentials"
    legacy_keychain_service: str = "statebridge-legacy"

    def resolved_data_dir(self) -> Path:
        return Path(self.data_dir).expanduser()


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    if parsed <= 0:
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    return parsed


def load_config(path: Path | None = None) -> StateBridgeConfig:
    cfg = StateBridgeConfig()
    try:
        data = read_config_file(path)
    except (OSError, ValueError) as exc:
        warnings.warn(f"Invalid config file: {exc}", RuntimeWarning, stacklevel=2)
        data = {}
    cfg = _apply_dict(cfg, data)
    cfg = _apply_dict(cfg, get_env_overrides())
    return cfg


def _parse_str(value: object, default: str | None, *, key: str) -> str | None:
    if not isinstance(value, str):
        warnings.warn(f"Invalid string for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    return value


def _apply_dict(cfg: StateBridgeConfig, data: dict[str, Any]) -> StateBridgeConfig:
    for key, value in data.items():
        if not hasattr(cfg, key) or value is None:
            continue
        if key == "host_bridge_port":
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key == "broker_timeout_s":
            setattr(cfg, key, _parse_float(value, getattr(cfg, key), key=key))
            continue
        parsed = _parse_str(value, getattr(cfg, key), key=key)
        # Blank addresses keep the loopback fallback.
        if key == "host_bridge_address" and parsed is not None and not parsed.strip():
            continue
        setattr(cfg, key, parsed)
    return cfg
