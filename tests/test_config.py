import json
from pathlib import Path

import pytest

from statebridge.config import (
    DEFAULT_HOST_BRIDGE_PORT,
    get_config_path,
    get_env_overrides,
    load_config,
    read_config_file,
)


def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json}")
    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_read_config_file_rejects_non_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1]")
    with pytest.raises(ValueError, match="config must be an object"):
        read_config_file(config_path)


def test_read_config_file_missing_or_blank_is_empty(tmp_path: Path) -> None:
    assert read_config_file(tmp_path / "missing.json") == {}
    blank = tmp_path / "blank.json"
    blank.write_text("  \n")
    assert read_config_file(blank) == {}


def test_get_config_path_uses_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "custom.json"
    monkeypatch.setenv("STATEBRIDGE_CONFIG", str(config_path))
    assert get_config_path() == config_path


def test_load_config_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STATEBRIDGE_DATA_DIR", raising=False)
    cfg = load_config(tmp_path / "missing.json")
    assert cfg.host_bridge_address is None
    assert cfg.host_bridge_port == DEFAULT_HOST_BRIDGE_PORT
    assert cfg.broker_timeout_s == 3.0
    assert cfg.broker_backend == "keychain"
    assert cfg.resolved_data_dir() == Path("~/.statebridge/data").expanduser()


def test_load_config_reads_file_values(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "host_bridge_address": "127.0.0.1:4242",
                "broker_timeout_s": 0.5,
                "keychain_service": "custom",
                "unknown_field": True,
            }
        )
    )

    cfg = load_config(config_path)

    assert cfg.host_bridge_address == "127.0.0.1:4242"
    assert cfg.broker_timeout_s == 0.5
    assert cfg.keychain_service == "custom"
    assert not hasattr(cfg, "unknown_field")


def test_load_config_warns_and_uses_defaults_on_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{broken-json")

    with pytest.warns(RuntimeWarning, match="Invalid config file"):
        cfg = load_config(config_path)

    assert cfg.host_bridge_port == DEFAULT_HOST_BRIDGE_PORT


def test_env_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text('{"host_bridge_port": 4100, "broker_backend": "keychain"}\n')
    monkeypatch.setenv("STATEBRIDGE_HOST_BRIDGE_PORT", "4200")
    monkeypatch.setenv("STATEBRIDGE_BROKER_BACKEND", "none")

    cfg = load_config(config_path)

    assert cfg.host_bridge_port == 4200
    assert cfg.broker_backend == "none"


def test_get_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STATEBRIDGE_HOST_BRIDGE_ADDRESS", "127.0.0.1:9000")
    monkeypatch.setenv("STATEBRIDGE_KEYCHAIN_SERVICE", "svc")
    overrides = get_env_overrides()
    assert overrides["host_bridge_address"] == "127.0.0.1:9000"
    assert overrides["keychain_service"] == "svc"


def test_load_config_invalid_int_env_does_not_crash_and_warns(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{}\n")
    monkeypatch.setenv("STATEBRIDGE_HOST_BRIDGE_PORT", "nope")
    with pytest.warns(RuntimeWarning, match="host_bridge_port"):
        cfg = load_config(config_path)
    assert cfg.host_bridge_port == DEFAULT_HOST_BRIDGE_PORT


def test_load_config_invalid_timeout_value_warns(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text('{"broker_timeout_s": -1}\n')
    with pytest.warns(RuntimeWarning, match="broker_timeout_s"):
        cfg = load_config(config_path)
    assert cfg.broker_timeout_s == 3.0


def test_load_config_unreadable_file_warns(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.mkdir()

    with pytest.warns(RuntimeWarning, match="Invalid config file"):
        cfg = load_config(config_path)

    assert cfg.host_bridge_port == DEFAULT_HOST_BRIDGE_PORT


def test_load_config_rejects_non_string_address(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text('{"host_bridge_address": 26040, "keychain_service": ["x"]}\n')

    with pytest.warns(RuntimeWarning, match="host_bridge_address"):
        cfg = load_config(config_path)

    assert cfg.host_bridge_address is None
    assert cfg.keychain_service == "statebridge-credentials"


def test_blank_address_env_keeps_file_value(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text('{"host_bridge_address": "127.0.0.1:4300"}\n')
    monkeypatch.setenv("STATEBRIDGE_HOST_BRIDGE_ADDRESS", "  ")

    assert load_config(config_path).host_bridge_address == "127.0.0.1:4300"
