from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_statebridge_paths(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STATEBRIDGE_CONFIG", str(tmp_path / "config" / "config.json"))
    monkeypatch.setenv("STATEBRIDGE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("STATEBRIDGE_HOST_BRIDGE_ADDRESS", raising=False)
    monkeypatch.delenv("STATEBRIDGE_HOST_BRIDGE_PORT", raising=False)
    monkeypatch.delenv("STATEBRIDGE_BROKER_TIMEOUT_S", raising=False)
