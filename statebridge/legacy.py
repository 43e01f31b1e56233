"""Read-only access to the legacy host-native stores.

The migration only ever reads from these; nothing here writes back, so an
older client still relying on the legacy store keeps working.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from . import keychain
from .storage.base import SyncStorage
from .storage.memory_store import MemoryStorage

logger = logging.getLogger(__name__)

LEGACY_GLOBAL_STATE_FILE = "globalState.json"
LEGACY_WORKSPACE_STATE_FILE = "workspaceState.json"
LEGACY_SECRETS_FILE = "secrets.json"


class SecretReader(Protocol):
    async def get(self, key: str) -> str | None: ...


@dataclass(frozen=True)
class LegacyStorage:
    global_state: SyncStorage
    workspace_state: SyncStorage
    secrets: SecretReader


class MappingSecretReader:
    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values = dict(values or {})

    async def get(self, key: str) -> str | None:
        return self._values.get(key)


class KeychainSecretReader:
    """Looks legacy secrets up in the OS keychain, one account per key."""

    def __init__(self, service: str) -> None:
        self.service = service

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(keychain.load_secret, self.service, key)


def _read_legacy_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    raw = path.read_text(encoding="utf-8")
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid legacy json: {path}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"legacy file must be an object: {path}")
    return data


def load_legacy_directory(
    path: str | Path,
    *,
    keychain_service: str | None = None,
) -> LegacyStorage:
    """Build a legacy source from a directory of exported host stores.

    Secrets come from ``secrets.json`` when present, otherwise from the
    keychain service when one is given, otherwise nothing is migrated.
    """
    root = Path(path).expanduser()
    if not root.is_dir():
        raise ValueError(f"legacy directory not found: {root}")
    global_state = MemoryStorage(
        _read_legacy_json(root / LEGACY_GLOBAL_STATE_FILE), "LegacyGlobalState"
    )
    workspace_state = MemoryStorage(
        _read_legacy_json(root / LEGACY_WORKSPACE_STATE_FILE), "LegacyWorkspaceState"
    )
    secrets_path = root / LEGACY_SECRETS_FILE
    secrets: SecretReader
    if secrets_path.exists():
        values = _read_legacy_json(secrets_path)
        secrets = MappingSecretReader(
            {key: value for key, value in values.items() if isinstance(value, str)}
        )
    elif keychain_service:
        logger.info("reading legacy secrets from keychain service %s", keychain_service)
        secrets = KeychainSecretReader(keychain_service)
    else:
        secrets = MappingSecretReader()
    return LegacyStorage(
        global_state=global_state, workspace_state=workspace_state, secrets=secrets
    )
