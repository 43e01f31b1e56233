from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path

from ..config import load_config
from .base import SyncStorage
from .file_store import FileStorage
from .state_keys import StorageDomain

GLOBAL_STATE_FILE = "globalState.json"
SECRETS_FILE = "secrets.json"
WORKSPACE_STATE_FILE = "workspaceState.json"
SECRETS_FILE_MODE = 0o600


@dataclass(frozen=True)
class StorageContext:
    global_state: SyncStorage
    workspace_state: SyncStorage
    secrets: SyncStorage

    def for_domain(self, domain: StorageDomain | str) -> SyncStorage:
        resolved = StorageDomain(domain)
        if resolved is StorageDomain.GLOBAL:
            return self.global_state
        if resolved is StorageDomain.WORKSPACE:
            return self.workspace_state
        return self.secrets


def workspace_id(workspace: str | Path) -> str:
    resolved = str(Path(workspace).expanduser().resolve())
    return hashlib.sha256(resolved.encode("utf-8")).hexdigest()[:16]


def create_storage_context(
    data_dir: str | Path | None = None,
    workspace: str | Path | None = None,
) -> StorageContext:
    root = Path(data_dir).expanduser() if data_dir else load_config().resolved_data_dir()
    workspace_dir = root / "workspaces" / workspace_id(workspace or os.getcwd())
    return StorageContext(
        global_state=FileStorage(root / GLOBAL_STATE_FILE, "GlobalState"),
        workspace_state=FileStorage(workspace_dir / WORKSPACE_STATE_FILE, "WorkspaceState"),
        secrets=FileStorage(root / SECRETS_FILE, "Secrets", file_mode=SECRETS_FILE_MODE),
    )
