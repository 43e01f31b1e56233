from __future__ import annotations

from .base import ChangeEvent, ChangeListener, SyncStorage
from .context import StorageContext, create_storage_context, workspace_id
from .file_store import FileStorage
from .memory_store import MemoryStorage
from .state_keys import (
    GLOBAL_STATE_AND_SETTINGS_KEYS,
    LOCAL_STATE_KEYS,
    SECRET_KEYS,
    StorageDomain,
    domain_for_key,
)

__all__ = [
    "ChangeEvent",
    "ChangeListener",
    "FileStorage",
    "GLOBAL_STATE_AND_SETTINGS_KEYS",
    "LOCAL_STATE_KEYS",
    "MemoryStorage",
    "SECRET_KEYS",
    "StorageContext",
    "StorageDomain",
    "SyncStorage",
    "create_storage_context",
    "domain_for_key",
    "workspace_id",
]
