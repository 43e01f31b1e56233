"""One-time migration from legacy host storage into the shared file stores.

The file-backed stores win: a key that already has a value there is never
overwritten, because another client (CLI, another IDE) may have written newer
data. The legacy store is never cleared, so downgrading keeps working.

Completion is recorded as an integer under ``__migrationVersion`` in the
global state store. Until that sentinel reaches the target version the whole
migration reruns on every start.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .legacy import LegacyStorage
from .storage.base import SyncStorage
from .storage.context import StorageContext
from .storage.state_keys import GLOBAL_STATE_AND_SETTINGS_KEYS, LOCAL_STATE_KEYS, SECRET_KEYS

logger = logging.getLogger(__name__)

# Bump when adding migration steps.
CURRENT_MIGRATION_VERSION = 1
MIGRATION_VERSION_KEY = "__migrationVersion"


class MergeOutcome(str, Enum):
    ABSENT = "absent"
    EXISTING = "existing"
    WRITE = "write"


@dataclass(frozen=True)
class MergeDecision:
    outcome: MergeOutcome

    @property
    def should_write(self) -> bool:
        return self.outcome is MergeOutcome.WRITE


@dataclass
class MigrationResult:
    migrated: bool = False
    global_state_count: int = 0
    secrets_count: int = 0
    workspace_state_count: int = 0
    skipped_existing: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "migrated": self.migrated,
            "globalStateCount": self.global_state_count,
            "secretsCount": self.secrets_count,
            "workspaceStateCount": self.workspace_state_count,
            "skippedExisting": self.skipped_existing,
        }


def _is_absent(value: Any, *, empty_is_absent: bool) -> bool:
    if value is None:
        return True
    return empty_is_absent and value == ""


def merge_key(
    legacy_value: Any,
    destination_value: Any,
    *,
    empty_is_absent: bool = False,
) -> MergeDecision:
    if _is_absent(legacy_value, empty_is_absent=empty_is_absent):
        return MergeDecision(MergeOutcome.ABSENT)
    if not _is_absent(destination_value, empty_is_absent=empty_is_absent):
        return MergeDecision(MergeOutcome.EXISTING)
    return MergeDecision(MergeOutcome.WRITE)


def read_migration_version(storage: StorageContext) -> int | float | None:
    value = storage.global_state.get(MIGRATION_VERSION_KEY)
    if value is None:
        return None
    # Other clients may write the sentinel as any JSON number.
    if isinstance(value, bool) or not isinstance(value, int | float):
        logger.warning("ignoring non-numeric migration sentinel %r", value)
        return None
    return value


def _merge_sync_keys(
    keys: Iterable[str],
    source: SyncStorage,
    destination: SyncStorage,
    result: MigrationResult,
) -> int:
    written = 0
    for key in sorted(keys):
        legacy_value = source.get(key)
        decision = merge_key(legacy_value, destination.get(key))
        if decision.outcome is MergeOutcome.EXISTING:
            result.skipped_existing += 1
        elif decision.should_write:
            destination.set(key, legacy_value)
            written += 1
    return written


async def _merge_secret_keys(
    keys: Iterable[str],
    legacy: LegacyStorage,
    destination: SyncStorage,
    result: MigrationResult,
) -> int:
    written = 0
    for key in sorted(keys):
        try:
            legacy_value = await legacy.secrets.get(key)
        except Exception as exc:
            logger.error("failed to read legacy secret %r", key, exc_info=exc)
            continue
        decision = merge_key(legacy_value, destination.get(key), empty_is_absent=True)
        if decision.outcome is MergeOutcome.EXISTING:
            result.skipped_existing += 1
        elif decision.should_write:
            destination.set(key, legacy_value)
            written += 1
    return written


async def migrate_legacy_storage(
    legacy: LegacyStorage,
    storage: StorageContext,
    *,
    target_version: int = CURRENT_MIGRATION_VERSION,
) -> MigrationResult:
    """Merge legacy values into ``storage`` without overwriting anything.

    Safe to call on every start: returns ``migrated=False`` straight away once
    the sentinel is at ``target_version`` or higher. Failures other than a
    single unreadable secret propagate and leave the sentinel untouched.
    """
    result = MigrationResult()
    existing_version = read_migration_version(storage)
    if existing_version is not None and existing_version >= target_version:
        logger.info("stores already at migration version %s, skipping", existing_version)
        return result

    logger.info(
        "starting legacy migration (sentinel: %s, target: %s)",
        existing_version if existing_version is not None else "none",
        target_version,
    )
    try:
        result.global_state_count = _merge_sync_keys(
            GLOBAL_STATE_AND_SETTINGS_KEYS, legacy.global_state, storage.global_state, result
        )
        result.secrets_count = await _merge_secret_keys(
            SECRET_KEYS, legacy, storage.secrets, result
        )
        result.workspace_state_count = _merge_sync_keys(
            LOCAL_STATE_KEYS, legacy.workspace_state, storage.workspace_state, result
        )
        storage.global_state.set(MIGRATION_VERSION_KEY, target_version)
    except Exception:
        logger.exception("legacy migration failed; it will be retried on next start")
        raise
    result.migrated = True
    logger.info(
        "legacy migration complete: %d global state keys, %d secrets, "
        "%d workspace state keys migrated, %d skipped (already present)",
        result.global_state_count,
        result.secrets_count,
        result.workspace_state_count,
        result.skipped_existing,
    )
    return result


def run_migration(
    legacy: LegacyStorage,
    storage: StorageContext,
    *,
    target_version: int = CURRENT_MIGRATION_VERSION,
) -> MigrationResult:
    return asyncio.run(migrate_legacy_storage(legacy, storage, target_version=target_version))
