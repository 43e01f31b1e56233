from __future__ import annotations

import datetime as dt
import json
import logging
import os
import shutil
import stat
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .base import SyncStorage

logger = logging.getLogger(__name__)


class FileStorage(SyncStorage):
    """Write-through JSON file store.

    Every mutation rewrites the whole mapping. Disk errors are logged and the
    store keeps serving its in-memory state.
    """

    def __init__(
        self,
        path: str | Path,
        name: str = "FileStorage",
        *,
        file_mode: int | None = None,
    ) -> None:
        super().__init__()
        self.path = Path(path).expanduser()
        self.name = name
        self.file_mode = file_mode
        self._data: dict[str, Any] = self._read_from_disk()

    def _get(self, key: str) -> Any:
        return self._data.get(key)

    def _put(self, key: str, value: Any) -> None:
        self._data[key] = value

    def _remove(self, key: str) -> None:
        self._data.pop(key, None)

    def _keys(self) -> Iterable[str]:
        return self._data.keys()

    def _persist(self) -> None:
        self._write_to_disk()

    def _read_from_disk(self) -> dict[str, Any]:
        try:
            if not self.path.exists():
                return {}
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("[%s] failed to read from %s", self.name, self.path, exc_info=exc)
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("[%s] failed to parse %s", self.name, self.path, exc_info=exc)
            self._backup_unparsable()
            return {}
        if not isinstance(data, dict):
            logger.error(
                "[%s] expected a JSON object in %s, got %s",
                self.name,
                self.path,
                type(data).__name__,
            )
            self._backup_unparsable()
            return {}
        return data

    def _backup_unparsable(self) -> None:
        stamp = dt.datetime.now(dt.UTC).strftime("%Y%m%dT%H%M%SZ")
        backup = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        try:
            shutil.copy2(self.path, backup)
        except OSError as exc:
            logger.warning(
                "[%s] could not back up unparsable %s", self.name, self.path, exc_info=exc
            )
            return
        logger.warning(
            "[%s] unparsable %s saved to %s; starting empty", self.name, self.path, backup
        )

    def _target_mode(self) -> int | None:
        if self.file_mode is not None:
            return self.file_mode
        # Keep whatever permissions the existing file has.
        try:
            return stat.S_IMODE(os.stat(self.path).st_mode)
        except FileNotFoundError:
            return None

    def _write_to_disk(self) -> None:
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(self._data, ensure_ascii=False, indent=2)
            mode = self._target_mode()
            flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
            fd = os.open(tmp, flags, mode if mode is not None else 0o666)
            with open(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            if mode is not None:
                os.chmod(tmp, mode)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("[%s] failed to write to %s", self.name, self.path, exc_info=exc)
            try:
                tmp.unlink()
            except OSError:
                pass
