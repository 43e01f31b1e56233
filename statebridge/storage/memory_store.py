from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .base import SyncStorage


class MemoryStorage(SyncStorage):
    """Process-local store with no backing file.

    Stands in for host-native storage APIs and for tests.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None, name: str = "MemoryStorage"):
        super().__init__()
        self.name = name
        self._data: dict[str, Any] = dict(initial or {})

    def _get(self, key: str) -> Any:
        return self._data.get(key)

    def _put(self, key: str, value: Any) -> None:
        self._data[key] = value

    def _remove(self, key: str) -> None:
        self._data.pop(key, None)

    def _keys(self) -> Iterable[str]:
        return self._data.keys()
