"""Synchronous key-value storage interface shared by every backend.

Backends hold a flat mapping of string keys to JSON-serializable values.
``None`` stands for "no value": setting a key to ``None`` deletes it.
Listeners registered with :meth:`SyncStorage.on_did_change` receive one
:class:`ChangeEvent` per touched key.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    key: str


ChangeListener = Callable[[ChangeEvent], None]


class SyncStorage(ABC):
    name: str = "SyncStorage"

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    def get(self, key: str, default: Any = None) -> Any:
        value = self._get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self._set(key, value)
        self.fire([ChangeEvent(key)])

    def delete(self, key: str) -> None:
        self.set(key, None)

    def keys(self) -> list[str]:
        return list(self._keys())

    def set_batch(self, entries: Mapping[str, Any]) -> list[ChangeEvent]:
        """Apply several updates with a single persist.

        Returns the events that were dispatched: one per key in ``entries``
        when anything changed, otherwise an empty list.
        """
        changed = self._apply_batch(entries)
        if not changed:
            return []
        self._persist()
        events = [ChangeEvent(key) for key in entries]
        self.fire(events)
        return events

    def on_did_change(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def dispose() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return dispose

    def fire(self, events: Iterable[ChangeEvent]) -> None:
        listeners = list(self._listeners)
        for event in events:
            for listener in listeners:
                try:
                    listener(event)
                except Exception as exc:
                    logger.warning(
                        "[%s] change listener failed for %r", self.name, event.key, exc_info=exc
                    )

    def _apply_batch(self, entries: Mapping[str, Any]) -> bool:
        changed = False
        for key, value in entries.items():
            if value is None:
                if self._get(key) is not None:
                    self._remove(key)
                    changed = True
            else:
                self._put(key, value)
                changed = True
        return changed

    def _set(self, key: str, value: Any) -> None:
        if value is None:
            self._remove(key)
        else:
            self._put(key, value)
        self._persist()

    @abstractmethod
    def _get(self, key: str) -> Any: ...

    @abstractmethod
    def _put(self, key: str, value: Any) -> None: ...

    @abstractmethod
    def _remove(self, key: str) -> None: ...

    @abstractmethod
    def _keys(self) -> Iterable[str]: ...

    def _persist(self) -> None:
        """Write the current mapping to the backing medium, if any."""
