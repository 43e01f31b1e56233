from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping

from .. import keychain

logger = logging.getLogger(__name__)


class CredentialBackend(ABC):
    @abstractmethod
    def get(self, server_name: str) -> dict[str, str]: ...

    @abstractmethod
    def store(self, server_name: str, env: Mapping[str, str]) -> None: ...

    @abstractmethod
    def delete(self, server_name: str) -> None: ...


class NullCredentialBackend(CredentialBackend):
    """Host stub for environments without keychain access."""

    def get(self, server_name: str) -> dict[str, str]:
        return {}

    def store(self, server_name: str, env: Mapping[str, str]) -> None:
        return None

    def delete(self, server_name: str) -> None:
        return None


class KeychainCredentialBackend(CredentialBackend):
    """One keychain entry per server, holding its env mapping as JSON."""

    def __init__(self, service: str) -> None:
        self.service = service

    def get(self, server_name: str) -> dict[str, str]:
        raw = keychain.load_secret(self.service, server_name)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("keychain entry for %r is not valid json; ignoring", server_name)
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    def store(self, server_name: str, env: Mapping[str, str]) -> None:
        payload = json.dumps(dict(env), ensure_ascii=False, sort_keys=True)
        if not keychain.store_secret(self.service, server_name, payload):
            raise RuntimeError(f"keychain store failed for {server_name}")

    def delete(self, server_name: str) -> None:
        if keychain.load_secret(self.service, server_name) is None:
            return
        if not keychain.delete_secret(self.service, server_name):
            raise RuntimeError(f"keychain delete failed for {server_name}")


def build_backend(name: str, *, service: str) -> CredentialBackend:
    lowered = name.strip().lower()
    if lowered in {"none", "null", "stub"}:
        return NullCredentialBackend()
    if lowered == "keychain":
        return KeychainCredentialBackend(service)
    raise ValueError(f"unknown credential backend: {name}")
