"""Client for the credential broker running in the trusted host process.

Server credentials (env vars for tool servers) live in the OS keychain behind
the broker and are never written to the local JSON stores. Every public call
degrades to a safe result when the broker cannot be reached: an empty mapping
for reads and ``False`` for writes.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from http.client import HTTPException
from typing import Any
from urllib.parse import urlparse

from ..config import load_config
from . import http_client

logger = logging.getLogger(__name__)

ADDRESS_ENV = "STATEBRIDGE_HOST_BRIDGE_ADDRESS"
CREDENTIALS_PATH = "/v1/credentials"


class BrokerError(RuntimeError):
    pass


class ClientState(str, Enum):
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"


@dataclass(frozen=True)
class BrokerChannel:
    address: str
    base_url: str
    timeout_s: float

    def call(self, operation: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{CREDENTIALS_PATH}/{operation}"
        try:
            status, payload = http_client.request_json(
                "POST", url, body=body, timeout_s=self.timeout_s
            )
        except (HTTPException, OSError, ValueError) as exc:
            raise BrokerError(f"{operation} request to {self.address} failed: {exc}") from exc
        if status != 200:
            detail = (payload or {}).get("error") or "unknown_error"
            raise BrokerError(f"{operation} failed with status {status}: {detail}")
        return payload or {}


def resolve_broker_address(address: str | None = None) -> str:
    if address:
        return address
    env_address = os.environ.get(ADDRESS_ENV)
    if env_address:
        return env_address
    config = load_config()
    if config.host_bridge_address:
        return config.host_bridge_address
    return f"127.0.0.1:{config.host_bridge_port}"


def _open_channel(address: str, timeout_s: float) -> BrokerChannel:
    base_url = http_client.build_base_url(address)
    parsed = urlparse(base_url)
    if parsed.scheme != "http" or not parsed.hostname:
        raise ValueError(f"invalid broker address: {address!r}")
    # Accessing .port validates it.
    _ = parsed.port
    return BrokerChannel(address=address, base_url=base_url, timeout_s=timeout_s)


def _coerce_env(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {k: v for k, v in value.items() if isinstance(k, str) and isinstance(v, str)}


class CredentialClient:
    """Lazily connected broker client.

    ``UNCONNECTED`` until the first call resolves an address, ``CONNECTED``
    afterwards. :meth:`reset` returns to ``UNCONNECTED`` so the next call
    re-resolves the address, e.g. after the broker restarted on a new port.
    """

    def __init__(self, address: str | None = None, *, timeout_s: float | None = None) -> None:
        self._address = address
        self._timeout_s = timeout_s
        self._channel: BrokerChannel | None = None

    @property
    def state(self) -> ClientState:
        return ClientState.CONNECTED if self._channel else ClientState.UNCONNECTED

    @property
    def channel(self) -> BrokerChannel | None:
        return self._channel

    def _get_channel(self) -> BrokerChannel:
        if self._channel:
            return self._channel
        address = resolve_broker_address(self._address)
        timeout_s = self._timeout_s or load_config().broker_timeout_s
        logger.info("connecting to credential broker at %s", address)
        self._channel = _open_channel(address, timeout_s)
        return self._channel

    def get_server_credentials(self, server_name: str) -> dict[str, str]:
        try:
            response = self._get_channel().call("get", {"value": server_name})
        except (BrokerError, ValueError) as exc:
            logger.warning("failed to fetch credentials for %r: %s", server_name, exc)
            return {}
        return _coerce_env(response.get("env"))

    def store_server_credentials(self, server_name: str, env: Mapping[str, str]) -> bool:
        try:
            self._get_channel().call("store", {"serverName": server_name, "env": dict(env)})
        except (BrokerError, ValueError) as exc:
            logger.warning("failed to store credentials for %r: %s", server_name, exc)
            return False
        return True

    def delete_server_credentials(self, server_name: str) -> bool:
        try:
            self._get_channel().call("delete", {"value": server_name})
        except (BrokerError, ValueError) as exc:
            logger.warning("failed to delete credentials for %r: %s", server_name, exc)
            return False
        return True

    def reset(self) -> None:
        if self._channel:
            logger.info("dropping credential broker channel to %s", self._channel.address)
        self._channel = None


_DEFAULT_CLIENT = CredentialClient()


def default_client() -> CredentialClient:
    return _DEFAULT_CLIENT


def get_server_credentials(server_name: str) -> dict[str, str]:
    return _DEFAULT_CLIENT.get_server_credentials(server_name)


def store_server_credentials(server_name: str, env: Mapping[str, str]) -> bool:
    return _DEFAULT_CLIENT.store_server_credentials(server_name, env)


def delete_server_credentials(server_name: str) -> bool:
    return _DEFAULT_CLIENT.delete_server_credentials(server_name)


def reset_credential_client() -> None:
    _DEFAULT_CLIENT.reset()
