from __future__ import annotations

from .client import (
    BrokerChannel,
    ClientState,
    CredentialClient,
    default_client,
    delete_server_credentials,
    get_server_credentials,
    reset_credential_client,
    store_server_credentials,
)

__all__ = [
    "BrokerChannel",
    "ClientState",
    "CredentialClient",
    "default_client",
    "delete_server_credentials",
    "get_server_credentials",
    "reset_credential_client",
    "store_server_credentials",
]
