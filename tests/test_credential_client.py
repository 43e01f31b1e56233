from __future__ import annotations

import socket
import threading
import time
from collections.abc import Mapping
from http.server import HTTPServer

import pytest

from statebridge.credentials import client as client_module
from statebridge.credentials.backends import CredentialBackend
from statebridge.credentials.broker import build_credential_handler
from statebridge.credentials.client import ClientState, CredentialClient


class _MemoryBackend(CredentialBackend):
    def __init__(self) -> None:
        self.data: dict[str, dict[str, str]] = {}

    def get(self, server_name: str) -> dict[str, str]:
        return dict(self.data.get(server_name, {}))

    def store(self, server_name: str, env: Mapping[str, str]) -> None:
        self.data[server_name] = dict(env)

    def delete(self, server_name: str) -> None:
        self.data.pop(server_name, None)


def _start_server(backend: CredentialBackend) -> tuple[HTTPServer, int]:
    server = HTTPServer(("127.0.0.1", 0), build_credential_handler(backend))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, int(server.server_address[1])


def _closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


def test_client_starts_unconnected_and_connects_lazily() -> None:
    backend = _MemoryBackend()
    backend.data["gmail"] = {"GMAIL_TOKEN": "t-1"}
    server, port = _start_server(backend)
    try:
        client = CredentialClient(f"127.0.0.1:{port}", timeout_s=2)
        assert client.state is ClientState.UNCONNECTED

        assert client.get_server_credentials("gmail") == {"GMAIL_TOKEN": "t-1"}
        assert client.state is ClientState.CONNECTED
    finally:
        server.shutdown()
        server.server_close()


def test_store_get_delete_roundtrip() -> None:
    backend = _MemoryBackend()
    server, port = _start_server(backend)
    try:
        client = CredentialClient(f"127.0.0.1:{port}", timeout_s=2)

        assert client.store_server_credentials("slack", {"SLACK_TOKEN": "xoxb"}) is True
        assert backend.data["slack"] == {"SLACK_TOKEN": "xoxb"}
        assert client.get_server_credentials("slack") == {"SLACK_TOKEN": "xoxb"}
        assert client.delete_server_credentials("slack") is True
        assert client.get_server_credentials("slack") == {}
    finally:
        server.shutdown()
        server.server_close()


def test_unreachable_broker_degrades_to_empty_within_timeout() -> None:
    client = CredentialClient(f"127.0.0.1:{_closed_port()}", timeout_s=1)

    started = time.monotonic()
    assert client.get_server_credentials("x") == {}
    assert time.monotonic() - started < 5

    assert client.store_server_credentials("x", {"A": "b"}) is False
    assert client.delete_server_credentials("x") is False


def test_broker_error_status_degrades_to_empty() -> None:
    class _FailingBackend(_MemoryBackend):
        def get(self, server_name: str) -> dict[str, str]:
            raise RuntimeError("keychain locked")

    server, port = _start_server(_FailingBackend())
    try:
        client = CredentialClient(f"127.0.0.1:{port}", timeout_s=2)
        assert client.get_server_credentials("gmail") == {}
    finally:
        server.shutdown()
        server.server_close()


def test_invalid_address_stays_unconnected() -> None:
    client = CredentialClient("127.0.0.1:not-a-port", timeout_s=1)

    assert client.get_server_credentials("gmail") == {}
    assert client.state is ClientState.UNCONNECTED


def test_reset_reresolves_address(monkeypatch: pytest.MonkeyPatch) -> None:
    first_backend = _MemoryBackend()
    first_backend.data["gmail"] = {"TOKEN": "first"}
    second_backend = _MemoryBackend()
    second_backend.data["gmail"] = {"TOKEN": "second"}
    first, first_port = _start_server(first_backend)
    second, second_port = _start_server(second_backend)
    try:
        monkeypatch.setenv("STATEBRIDGE_HOST_BRIDGE_ADDRESS", f"127.0.0.1:{first_port}")
        client = CredentialClient(timeout_s=2)
        assert client.get_server_credentials("gmail") == {"TOKEN": "first"}

        monkeypatch.setenv("STATEBRIDGE_HOST_BRIDGE_ADDRESS", f"127.0.0.1:{second_port}")
        # Cached channel keeps the old address until reset.
        assert client.get_server_credentials("gmail") == {"TOKEN": "first"}

        client.reset()
        assert client.state is ClientState.UNCONNECTED
        assert client.get_server_credentials("gmail") == {"TOKEN": "second"}
        assert client.channel is not None
        assert client.channel.address == f"127.0.0.1:{second_port}"
    finally:
        for server in (first, second):
            server.shutdown()
            server.server_close()


def test_address_resolution_order(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    config_path = tmp_path / "config" / "config.json"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text('{"host_bridge_port": 4100}\n')
    assert client_module.resolve_broker_address() == "127.0.0.1:4100"

    config_path.write_text('{"host_bridge_address": "127.0.0.1:4300"}\n')
    assert client_module.resolve_broker_address() == "127.0.0.1:4300"

    monkeypatch.setenv("STATEBRIDGE_HOST_BRIDGE_ADDRESS", "127.0.0.1:4400")
    assert client_module.resolve_broker_address() == "127.0.0.1:4400"
    assert client_module.resolve_broker_address("127.0.0.1:4500") == "127.0.0.1:4500"


def test_timeout_comes_from_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STATEBRIDGE_BROKER_TIMEOUT_S", "0.25")
    captured: dict = {}

    def _fake_request(method, url, *, body=None, timeout_s=3.0, headers=None):
        captured["timeout_s"] = timeout_s
        captured["url"] = url
        return 200, {"serverName": "gmail", "env": {"A": "1", "B": 2}}

    monkeypatch.setattr(client_module.http_client, "request_json", _fake_request)
    client = CredentialClient("127.0.0.1:9")

    assert client.get_server_credentials("gmail") == {"A": "1"}
    assert captured["timeout_s"] == 0.25
    assert captured["url"] == "http://127.0.0.1:9/v1/credentials/get"


def test_module_helpers_use_default_client(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    def _fake_request(method, url, *, body=None, timeout_s=3.0, headers=None):
        calls.append(url.rsplit("/", 1)[-1])
        return 200, {}

    monkeypatch.setattr(client_module.http_client, "request_json", _fake_request)
    client_module.reset_credential_client()
    try:
        assert client_module.get_server_credentials("gmail") == {}
        assert client_module.default_client().state is ClientState.CONNECTED
        assert client_module.store_server_credentials("gmail", {"A": "1"}) is True
        assert client_module.delete_server_credentials("gmail") is True
    finally:
        client_module.reset_credential_client()

    assert calls == ["get", "store", "delete"]
    assert client_module.default_client().state is ClientState.UNCONNECTED


def test_non_string_configured_address_degrades(tmp_path) -> None:
    config_path = tmp_path / "config" / "config.json"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        f'{{"host_bridge_address": 26040, "host_bridge_port": {_closed_port()}}}\n'
    )
    client = CredentialClient(timeout_s=1)

    with pytest.warns(RuntimeWarning, match="host_bridge_address"):
        assert client.get_server_credentials("x") == {}
    assert client.store_server_credentials("x", {"A": "b"}) is False
    assert client.delete_server_credentials("x") is False


def test_unreadable_config_file_degrades(tmp_path) -> None:
    config_path = tmp_path / "config" / "config.json"
    config_path.mkdir(parents=True)
    client = CredentialClient(f"127.0.0.1:{_closed_port()}")

    with pytest.warns(RuntimeWarning, match="Invalid config file"):
        assert client.get_server_credentials("x") == {}
