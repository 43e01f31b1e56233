from __future__ import annotations

import ipaddress
import json
import logging
import os
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import urlparse

from .backends import CredentialBackend
from .client import CREDENTIALS_PATH

logger = logging.getLogger(__name__)


def _safe_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


MAX_BROKER_BODY_BYTES = _safe_int_env("STATEBRIDGE_BROKER_MAX_BODY_BYTES", 65536)


class BadRequest(ValueError):
    pass


def is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host.strip("[]")).is_loopback
    except ValueError:
        return False


def _read_body(handler: BaseHTTPRequestHandler) -> bytes:
    try:
        length = int(handler.headers.get("Content-Length", "0") or 0)
    except ValueError as exc:
        raise BadRequest("invalid_content_length") from exc
    if length <= 0:
        return b""
    if length > MAX_BROKER_BODY_BYTES:
        raise BadRequest("payload_too_large")
    return handler.rfile.read(length)


def _parse_json_body(raw: bytes) -> dict[str, Any]:
    if not raw:
        raise BadRequest("missing_body")
    try:
        data = json.loads(raw.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise BadRequest("invalid_json") from exc
    if not isinstance(data, dict):
        raise BadRequest("invalid_json")
    return data


def _require_name(data: dict[str, Any], field: str) -> str:
    name = data.get(field)
    if not isinstance(name, str) or not name.strip():
        raise BadRequest(f"missing_{field}")
    return name.strip()


def _require_env(data: dict[str, Any]) -> dict[str, str]:
    env = data.get("env")
    if env is None:
        return {}
    if not isinstance(env, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in env.items()
    ):
        raise BadRequest("invalid_env")
    return env


def _send_json(handler: BaseHTTPRequestHandler, payload: dict[str, Any], status: int = 200) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def build_credential_handler(backend: CredentialBackend):
    class CredentialHandler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args: object) -> None:  # noqa: A003
            if os.environ.get("STATEBRIDGE_BROKER_LOGS") == "1":
                super().log_message(format, *args)

        def do_GET(self) -> None:  # noqa: N802
            parsed = urlparse(self.path)
            if parsed.path == "/v1/status":
                _send_json(self, {"ok": True, "backend": type(backend).__name__})
                return
            _send_json(self, {"error": "not_found"}, status=404)

        def do_POST(self) -> None:  # noqa: N802
            parsed = urlparse(self.path)
            prefix = f"{CREDENTIALS_PATH}/"
            operation = parsed.path[len(prefix) :] if parsed.path.startswith(prefix) else ""
            try:
                raw = _read_body(self)
            except BadRequest as exc:
                _send_json(self, {"error": str(exc)}, status=400)
                return
            if operation not in {"get", "store", "delete"}:
                _send_json(self, {"error": "not_found"}, status=404)
                return
            try:
                data = _parse_json_body(raw)
                if operation == "get":
                    name = _require_name(data, "value")
                    _send_json(self, {"serverName": name, "env": backend.get(name)})
                elif operation == "store":
                    name = _require_name(data, "serverName")
                    backend.store(name, _require_env(data))
                    _send_json(self, {})
                else:
                    backend.delete(_require_name(data, "value"))
                    _send_json(self, {})
            except BadRequest as exc:
                _send_json(self, {"error": str(exc)}, status=400)
            except Exception as exc:
                logger.error("credential %s failed", operation, exc_info=exc)
                _send_json(self, {"error": f"{operation}_failed"}, status=500)

    return CredentialHandler


def create_broker_server(host: str, port: int, backend: CredentialBackend) -> ThreadingHTTPServer:
    if not is_loopback_host(host):
        raise ValueError(f"credential broker only binds loopback hosts, got {host!r}")
    return ThreadingHTTPServer((host, port), build_credential_handler(backend))


def run_broker(
    host: str,
    port: int,
    backend: CredentialBackend,
    *,
    stop_event: threading.Event | None = None,
) -> None:
    server = create_broker_server(host, port, backend)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    logger.info("credential broker listening on %s:%s", host, server.server_address[1])
    stop = stop_event or threading.Event()
    try:
        stop.wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()
        server.server_close()
