from __future__ import annotations

import shutil
import subprocess
import sys


class KeychainUnavailableError(RuntimeError):
    """Raised when no supported OS keychain tool is present."""


def _secret_tool_available() -> bool:
    return shutil.which("secret-tool") is not None


def _security_cli_available() -> bool:
    return shutil.which("security") is not None


def keychain_available() -> bool:
    if sys.platform.startswith("linux"):
        return _secret_tool_available()
    if sys.platform.startswith("darwin"):
        return _security_cli_available()
    return False


def _require_keychain() -> None:
    if not keychain_available():
        raise KeychainUnavailableError(f"no keychain tool available on {sys.platform}")


def store_secret(service: str, account: str, value: str) -> bool:
    _require_keychain()
    if sys.platform.startswith("linux"):
        result = subprocess.run(
            [
                "secret-tool",
                "store",
                "--label",
                f"{service} {account}",
                "service",
                service,
                "account",
                account,
            ],
            input=value.encode("utf-8"),
            capture_output=True,
            check=False,
        )
        return result.returncode == 0
    result = subprocess.run(
        [
            "security",
            "add-generic-password",
            "-a",
            account,
            "-s",
            service,
            "-w",
            value,
            "-U",
        ],
        capture_output=True,
        check=False,
    )
    return result.returncode == 0


def load_secret(service: str, account: str) -> str | None:
    _require_keychain()
    if sys.platform.startswith("linux"):
        command = ["secret-tool", "lookup", "service", service, "account", account]
    else:
        command = ["security", "find-generic-password", "-a", account, "-s", service, "-w"]
    result = subprocess.run(command, capture_output=True, check=False)
    if result.returncode != 0:
        return None
    value = result.stdout.decode("utf-8")
    # `security -w` terminates the password with a newline
    if sys.platform.startswith("darwin"):
        value = value.rstrip("\n")
    return value or None


def delete_secret(service: str, account: str) -> bool:
    _require_keychain()
    if sys.platform.startswith("linux"):
        command = ["secret-tool", "clear", "service", service, "account", account]
    else:
        command = ["security", "delete-generic-password", "-a", account, "-s", service]
    result = subprocess.run(command, capture_output=True, check=False)
    return result.returncode == 0
