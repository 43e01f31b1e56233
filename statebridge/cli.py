from __future__ import annotations

import typer
from rich import print

from . import __version__
from .commands.common import configure_logging, parse_env_pairs_or_exit, storage_or_exit
from .commands.credential_cmds import (
    broker_serve_cmd,
    credentials_delete_cmd,
    credentials_get_cmd,
    credentials_store_cmd,
)
from .commands.migrate_cmds import migrate_cmd
from .commands.state_cmds import state_delete_cmd, state_get_cmd, state_keys_cmd, state_set_cmd
from .config import load_config
from .credentials.client import CredentialClient
from .migration import CURRENT_MIGRATION_VERSION

app = typer.Typer(help="statebridge: shared settings, state and secrets across hosts")
state_app = typer.Typer(help="Read and write the shared stores")
credentials_app = typer.Typer(help="Manage server credentials through the credential broker")
broker_app = typer.Typer(help="Run the credential broker")
app.add_typer(state_app, name="state")
app.add_typer(credentials_app, name="credentials")
app.add_typer(broker_app, name="broker")

_DOMAIN_HELP = "Store domain: global, workspace or secrets"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose)


@app.command()
def migrate(
    legacy_dir: str = typer.Option(..., help="Directory holding the exported legacy stores"),
    data_dir: str = typer.Option(None, help="Shared data directory"),
    workspace: str = typer.Option(None, help="Workspace path (defaults to cwd)"),
    keychain_service: str = typer.Option(
        None, help="Keychain service for legacy secrets when secrets.json is absent"
    ),
    target_version: int = typer.Option(CURRENT_MIGRATION_VERSION, help="Migration version"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Merge legacy host storage into the shared stores without overwriting."""

    migrate_cmd(
        storage=storage_or_exit(data_dir, workspace),
        legacy_dir=legacy_dir,
        keychain_service=keychain_service or load_config().legacy_keychain_service,
        target_version=target_version,
        as_json=as_json,
    )


@state_app.command("get")
def state_get(
    key: str,
    domain: str = typer.Option("global", help=_DOMAIN_HELP),
    data_dir: str = typer.Option(None, help="Shared data directory"),
    workspace: str = typer.Option(None, help="Workspace path (defaults to cwd)"),
    reveal: bool = typer.Option(False, help="Show secret values unmasked"),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """Print the value stored under KEY."""

    state_get_cmd(
        storage=storage_or_exit(data_dir, workspace),
        domain=domain,
        key=key,
        reveal=reveal,
        as_json=as_json,
    )


@state_app.command("set")
def state_set(
    key: str,
    value: str = typer.Argument(..., help="JSON value; plain text is stored as a string"),
    domain: str = typer.Option("global", help=_DOMAIN_HELP),
    data_dir: str = typer.Option(None, help="Shared data directory"),
    workspace: str = typer.Option(None, help="Workspace path (defaults to cwd)"),
) -> None:
    """Store VALUE under KEY."""

    state_set_cmd(
        storage=storage_or_exit(data_dir, workspace), domain=domain, key=key, value=value
    )


@state_app.command("delete")
def state_delete(
    key: str,
    domain: str = typer.Option("global", help=_DOMAIN_HELP),
    data_dir: str = typer.Option(None, help="Shared data directory"),
    workspace: str = typer.Option(None, help="Workspace path (defaults to cwd)"),
) -> None:
    """Remove KEY."""

    state_delete_cmd(storage=storage_or_exit(data_dir, workspace), domain=domain, key=key)


@state_app.command("keys")
def state_keys(
    domain: str = typer.Option("global", help=_DOMAIN_HELP),
    data_dir: str = typer.Option(None, help="Shared data directory"),
    workspace: str = typer.Option(None, help="Workspace path (defaults to cwd)"),
) -> None:
    """List stored keys."""

    state_keys_cmd(storage=storage_or_exit(data_dir, workspace), domain=domain)


@credentials_app.command("get")
def credentials_get(
    server_name: str,
    address: str = typer.Option(None, help="Broker address (host:port)"),
    reveal: bool = typer.Option(False, help="Show values unmasked"),
) -> None:
    """Fetch the env credentials stored for SERVER_NAME."""

    credentials_get_cmd(
        client=CredentialClient(address), server_name=server_name, reveal=reveal
    )


@credentials_app.command("store")
def credentials_store(
    server_name: str,
    env: list[str] = typer.Option([], "--env", help="KEY=VALUE, repeatable"),
    address: str = typer.Option(None, help="Broker address (host:port)"),
) -> None:
    """Store env credentials for SERVER_NAME."""

    credentials_store_cmd(
        client=CredentialClient(address),
        server_name=server_name,
        env=parse_env_pairs_or_exit(env),
    )


@credentials_app.command("delete")
def credentials_delete(
    server_name: str,
    address: str = typer.Option(None, help="Broker address (host:port)"),
) -> None:
    """Delete the env credentials stored for SERVER_NAME."""

    credentials_delete_cmd(client=CredentialClient(address), server_name=server_name)


@broker_app.command("serve")
def broker_serve(
    host: str = typer.Option("127.0.0.1", help="Loopback host to bind"),
    port: int = typer.Option(None, help="Port to bind (defaults to host_bridge_port)"),
    backend: str = typer.Option(None, help="Credential backend: keychain or none"),
) -> None:
    """Serve credentials from the OS keychain to local clients."""

    config = load_config()
    broker_serve_cmd(
        host=host,
        port=port if port is not None else config.host_bridge_port,
        backend_name=backend or config.broker_backend,
        service=config.keychain_service,
    )


@app.command()
def version() -> None:
    """Print the statebridge version."""

    print(__version__)


if __name__ == "__main__":
    app()
