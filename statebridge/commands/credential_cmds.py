from __future__ import annotations

import json
import threading

import typer
from rich import print
from rich.markup import escape

from statebridge.commands.common import mask_secret
from statebridge.credentials.backends import build_backend
from statebridge.credentials.broker import run_broker
from statebridge.credentials.client import CredentialClient


def credentials_get_cmd(*, client: CredentialClient, server_name: str, reveal: bool) -> None:
    env = client.get_server_credentials(server_name)
    if not env:
        print(f"[yellow]No credentials for {escape(server_name)}[/yellow]")
        return
    shown = env if reveal else {name: mask_secret(value) for name, value in env.items()}
    typer.echo(json.dumps(shown, ensure_ascii=False, indent=2))


def credentials_store_cmd(
    *, client: CredentialClient, server_name: str, env: dict[str, str]
) -> None:
    if not env:
        print("[red]Provide at least one --env KEY=VALUE[/red]")
        raise typer.Exit(code=1)
    if not client.store_server_credentials(server_name, env):
        print(
            f"[red]Credential broker did not accept credentials for {escape(server_name)}[/red]"
        )
        raise typer.Exit(code=1)
    print(f"[green]Stored {len(env)} variable(s) for {escape(server_name)}[/green]")


def credentials_delete_cmd(*, client: CredentialClient, server_name: str) -> None:
    if not client.delete_server_credentials(server_name):
        print(
            f"[red]Credential broker did not delete credentials for {escape(server_name)}[/red]"
        )
        raise typer.Exit(code=1)
    print(f"[green]Deleted credentials for {escape(server_name)}[/green]")


def broker_serve_cmd(
    *,
    host: str,
    port: int,
    backend_name: str,
    service: str,
    stop_event: threading.Event | None = None,
) -> None:
    try:
        backend = build_backend(backend_name, service=service)
    except ValueError as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    print(f"[green]Credential broker on {escape(host)}:{port} ({backend_name})[/green]")
    try:
        run_broker(host, port, backend, stop_event=stop_event)
    except (OSError, ValueError) as exc:
        print(f"[red]Failed to start credential broker: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
