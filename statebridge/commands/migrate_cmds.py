from __future__ import annotations

import json

import typer
from rich import print
from rich.markup import escape

from statebridge.legacy import load_legacy_directory
from statebridge.migration import run_migration
from statebridge.storage import StorageContext


def migrate_cmd(
    *,
    storage: StorageContext,
    legacy_dir: str,
    keychain_service: str | None,
    target_version: int,
    as_json: bool,
) -> None:
    """Merge a legacy store export into the shared stores."""

    try:
        legacy = load_legacy_directory(legacy_dir, keychain_service=keychain_service)
    except (OSError, ValueError) as exc:
        print(f"[red]Failed to read legacy store: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    try:
        result = run_migration(legacy, storage, target_version=target_version)
    except Exception as exc:
        print(f"[red]Migration failed (will retry next run): {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return
    if not result.migrated:
        print("[yellow]Already migrated; nothing to do[/yellow]")
        return
    print(
        "[green]Migrated[/green] "
        f"{result.global_state_count} global state, "
        f"{result.secrets_count} secret, "
        f"{result.workspace_state_count} workspace state key(s); "
        f"{result.skipped_existing} already present"
    )
