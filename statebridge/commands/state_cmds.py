from __future__ import annotations

import json

import typer
from rich import print
from rich.markup import escape

from statebridge.commands.common import mask_secret, parse_domain_or_exit, parse_value
from statebridge.storage import StorageContext, StorageDomain, domain_for_key


def _warn_on_domain_mismatch(key: str, domain: StorageDomain) -> None:
    owner = domain_for_key(key)
    if owner is not None and owner is not domain:
        print(
            f"[yellow]{escape(key)} belongs to the {owner.value} domain, "
            f"not {domain.value}[/yellow]"
        )


def state_get_cmd(
    *, storage: StorageContext, domain: str, key: str, reveal: bool, as_json: bool
) -> None:
    resolved = parse_domain_or_exit(domain)
    value = storage.for_domain(resolved).get(key)
    if value is None:
        print(f"[yellow]{escape(key)} is not set[/yellow]")
        raise typer.Exit(code=1)
    if resolved is StorageDomain.SECRETS and not reveal and isinstance(value, str):
        value = mask_secret(value)
    # Stored values are printed verbatim, never as markup.
    if as_json:
        typer.echo(json.dumps({key: value}, ensure_ascii=False, indent=2))
        return
    if not isinstance(value, str):
        value = json.dumps(value, ensure_ascii=False, indent=2)
    typer.echo(value)


def state_set_cmd(*, storage: StorageContext, domain: str, key: str, value: str) -> None:
    resolved = parse_domain_or_exit(domain)
    _warn_on_domain_mismatch(key, resolved)
    storage.for_domain(resolved).set(key, parse_value(value))
    print(f"[green]Set {escape(key)} in {resolved.value}[/green]")


def state_delete_cmd(*, storage: StorageContext, domain: str, key: str) -> None:
    resolved = parse_domain_or_exit(domain)
    store = storage.for_domain(resolved)
    if store.get(key) is None:
        print(f"[yellow]{escape(key)} is not set[/yellow]")
        return
    store.delete(key)
    print(f"[green]Deleted {escape(key)} from {resolved.value}[/green]")


def state_keys_cmd(*, storage: StorageContext, domain: str) -> None:
    resolved = parse_domain_or_exit(domain)
    keys = storage.for_domain(resolved).keys()
    if not keys:
        print(f"[yellow]No keys in {resolved.value}[/yellow]")
        return
    for key in keys:
        typer.echo(key)
