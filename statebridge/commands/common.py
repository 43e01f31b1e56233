from __future__ import annotations

import json
import logging
from typing import Any

import typer
from rich import print
from rich.markup import escape

from statebridge.storage import StorageContext, StorageDomain, create_storage_context


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def storage_or_exit(data_dir: str | None, workspace: str | None) -> StorageContext:
    try:
        return create_storage_context(data_dir, workspace)
    except OSError as exc:
        print(f"[red]Failed to open storage: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc


def parse_domain_or_exit(domain: str) -> StorageDomain:
    try:
        return StorageDomain(domain.strip().lower())
    except ValueError as exc:
        choices = ", ".join(d.value for d in StorageDomain)
        print(f"[red]Unknown domain {escape(repr(domain))}; expected one of: {choices}[/red]")
        raise typer.Exit(code=1) from exc


def parse_value(raw: str) -> Any:
    """Interpret CLI input as JSON, falling back to a plain string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_env_pairs_or_exit(pairs: list[str]) -> dict[str, str]:
    env: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            print(f"[red]Expected KEY=VALUE, got {escape(repr(pair))}[/red]")
            raise typer.Exit(code=1)
        env[name] = value
    return env


def mask_secret(value: str) -> str:
    if len(value) <= 4:
        return "****"
    return f"{value[:2]}…{value[-2:]}"
