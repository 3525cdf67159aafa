"""vaultindex clear / vacuum — index maintenance commands."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from vaultindex.cli.common import build_client, console, load_vault_config, open_manager
from vaultindex.cli.errors import err_no_index, render_error
from vaultindex.config import VaultIndexConfig
from vaultindex.exceptions import VaultIndexError


def clear_cmd(
    vault: Annotated[
        Path,
        typer.Option("--vault", help="Vault root directory."),
    ] = Path("."),
    model: Annotated[
        str | None,
        typer.Option("--model", help="Embedding model to clear (default: embedding.model)."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Delete every stored vector for one embedding model."""
    cfg = load_vault_config(vault)
    if model:
        cfg.embedding.model = model
    snapshot = cfg.snapshot_path(vault)
    if not snapshot.exists():
        console.print(err_no_index(str(snapshot)))
        raise typer.Exit(1)

    if not yes:
        if not typer.confirm(f"Delete all vectors for '{cfg.embedding.model}'?", default=False):
            console.print("[dim]Aborted.[/]")
            raise typer.Exit(0)

    try:
        deleted = asyncio.run(_clear(vault, cfg))
    except VaultIndexError as exc:
        console.print(render_error(exc))
        raise typer.Exit(1) from exc
    console.print(f"[green]✓[/] Removed {deleted} chunk(s) for '{cfg.embedding.model}'")


def vacuum_cmd(
    vault: Annotated[
        Path,
        typer.Option("--vault", help="Vault root directory."),
    ] = Path("."),
) -> None:
    """Reclaim space in the snapshot left by deleted vectors."""
    cfg = load_vault_config(vault)
    snapshot = cfg.snapshot_path(vault)
    if not snapshot.exists():
        console.print(err_no_index(str(snapshot)))
        raise typer.Exit(1)

    before = snapshot.stat().st_size
    try:
        asyncio.run(_vacuum(vault, cfg))
    except VaultIndexError as exc:
        console.print(render_error(exc))
        raise typer.Exit(1) from exc
    after = snapshot.stat().st_size
    console.print(f"[green]✓[/] Vacuumed snapshot: {before} → {after} bytes")


async def _clear(vault: Path, cfg: VaultIndexConfig) -> int:
    manager = await open_manager(vault, cfg)
    try:
        return await manager.get_vector_manager().clear_all_vectors(build_client(cfg))
    finally:
        await manager.cleanup()


async def _vacuum(vault: Path, cfg: VaultIndexConfig) -> None:
    manager = await open_manager(vault, cfg)
    try:
        await manager.vacuum()
    finally:
        await manager.cleanup()
