"""vaultindex stats — per-model row counts and storage size."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from vaultindex.cli.common import console, load_vault_config, open_manager
from vaultindex.cli.errors import render_error
from vaultindex.config import VaultIndexConfig
from vaultindex.db.models import EmbeddingDbStats
from vaultindex.exceptions import VaultIndexError


def stats_cmd(
    vault: Annotated[
        Path,
        typer.Option("--vault", help="Vault root directory."),
    ] = Path("."),
) -> None:
    """Show how many chunks are indexed per embedding model."""
    cfg = load_vault_config(vault)
    snapshot = cfg.snapshot_path(vault)

    if not snapshot.exists():
        console.print(
            Panel(
                "[yellow]No vector index found.[/]\n"
                "  Run:  vaultindex index",
                title="[bold]Vector Index[/]",
                expand=False,
            )
        )
        return

    try:
        stats = asyncio.run(_load_stats(vault, cfg))
    except VaultIndexError as exc:
        console.print(render_error(exc))
        raise typer.Exit(1) from exc

    table = Table(title=f"Vector Index ({snapshot})")
    table.add_column("Model")
    table.add_column("Chunks", justify="right")
    table.add_column("Size", justify="right")
    for s in stats:
        marker = " [green](active)[/]" if s.model == cfg.embedding.model else ""
        table.add_row(f"{s.model}{marker}", str(s.rows_count), _human_bytes(s.total_data_bytes))
    if not stats:
        table.add_row("[dim](empty)[/]", "0", "0 B")
    console.print(table)
    console.print(f"  Snapshot on disk: {_human_bytes(snapshot.stat().st_size)}")


async def _load_stats(vault: Path, cfg: VaultIndexConfig) -> list[EmbeddingDbStats]:
    manager = await open_manager(vault, cfg)
    try:
        return await manager.get_vector_manager().get_embedding_stats()
    finally:
        await manager.cleanup()


def _human_bytes(n: int) -> str:
    size = float(n)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"
