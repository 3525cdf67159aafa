"""vaultindex index — bring the vault's vector index up to date.

Incremental by default: only new or modified notes are re-embedded and
vectors of deleted notes are dropped. ``--reindex-all`` rebuilds the index
for the configured embedding model from scratch.
"""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from vaultindex.cli.common import (
    build_client,
    console,
    index_options,
    load_vault_config,
    open_manager,
)
from vaultindex.cli.errors import render_error
from vaultindex.config import VaultIndexConfig, ensure_global_config
from vaultindex.exceptions import VaultIndexError
from vaultindex.indexing.progress import IndexProgress
from vaultindex.indexing.vector_manager import IndexResult


def index_cmd(
    vault: Annotated[
        Path,
        typer.Option("--vault", help="Vault root directory."),
    ] = Path("."),
    reindex_all: Annotated[
        bool,
        typer.Option("--reindex-all", help="Drop and rebuild every vector for the model."),
    ] = False,
) -> None:
    """Index new and changed notes; drop vectors of deleted notes."""
    cfg = load_vault_config(vault)
    ensure_global_config()

    try:
        result = asyncio.run(_run_index(vault, cfg, reindex_all))
    except VaultIndexError as exc:
        console.print(render_error(exc))
        raise typer.Exit(1) from exc

    _print_summary(result)


async def _run_index(vault: Path, cfg: VaultIndexConfig, reindex_all: bool) -> IndexResult:
    client = build_client(cfg)
    client.validate()
    manager = await open_manager(vault, cfg)

    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        pass  # Windows / non-main thread: Ctrl+C falls back to KeyboardInterrupt

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[dim]{task.fields[status]}[/dim]"),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task("Scanning vault…", total=None, status="")

            def _on_progress(p: IndexProgress) -> None:
                if p.total_chunks:
                    prog.update(
                        task,
                        description="Embedding…",
                        total=p.total_chunks,
                        completed=p.completed_chunks,
                        status="waiting for rate limit" if p.waiting_for_rate_limit else "",
                    )
                else:
                    prog.update(
                        task,
                        description="Chunking…",
                        total=p.total_files,
                        completed=p.completed_files,
                        status=p.current_file or "",
                    )

            vector_manager = manager.get_vector_manager()
            return await vector_manager.update_vault_index(
                client,
                index_options(cfg, reindex_all=reindex_all),
                _on_progress,
                cancel,
            )
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        await manager.cleanup()


def _print_summary(result: IndexResult) -> None:
    if result.skipped:
        console.print(
            "[yellow]⚠[/] All changed notes failed to process — kept the existing index."
        )
    elif result.indexed_files_count == 0 and result.removed_files_count == 0:
        console.print("[dim]↷ Index is up to date[/]")
    else:
        console.print(
            f"[green]✓[/] {result.new_files_count} new, "
            f"{result.updated_files_count} updated, "
            f"{result.removed_files_count} removed — "
            f"{result.inserted_chunks} chunks embedded"
        )

    if result.failed_files:
        table = Table(title="Files that could not be processed", show_lines=False)
        table.add_column("File")
        table.add_column("Error", style="red")
        for failure in result.failed_files:
            table.add_row(failure.path, failure.error)
        console.print(table)

    if result.failed_chunks:
        console.print(
            f"[yellow]⚠[/] {len(result.failed_chunks)} chunk(s) failed to embed; "
            "they stay missing until the note changes or  vaultindex index --reindex-all  runs."
        )
