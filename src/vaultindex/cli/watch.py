"""vaultindex watch — keep the index fresh while notes change.

File events from ``watchfiles.awatch`` are fed to ``RagAutoUpdateService``,
which debounces them and runs an incremental update once the configured
interval since the last auto-update has passed.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import Annotated

import typer
from watchfiles import awatch

from vaultindex.cli.common import (
    build_client,
    console,
    index_options,
    load_vault_config,
    open_manager,
)
from vaultindex.cli.errors import render_error
from vaultindex.config import VaultIndexConfig, record_auto_update
from vaultindex.exceptions import VaultIndexError
from vaultindex.indexing.auto_update import DEBOUNCE_SECONDS, RagAutoUpdateService

logger = logging.getLogger(__name__)


def watch_cmd(
    vault: Annotated[
        Path,
        typer.Option("--vault", help="Vault root directory."),
    ] = Path("."),
    interval_hours: Annotated[
        float | None,
        typer.Option(
            "--interval-hours",
            help="Minimum hours between auto-updates (default: auto_update.interval_hours).",
        ),
    ] = None,
    debounce: Annotated[
        float,
        typer.Option("--debounce", hidden=True, help="Debounce seconds (for testing)."),
    ] = DEBOUNCE_SECONDS,
) -> None:
    """Watch the vault and re-index changed notes in the background."""
    cfg = load_vault_config(vault)
    cfg.auto_update.enabled = True
    if interval_hours is not None:
        cfg.auto_update.interval_hours = interval_hours

    console.print(f"[bold]Watching[/] {vault.resolve()}  (Ctrl+C to stop)")
    try:
        asyncio.run(_run_watch(vault, cfg, debounce))
    except VaultIndexError as exc:
        console.print(render_error(exc))
        raise typer.Exit(1) from exc
    console.print("[dim]Stopped.[/]")


async def _run_watch(vault: Path, cfg: VaultIndexConfig, debounce: float) -> None:
    client = build_client(cfg)
    client.validate()
    manager = await open_manager(vault, cfg)
    vector_manager = manager.get_vector_manager()
    root = vault.resolve()

    async def _update() -> None:
        result = await vector_manager.update_vault_index(client, index_options(cfg))
        console.print(
            f"[green]✓[/] Auto-update: {result.new_files_count} new, "
            f"{result.updated_files_count} updated, {result.removed_files_count} removed"
        )

    def _updated(timestamp: float) -> None:
        cfg.auto_update.last_auto_update_at = timestamp
        record_auto_update(vault, timestamp)

    service = RagAutoUpdateService(
        lambda: cfg,
        _update,
        on_updated=_updated,
        debounce_seconds=debounce,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
    except (NotImplementedError, RuntimeError):
        pass  # Windows / non-main thread: Ctrl+C falls back to KeyboardInterrupt

    try:
        async for changes in awatch(root, stop_event=stop, ignore_permission_denied=True):
            for _change, raw_path in changes:
                rel = _vault_relative(root, Path(raw_path))
                if rel is None:
                    continue
                logger.debug("Vault change: %s", rel)
                service.on_path_changed(rel)
        await service.flush()
        await service.wait_idle()
    finally:
        service.cleanup()
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        await manager.cleanup()


def _vault_relative(root: Path, path: Path) -> str | None:
    """Vault-relative posix path of a Markdown note, or None to ignore the event."""
    try:
        rel = path.relative_to(root)
    except ValueError:
        return None
    if any(part.startswith(".") for part in rel.parts):
        return None
    if path.suffix.lower() != ".md":
        return None
    return rel.as_posix()
