"""Shared wiring for CLI commands: config, embedding client, engine."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from vaultindex.cli.errors import err_vault_not_found, render_error
from vaultindex.config import ConfigError, VaultIndexConfig, load_config
from vaultindex.db.manager import DatabaseManager
from vaultindex.embedding.client import LiteLLMEmbeddingClient
from vaultindex.indexing.retry import BackoffConfig
from vaultindex.indexing.vault import FileSystemVault
from vaultindex.indexing.vector_manager import IndexOptions

console = Console()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=verbose)],
        force=True,
    )
    # LiteLLM is chatty at INFO; keep it quiet unless debugging.
    logging.getLogger("LiteLLM").setLevel(logging.DEBUG if verbose else logging.WARNING)


def load_vault_config(vault: Path) -> VaultIndexConfig:
    """Load config for *vault*, exiting with an actionable message on failure."""
    if not vault.is_dir():
        console.print(err_vault_not_found(str(vault)))
        raise typer.Exit(1)
    try:
        return load_config(vault)
    except ConfigError as exc:
        console.print(render_error(exc))
        raise typer.Exit(1) from exc


def build_client(cfg: VaultIndexConfig) -> LiteLLMEmbeddingClient:
    return LiteLLMEmbeddingClient(
        cfg.embedding.model, cfg.embedding.dimension, api_base=cfg.embedding.api_base
    )


def index_options(cfg: VaultIndexConfig, *, reindex_all: bool = False) -> IndexOptions:
    return IndexOptions(
        chunk_size=cfg.indexing.chunk_size,
        chunk_overlap=cfg.indexing.chunk_overlap,
        batch_size=cfg.indexing.batch_size,
        include_patterns=list(cfg.indexing.include_patterns),
        exclude_patterns=list(cfg.indexing.exclude_patterns),
        reindex_all=reindex_all,
    )


def backoff_config(cfg: VaultIndexConfig) -> BackoffConfig:
    return BackoffConfig(
        num_of_attempts=cfg.retry.max_attempts,
        starting_delay=cfg.retry.starting_delay,
        time_multiple=cfg.retry.time_multiple,
        max_delay=cfg.retry.max_delay,
    )


async def open_manager(vault: Path, cfg: VaultIndexConfig) -> DatabaseManager:
    """Load (or create) the vault's engine. Callers must ``await cleanup()``."""
    return await DatabaseManager.create(
        FileSystemVault(vault),
        cfg.snapshot_path(vault),
        backoff=backoff_config(cfg),
    )
