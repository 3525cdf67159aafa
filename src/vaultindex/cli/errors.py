"""vaultindex rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from vaultindex.cli.errors import render_error
    console.print(render_error(exc))
    raise typer.Exit(1)
"""

from __future__ import annotations

from vaultindex.config import ConfigError
from vaultindex.exceptions import (
    ApiKeyInvalidError,
    ApiKeyNotSetError,
    BaseUrlNotSetError,
    BatchEmbeddingError,
    EngineAbortedError,
    IndexingCancelledError,
    IndexingError,
)


def err_api_key_not_set(provider: str, env_var: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_api_key_invalid(provider: str) -> str:
    return (
        f"[red]Error:[/] The API key for '{provider}' was rejected by the provider.\n"
        "  Check the key is current and has access to the embedding model."
    )


def err_base_url_not_set(provider: str) -> str:
    return (
        f"[red]Error:[/] Provider '{provider}' needs a base URL.\n"
        "  Set embedding.api_base in vaultindex.yaml, or:\n"
        "    export VAULTINDEX_API_BASE=http://localhost:8000/v1"
    )


def err_engine_aborted() -> str:
    """sqlite-vec could not be loaded into this runtime."""
    return (
        "[red]Error:[/] The vector database engine could not be started.\n"
        "  Your Python/SQLite build is outdated or cannot load extensions.\n"
        "  Update Python (or install a build with SQLite extension support) and retry."
    )


def err_batch_failed(failed: int) -> str:
    return (
        f"[red]Error:[/] Every chunk in an embedding batch failed ({failed} failures).\n"
        "  This usually means the provider is down or the model name is wrong.\n"
        "  Check embedding.model and run:  vaultindex index  again."
    )


def err_indexing_failed(message: str) -> str:
    return (
        f"[red]Error:[/] Indexing stopped: {message}\n"
        "  Run with --verbose for per-file details."
    )


def err_indexing_cancelled() -> str:
    return (
        "[yellow]Indexing cancelled.[/] Embeddings stored so far were saved.\n"
        "  Run:  vaultindex index  to resume."
    )


def err_config(message: str) -> str:
    return f"[red]Error:[/] Invalid configuration.\n  {message}"


def err_no_index(snapshot_path: str) -> str:
    """No snapshot found for the vault."""
    return (
        f"[red]Error:[/] No vector index found at '{snapshot_path}'.\n"
        "  Run:  vaultindex index"
    )


def err_vault_not_found(vault: str) -> str:
    return (
        f"[red]Error:[/] Vault directory not found: '{vault}'\n"
        "  Pass an existing directory with --vault."
    )


def render_error(exc: Exception) -> str:
    """Return the actionable message for a fatal *exc*."""
    if isinstance(exc, ApiKeyNotSetError):
        return err_api_key_not_set(exc.provider, exc.env_var)
    if isinstance(exc, ApiKeyInvalidError):
        return err_api_key_invalid(exc.provider)
    if isinstance(exc, BaseUrlNotSetError):
        return err_base_url_not_set(exc.provider)
    if isinstance(exc, EngineAbortedError):
        return err_engine_aborted()
    if isinstance(exc, IndexingCancelledError):
        return err_indexing_cancelled()
    if isinstance(exc, BatchEmbeddingError):
        return err_batch_failed(len(exc.failed_chunks))
    if isinstance(exc, IndexingError):
        return err_indexing_failed(str(exc))
    if isinstance(exc, ConfigError):
        return err_config(str(exc))
    return f"[red]Error:[/] {exc}"
