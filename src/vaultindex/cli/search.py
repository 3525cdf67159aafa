"""vaultindex search — semantic search over the indexed vault."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from vaultindex.cli.common import build_client, console, load_vault_config, open_manager
from vaultindex.cli.errors import err_no_index, render_error
from vaultindex.config import VaultIndexConfig
from vaultindex.db.models import SearchScope, SimilarityResult
from vaultindex.exceptions import VaultIndexError

_SNIPPET_CHARS = 160


def search_cmd(
    query: Annotated[str, typer.Argument(help="Natural-language query.")],
    vault: Annotated[
        Path,
        typer.Option("--vault", help="Vault root directory."),
    ] = Path("."),
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Maximum results (default: search.limit)."),
    ] = None,
    min_similarity: Annotated[
        float | None,
        typer.Option("--min-similarity", help="Similarity floor (default: search.min_similarity)."),
    ] = None,
    folder: Annotated[
        list[str] | None,
        typer.Option("--folder", help="Restrict to a folder and its subfolders (repeatable)."),
    ] = None,
    file: Annotated[
        list[str] | None,
        typer.Option("--file", help="Restrict to a vault-relative file path (repeatable)."),
    ] = None,
) -> None:
    """Find the chunks most similar to QUERY."""
    cfg = load_vault_config(vault)
    snapshot = cfg.snapshot_path(vault)
    if not snapshot.exists():
        console.print(err_no_index(str(snapshot)))
        raise typer.Exit(1)

    scope = SearchScope(files=list(file or []), folders=list(folder or []))
    try:
        results = asyncio.run(
            _run_search(
                vault,
                cfg,
                query,
                limit=limit if limit is not None else cfg.search.limit,
                min_similarity=(
                    min_similarity if min_similarity is not None else cfg.search.min_similarity
                ),
                scope=scope,
            )
        )
    except VaultIndexError as exc:
        console.print(render_error(exc))
        raise typer.Exit(1) from exc

    if not results:
        console.print("[yellow]No matching chunks.[/]")
        return

    table = Table(title=f"Results for '{query}'")
    table.add_column("Score", justify="right")
    table.add_column("Note")
    table.add_column("Lines", justify="right")
    table.add_column("Snippet", overflow="fold")
    for r in results:
        table.add_row(
            f"{r.similarity:.3f}",
            r.path,
            f"{r.metadata.start_line}-{r.metadata.end_line}",
            _snippet(r.content),
        )
    console.print(table)


async def _run_search(
    vault: Path,
    cfg: VaultIndexConfig,
    query: str,
    *,
    limit: int,
    min_similarity: float,
    scope: SearchScope,
) -> list[SimilarityResult]:
    client = build_client(cfg)
    query_vector = await client.get_embedding(query)
    manager = await open_manager(vault, cfg)
    try:
        return await manager.get_vector_manager().perform_similarity_search(
            query_vector,
            client,
            min_similarity=min_similarity,
            limit=limit,
            scope=scope,
        )
    finally:
        await manager.cleanup()


def _snippet(content: str) -> str:
    flat = " ".join(content.split())
    if len(flat) <= _SNIPPET_CHARS:
        return flat
    return flat[: _SNIPPET_CHARS - 1] + "…"
