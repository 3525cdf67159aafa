"""vaultindex CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from vaultindex.cli.common import configure_logging
from vaultindex.cli.index import index_cmd
from vaultindex.cli.maintenance import clear_cmd, vacuum_cmd
from vaultindex.cli.search import search_cmd
from vaultindex.cli.stats import stats_cmd
from vaultindex.cli.watch import watch_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("vaultindex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"vaultindex {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="vaultindex",
    help=(
        "vaultindex — incremental vector index for Markdown vaults.\n\n"
        "  vaultindex index   Embed new and changed notes.\n"
        "  vaultindex search  Semantic search over indexed notes."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """vaultindex — incremental vector index for Markdown vaults."""
    configure_logging(verbose)


app.command("index")(index_cmd)
app.command("search")(search_cmd)
app.command("stats")(stats_cmd)
app.command("clear")(clear_cmd)
app.command("vacuum")(vacuum_cmd)
app.command("watch")(watch_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed vaultindex version."""
    typer.echo(f"vaultindex {_installed_version()}")


if __name__ == "__main__":
    app()
