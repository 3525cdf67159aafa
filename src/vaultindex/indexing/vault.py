"""Document-collection host: enumerate, read and filter vault Markdown files."""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import pathspec

_MARKDOWN_EXTS = {".md"}


@dataclass(frozen=True)
class VaultFile:
    """A vault document: POSIX path relative to the vault root, mtime in ms."""

    path: str
    mtime: int


class Vault(Protocol):
    """What the indexing pipeline needs from the document host."""

    def get_markdown_files(self) -> list[VaultFile]: ...

    async def cached_read(self, file: VaultFile) -> str: ...

    def exists(self, path: str) -> bool: ...


class FileSystemVault:
    """A vault backed by a directory tree of Markdown files.

    Dot-directories (``.git``, ``.obsidian``, the index storage dir) are never
    walked. Reads are cached per (path, mtime).
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self._cache: dict[str, tuple[int, str]] = {}

    def get_markdown_files(self) -> list[VaultFile]:
        files: list[VaultFile] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for name in sorted(filenames):
                if Path(name).suffix.lower() not in _MARKDOWN_EXTS:
                    continue
                full = Path(dirpath) / name
                try:
                    stat = full.stat()
                except OSError:
                    continue
                files.append(
                    VaultFile(
                        path=full.relative_to(self.root).as_posix(),
                        mtime=stat.st_mtime_ns // 1_000_000,
                    )
                )
        return files

    async def cached_read(self, file: VaultFile) -> str:
        cached = self._cache.get(file.path)
        if cached is not None and cached[0] == file.mtime:
            return cached[1]
        text = (self.root / file.path).read_text(encoding="utf-8", errors="replace")
        self._cache[file.path] = (file.mtime, text)
        return text

    def exists(self, path: str) -> bool:
        return (self.root / path).is_file()


# ------------------------------------------------------------------
# Include / exclude filtering
# ------------------------------------------------------------------


def _spec(patterns: Iterable[str]) -> pathspec.GitIgnoreSpec:
    return pathspec.GitIgnoreSpec.from_lines([p for p in patterns if p.strip()])


def is_path_selected(
    path: str, include_patterns: Sequence[str], exclude_patterns: Sequence[str]
) -> bool:
    """True if *path* survives exclude-then-include filtering.

    Exclude always wins. An empty include list selects everything not excluded.
    Patterns follow .gitignore rules: one without a slash (``*.md``) matches
    at any depth; anchor it with a leading slash (``/*.md``) to match only
    notes at the vault root.
    """
    if exclude_patterns and _spec(exclude_patterns).match_file(path):
        return False
    if not include_patterns:
        return True
    return _spec(include_patterns).match_file(path)


def filter_files(
    files: Iterable[VaultFile],
    include_patterns: Sequence[str],
    exclude_patterns: Sequence[str],
) -> list[VaultFile]:
    """Apply is_path_selected() to *files*, compiling each pattern set once."""
    exclude = _spec(exclude_patterns) if exclude_patterns else None
    include = _spec(include_patterns) if include_patterns else None
    selected: list[VaultFile] = []
    for f in files:
        if exclude is not None and exclude.match_file(f.path):
            continue
        if include is not None and not include.match_file(f.path):
            continue
        selected.append(f)
    return selected
