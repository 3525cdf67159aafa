"""Hierarchical indexing progress, rolled up from each folder to its ancestors."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field


@dataclass
class FolderProgress:
    completed_files: int = 0
    total_files: int = 0
    completed_chunks: int = 0
    total_chunks: int = 0


@dataclass
class IndexProgress:
    """One progress report handed to the caller's callback."""

    completed_chunks: int
    total_chunks: int
    completed_files: int
    total_files: int
    folder_progress: dict[str, FolderProgress] = field(default_factory=dict)
    new_files_count: int = 0
    updated_files_count: int = 0
    removed_files_count: int = 0
    current_file: str | None = None
    current_folder: str | None = None
    waiting_for_rate_limit: bool | None = None


def folder_of(path: str) -> str:
    """Return the folder part of a vault path ('' for root-level files)."""
    return path.rsplit("/", 1)[0] if "/" in path else ""


def self_and_ancestors(folder: str) -> list[str]:
    """Return *folder* followed by each parent, deepest first.

    The vault root ('') has no ancestors and is not listed:
        self_and_ancestors("a/b/c") == ["a/b/c", "a/b", "a"]
        self_and_ancestors("") == []
    """
    if not folder:
        return []
    parts = folder.split("/")
    return ["/".join(parts[:i]) for i in range(len(parts), 0, -1)]


class FolderProgressTracker:
    """Per-folder counters for one indexing run.

    Every folder holding a selected file gets an entry, and so does each of
    its ancestors; all four counters roll up along that lineage.
    """

    def __init__(self, paths: list[str]) -> None:
        self._folders: dict[str, FolderProgress] = {}
        for path in paths:
            for folder in self._lineage(folder_of(path)):
                self._folders.setdefault(folder, FolderProgress()).total_files += 1

    @staticmethod
    def _lineage(folder: str) -> list[str]:
        return self_and_ancestors(folder) or [""]

    def file_chunked(self, path: str, chunk_count: int) -> None:
        for folder in self._lineage(folder_of(path)):
            entry = self._folders[folder]
            entry.completed_files += 1
            entry.total_chunks += chunk_count

    def chunks_completed(self, path: str, count: int = 1) -> None:
        for folder in self._lineage(folder_of(path)):
            entry = self._folders.get(folder)
            if entry is not None:
                entry.completed_chunks += count

    def get(self, folder: str) -> FolderProgress | None:
        return self._folders.get(folder)

    def snapshot(self) -> dict[str, FolderProgress]:
        """Return a copy safe to hand to observers."""
        return copy.deepcopy(self._folders)
