"""Tests for folder progress roll-up."""

from __future__ import annotations

from vaultindex.indexing.progress import FolderProgressTracker, folder_of, self_and_ancestors


def test_folder_of():
    assert folder_of("a/b/c.md") == "a/b"
    assert folder_of("c.md") == ""


def test_self_and_ancestors():
    assert self_and_ancestors("a/b/c") == ["a/b/c", "a/b", "a"]
    assert self_and_ancestors("") == []


def test_totals_roll_up_to_ancestors():
    tracker = FolderProgressTracker(["a/b/x.md", "a/y.md", "z.md"])
    assert tracker.get("a").total_files == 2
    assert tracker.get("a/b").total_files == 1
    assert tracker.get("").total_files == 1


def test_root_entry_counts_only_root_files():
    tracker = FolderProgressTracker(["a/x.md"])
    assert tracker.get("") is None


def test_file_chunked_and_chunks_completed():
    tracker = FolderProgressTracker(["a/b/x.md"])
    tracker.file_chunked("a/b/x.md", 4)
    tracker.chunks_completed("a/b/x.md", 3)
    for folder in ("a", "a/b"):
        entry = tracker.get(folder)
        assert (entry.completed_files, entry.total_chunks, entry.completed_chunks) == (1, 4, 3)


def test_snapshot_is_independent_copy():
    tracker = FolderProgressTracker(["a/x.md"])
    snap = tracker.snapshot()
    tracker.chunks_completed("a/x.md")
    assert snap["a"].completed_chunks == 0
    assert tracker.get("a").completed_chunks == 1
