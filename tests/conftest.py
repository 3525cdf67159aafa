"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
from collections.abc import Callable

import pytest

from vaultindex.db.connection import Database
from vaultindex.db.migrations import run_migrations
from vaultindex.db.repository import VectorRepository
from vaultindex.indexing.retry import BackoffConfig
from vaultindex.indexing.vault import VaultFile
from vaultindex.indexing.vector_manager import VectorManager

FAKE_MODEL = "fake/embed-small"
FAKE_DIM = 8


def fake_vector(text: str, dimension: int = FAKE_DIM) -> list[float]:
    """Deterministic, never-zero vector derived from *text*."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [0.1 + digest[i % len(digest)] / 255.0 for i in range(dimension)]


class FakeEmbeddingClient:
    """In-process embedding client.

    ``fail`` receives (text, attempt number for that text) and may return an
    exception to raise instead of a vector.
    """

    def __init__(
        self,
        model: str = FAKE_MODEL,
        dimension: int = FAKE_DIM,
        fail: Callable[[str, int], Exception | None] | None = None,
    ) -> None:
        self._model = model
        self._dimension = dimension
        self.fail = fail
        self.calls: list[str] = []

    @property
    def id(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    def validate(self) -> None:
        pass

    async def get_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail is not None:
            exc = self.fail(text, self.calls.count(text))
            if exc is not None:
                raise exc
        return fake_vector(text, self._dimension)


class InMemoryVault:
    """Vault whose notes live in a dict: path → (content, mtime).

    A content value that is an Exception is raised on read.
    """

    def __init__(self, notes: dict[str, tuple[str | Exception, int]] | None = None) -> None:
        self.notes: dict[str, tuple[str | Exception, int]] = dict(notes or {})
        self.reads: list[str] = []

    def put(self, path: str, content: str | Exception, mtime: int = 1000) -> None:
        self.notes[path] = (content, mtime)

    def remove(self, path: str) -> None:
        del self.notes[path]

    def get_markdown_files(self) -> list[VaultFile]:
        return [
            VaultFile(path=p, mtime=m) for p, (_, m) in sorted(self.notes.items())
            if p.endswith(".md")
        ]

    async def cached_read(self, file: VaultFile) -> str:
        self.reads.append(file.path)
        content, _ = self.notes[file.path]
        if isinstance(content, Exception):
            raise content
        return content

    def exists(self, path: str) -> bool:
        return path in self.notes


class RecordingScheduler:
    def __init__(self) -> None:
        self.yields = 0

    async def yield_now(self) -> None:
        self.yields += 1


class SaveRecorder:
    def __init__(self) -> None:
        self.saves = 0
        self.vacuums = 0

    async def save(self) -> None:
        self.saves += 1

    async def vacuum(self) -> None:
        self.vacuums += 1


@pytest.fixture
def conn():
    """Migrated in-memory engine with sqlite-vec loaded, closed after test."""
    db = Database()
    connection = db.connect()
    run_migrations(connection)
    yield connection
    connection.close()


@pytest.fixture
def repo(conn):
    return VectorRepository(conn)


@pytest.fixture
def vault():
    return InMemoryVault()


@pytest.fixture
def client():
    return FakeEmbeddingClient()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def recorder():
    return SaveRecorder()


@pytest.fixture
def sleeps():
    """Delays requested by the retry loop (no real sleeping)."""
    return []


@pytest.fixture
def manager(vault, repo, scheduler, recorder, sleeps):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return VectorManager(
        vault,
        repo,
        scheduler=scheduler,
        save_callback=recorder.save,
        vacuum_callback=recorder.vacuum,
        backoff=BackoffConfig(),
        sleep=_sleep,
    )
