"""Embedded engine lifecycle: load-or-create, migrate, save, vacuum, cleanup.

The live engine is an in-memory SQLite database with sqlite-vec loaded. It is
persisted as a single gzip snapshot inside the vault's storage directory and
written back atomically (temp file + ``os.replace``).
"""

from __future__ import annotations

import gzip
import logging
import os
import sqlite3
import tempfile
from pathlib import Path

from vaultindex.db.connection import Database, dump_snapshot, is_abort_error, load_snapshot
from vaultindex.db.migrations import run_migrations
from vaultindex.db.repository import VectorRepository
from vaultindex.exceptions import DatabaseNotInitializedError, EngineAbortedError
from vaultindex.indexing.retry import BackoffConfig
from vaultindex.indexing.vault import Vault
from vaultindex.indexing.vector_manager import VectorManager
from vaultindex.scheduler import Scheduler, default_scheduler

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIR = ".vaultindex"
DEFAULT_SNAPSHOT_NAME = "vectors.db.gz"


class DatabaseManager:
    """Owns the engine connection and the VectorManager built on top of it.

    Construct with ``await DatabaseManager.create(...)``; tear down with
    ``await cleanup()`` exactly once at shutdown.
    """

    def __init__(
        self,
        vault: Vault,
        snapshot_path: Path | str,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._vault = vault
        self.snapshot_path = Path(snapshot_path)
        self._scheduler = scheduler or default_scheduler
        self._conn: sqlite3.Connection | None = None
        self._vector_manager: VectorManager | None = None

    @classmethod
    async def create(
        cls,
        vault: Vault,
        snapshot_path: Path | str,
        *,
        scheduler: Scheduler | None = None,
        backoff: BackoffConfig | None = None,
    ) -> DatabaseManager:
        """Load the snapshot (or start empty), migrate, save, and wire the VectorManager.

        Raises:
            EngineAbortedError: The engine cannot run on this runtime. Do not
                retry; the host needs updating.
        """
        manager = cls(vault, snapshot_path, scheduler)
        manager._conn = manager._load_existing_database()
        if manager._conn is None:
            manager._conn = manager._create_new_database()

        applied = run_migrations(manager._conn)
        if applied:
            logger.info("Applied vector index migrations: %s", applied)
        await manager.save()

        manager._vector_manager = VectorManager(
            vault,
            VectorRepository(manager._conn),
            scheduler=manager._scheduler,
            save_callback=manager.save,
            vacuum_callback=manager.vacuum,
            backoff=backoff,
        )
        logger.debug("Vector database initialized at %s", manager.snapshot_path)
        return manager

    def get_db(self) -> sqlite3.Connection | None:
        return self._conn

    def get_vector_manager(self) -> VectorManager:
        if self._vector_manager is None:
            raise DatabaseNotInitializedError()
        return self._vector_manager

    # ------------------------------------------------------------------
    # Load / create
    # ------------------------------------------------------------------

    def _load_existing_database(self) -> sqlite3.Connection | None:
        """Return a connection restored from the snapshot, or None.

        Missing, truncated or corrupt snapshots yield None (a fresh database is
        created instead). Engine aborts are re-raised.
        """
        if not self.snapshot_path.exists():
            return None
        try:
            return load_snapshot(self.snapshot_path.read_bytes()).connect()
        except EngineAbortedError:
            raise
        except (OSError, EOFError, gzip.BadGzipFile, sqlite3.DatabaseError) as exc:
            if is_abort_error(exc):
                raise EngineAbortedError(str(exc)) from exc
            logger.exception("Could not load vector snapshot %s; starting fresh", self.snapshot_path)
            return None

    def _create_new_database(self) -> sqlite3.Connection:
        try:
            return Database().connect()
        except sqlite3.Error as exc:
            if is_abort_error(exc):
                raise EngineAbortedError(str(exc)) from exc
            raise

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save(self) -> None:
        """Write the engine to the snapshot. Never raises.

        Yields to the scheduler before dumping, after dumping, and before
        writing so a large dump does not starve the event loop.
        """
        if self._conn is None:
            return
        try:
            await self._scheduler.yield_now()
            blob = dump_snapshot(self._conn)
            await self._scheduler.yield_now()
            self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
            await self._scheduler.yield_now()
            self._write_atomic(blob)
        except Exception:
            logger.exception("Error saving vector database to %s", self.snapshot_path)

    def _write_atomic(self, blob: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=self.snapshot_path.parent, prefix=f".{self.snapshot_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(blob)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.snapshot_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def vacuum(self) -> None:
        """Reclaim space from deleted rows. No-op if not initialised."""
        if self._conn is None:
            return
        self._conn.commit()
        self._conn.execute("VACUUM")

    async def cleanup(self) -> None:
        """Save, then close the engine. Safe to call more than once."""
        if self._conn is None:
            return
        await self.save()
        self._vector_manager = None
        self._conn.close()
        self._conn = None
