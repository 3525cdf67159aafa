"""In-memory SQLite connection with the sqlite-vec extension.

The live engine is an in-memory database. Its persisted form is the
gzip-compressed ``Connection.serialize()`` image (the snapshot), loaded back
with ``Connection.deserialize()``.
"""

from __future__ import annotations

import gzip
import sqlite3
import zlib

import sqlite_vec

from vaultindex.exceptions import EngineAbortedError

# Abort string of WebAssembly (Emscripten) builds of the engine. The stdlib
# sqlite3 module never raises it; on CPython the runtime-too-old case is the
# extension-load failure mapped in Database.connect().
ABORT_MARKER = "Aborted(). Build with -sASSERTIONS for more info."


class Database:
    """Embedded SQLite engine with sqlite-vec vector functions loaded."""

    def __init__(self, image: bytes | None = None) -> None:
        """Store an optional serialized image. Call connect() to open the engine.

        Args:
            image: Uncompressed ``serialize()`` output to restore, or None for
                a fresh empty database.
        """
        self.image = image
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open the in-memory engine, load sqlite-vec, restore the image."""
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        try:
            conn.enable_load_extension(True)
            sqlite_vec.load(conn)
            conn.enable_load_extension(False)
        except (AttributeError, sqlite3.OperationalError) as exc:
            # AttributeError: Python built without loadable extension support.
            conn.close()
            raise EngineAbortedError(str(exc)) from exc

        if self.image is not None:
            try:
                conn.deserialize(self.image)
                # deserialize() accepts anything; the first read validates it.
                conn.execute("SELECT COUNT(*) FROM sqlite_master").fetchone()
            except sqlite3.DatabaseError:
                conn.close()
                raise

        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def __enter__(self) -> sqlite3.Connection:
        """Open the database and return the connection (context manager support)."""
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        if self._conn:
            self._conn.close()
            self._conn = None


def dump_snapshot(conn: sqlite3.Connection) -> bytes:
    """Return the gzip-compressed image of the live database."""
    return gzip.compress(conn.serialize())


def load_snapshot(blob: bytes) -> Database:
    """Return a Database that restores the compressed snapshot *blob*.

    Raises:
        gzip.BadGzipFile / EOFError: If *blob* is not a complete, intact gzip stream.
    """
    try:
        return Database(gzip.decompress(blob))
    except zlib.error as exc:
        # Valid header, damaged deflate body.
        raise gzip.BadGzipFile(str(exc)) from exc


def is_abort_error(exc: BaseException) -> bool:
    """True if *exc* carries the engine's fatal-abort failure string."""
    return ABORT_MARKER in str(exc)
