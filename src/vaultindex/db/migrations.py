"""Forward-only migration runner for the vector index schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS embeddings (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    path        TEXT NOT NULL,
    mtime       INTEGER NOT NULL,
    content     TEXT NOT NULL,
    model       TEXT NOT NULL,
    dimension   INTEGER NOT NULL,
    embedding   BLOB NOT NULL,
    metadata    TEXT NOT NULL DEFAULT '{}',
    created_at  DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS embeddings_path_index ON embeddings (path);
CREATE INDEX IF NOT EXISTS embeddings_model_index ON embeddings (model);
"""

# Covers the per-model mtime aggregate and the model+dimension search filter.
_V2_SQL = """
DROP INDEX IF EXISTS embeddings_model_index;
CREATE INDEX IF NOT EXISTS embeddings_model_path_mtime_index
    ON embeddings (model, path, mtime);
CREATE INDEX IF NOT EXISTS embeddings_model_dimension_index
    ON embeddings (model, dimension);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
]


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    conn.execute(_CREATE_SCHEMA_VERSION)
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row[0] is not None else 0


def run_migrations(conn: sqlite3.Connection) -> list[int]:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.

    Returns:
        The versions applied by this call (empty if already current).
    """
    current = current_version(conn)
    conn.commit()

    applied: list[int] = []
    for version, sql in sorted(MIGRATIONS):
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
            applied.append(version)
    return applied
