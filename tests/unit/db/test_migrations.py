"""Tests for the embeddings schema migrations."""

from __future__ import annotations

from vaultindex.db.connection import Database
from vaultindex.db.migrations import MIGRATIONS, current_version, run_migrations


def _indexes(conn) -> set[str]:
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = 'embeddings'"
    ).fetchall()
    return {r["name"] for r in rows}


def test_fresh_database_is_version_zero():
    with Database() as conn:
        assert current_version(conn) == 0


def test_run_migrations_applies_all_in_order():
    with Database() as conn:
        applied = run_migrations(conn)
        assert applied == [v for v, _ in sorted(MIGRATIONS)]
        assert current_version(conn) == max(v for v, _ in MIGRATIONS)


def test_run_migrations_is_idempotent():
    with Database() as conn:
        run_migrations(conn)
        assert run_migrations(conn) == []


def test_embeddings_columns():
    with Database() as conn:
        run_migrations(conn)
        cols = {r["name"] for r in conn.execute("PRAGMA table_info(embeddings)").fetchall()}
    assert {"id", "path", "mtime", "content", "model", "dimension", "embedding", "metadata"} <= cols


def test_v2_replaces_model_index():
    with Database() as conn:
        run_migrations(conn)
        names = _indexes(conn)
    assert "embeddings_model_index" not in names
    assert "embeddings_path_index" in names
    assert "embeddings_model_path_mtime_index" in names
    assert "embeddings_model_dimension_index" in names


def test_partially_migrated_database_only_gets_pending():
    with Database() as db:
        version, sql = sorted(MIGRATIONS)[0]
        current_version(db)
        db.executescript(sql)
        db.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
        db.commit()
        assert run_migrations(db) == [v for v, _ in sorted(MIGRATIONS) if v > version]
