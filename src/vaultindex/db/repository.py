"""Repository for every query and mutation against the embeddings table.

Single interface for: chunk inserts and deletes, per-model mtime and path
enumeration, cosine similarity search (sqlite-vec), and per-model statistics.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Iterator, Sequence

from vaultindex.db.models import (
    EmbeddingChunk,
    EmbeddingDbStats,
    SearchScope,
    SimilarityResult,
    VectorMetadata,
)
from vaultindex.db.vectors import serialize_vector, validate_vector

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on older builds (999).
_MAX_PARAMS = 500


class VectorRepository:
    """Data access layer for embedding chunks.

    Borrows an open sqlite3.Connection owned by the DatabaseManager; never
    closes it.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open, migrated connection with sqlite-vec loaded."""
        self._conn = conn

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------

    def get_file_mtimes(self, model: str) -> dict[str, int]:
        """Return {path: latest indexed mtime} for *model* in one query."""
        rows = self._conn.execute(
            "SELECT path, MAX(mtime) AS mtime FROM embeddings WHERE model = ? GROUP BY path",
            (model,),
        ).fetchall()
        return {r["path"]: r["mtime"] for r in rows}

    def get_indexed_file_paths(self, model: str) -> set[str]:
        """Return every path with at least one chunk for *model*."""
        rows = self._conn.execute(
            "SELECT DISTINCT path FROM embeddings WHERE model = ?", (model,)
        ).fetchall()
        return {r["path"] for r in rows}

    def has_vectors_for_model(self, model: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM embeddings WHERE model = ? LIMIT 1", (model,)
        ).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert_vectors(self, chunks: Sequence[EmbeddingChunk]) -> int:
        """Insert *chunks* in a single transaction. Returns the number inserted.

        Either every row is written or none is: validation runs before the
        first write and any SQLite error rolls the whole batch back.

        Raises:
            ValueError: If a chunk is empty, contains a null byte, or its vector
                length differs from its declared dimension.
        """
        if not chunks:
            return 0
        rows = [_chunk_to_row(c) for c in chunks]
        with self._conn:
            self._conn.executemany(
                """
                INSERT INTO embeddings (path, mtime, content, model, dimension, embedding, metadata)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        return len(rows)

    def delete_vectors_for_multiple_files(self, paths: Iterable[str], model: str) -> int:
        """Delete all chunks for *paths* under *model*. Returns rows deleted."""
        deleted = 0
        with self._conn:
            for batch in _batched(list(paths), _MAX_PARAMS):
                placeholders = ",".join("?" * len(batch))
                cur = self._conn.execute(
                    f"DELETE FROM embeddings WHERE model = ? AND path IN ({placeholders})",  # noqa: S608
                    (model, *batch),
                )
                deleted += cur.rowcount
        return deleted

    def clear_all_vectors(self, model: str) -> int:
        """Delete every chunk for *model*. Returns rows deleted."""
        with self._conn:
            cur = self._conn.execute("DELETE FROM embeddings WHERE model = ?", (model,))
        return cur.rowcount

    # ------------------------------------------------------------------
    # Similarity search
    # ------------------------------------------------------------------

    def perform_similarity_search(
        self,
        query_vector: Sequence[float],
        model: str,
        *,
        min_similarity: float,
        limit: int,
        scope: SearchScope | None = None,
    ) -> list[SimilarityResult]:
        """Return up to *limit* chunks with cosine similarity >= *min_similarity*.

        Similarity is ``1 - vec_distance_cosine(...)``, computed by sqlite-vec.
        Only rows of the same model and dimension as the query are compared.
        Results are ordered by similarity, highest first.
        """
        if limit < 1:
            return []
        where = ["model = ?", "dimension = ?"]
        params: list[object] = [model, len(query_vector)]

        scope_sql, scope_params = _scope_clause(scope)
        if scope_sql:
            where.append(scope_sql)
            params.extend(scope_params)

        sql = f"""
            SELECT * FROM (
                SELECT id, path, mtime, content, model, dimension, metadata,
                       1.0 - vec_distance_cosine(embedding, ?) AS similarity
                FROM embeddings
                WHERE {" AND ".join(where)}
            )
            WHERE similarity >= ?
            ORDER BY similarity DESC
            LIMIT ?
        """  # noqa: S608
        rows = self._conn.execute(
            sql,
            (serialize_vector(query_vector), *params, min_similarity, limit),
        ).fetchall()
        return [_row_to_result(r) for r in rows]

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_embedding_stats(self) -> list[EmbeddingDbStats]:
        """Return per-model row counts and approximate stored bytes."""
        rows = self._conn.execute(
            """
            SELECT model,
                   COUNT(*) AS rows_count,
                   COALESCE(SUM(length(embedding) + length(content) + length(metadata)), 0)
                       AS total_data_bytes
            FROM embeddings
            GROUP BY model
            ORDER BY model
            """
        ).fetchall()
        return [
            EmbeddingDbStats(
                model=r["model"],
                rows_count=r["rows_count"],
                total_data_bytes=r["total_data_bytes"],
            )
            for r in rows
        ]

    def count_vectors_for_file(self, path: str, model: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM embeddings WHERE path = ? AND model = ?",
            (path, model),
        ).fetchone()[0]


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _chunk_to_row(chunk: EmbeddingChunk) -> tuple:
    if not chunk.content:
        raise ValueError(f"Chunk content is empty in file: {chunk.path}")
    if "\x00" in chunk.content:
        raise ValueError(f"Chunk content contains null bytes in file: {chunk.path}")
    validate_vector(chunk.embedding, chunk.dimension)
    return (
        chunk.path,
        chunk.mtime,
        chunk.content,
        chunk.model,
        chunk.dimension,
        serialize_vector(chunk.embedding),
        chunk.metadata.to_json(),
    )


def _scope_clause(scope: SearchScope | None) -> tuple[str, list[object]]:
    """Build ``(path = ? OR substr(path, 1, n) = prefix ...)`` for *scope*."""
    if scope is None or scope.is_empty:
        return "", []

    clauses: list[str] = []
    params: list[object] = []
    for path in scope.files:
        clauses.append("path = ?")
        params.append(path)
    for folder in scope.folders:
        prefix = folder.strip("/")
        if not prefix:
            # Vault root: every path is inside it.
            return "", []
        prefix += "/"
        clauses.append("substr(path, 1, ?) = ?")
        params.extend([len(prefix), prefix])
    return "(" + " OR ".join(clauses) + ")", params


def _batched(items: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _row_to_result(row: sqlite3.Row) -> SimilarityResult:
    return SimilarityResult(
        id=row["id"],
        path=row["path"],
        mtime=row["mtime"],
        content=row["content"],
        model=row["model"],
        dimension=row["dimension"],
        metadata=VectorMetadata.from_json(row["metadata"]),
        similarity=row["similarity"],
    )
