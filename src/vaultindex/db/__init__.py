"""Vector index database layer."""

from vaultindex.db.connection import Database
from vaultindex.db.migrations import MIGRATIONS, run_migrations
from vaultindex.db.models import (
    EmbeddingChunk,
    EmbeddingDbStats,
    SearchScope,
    SimilarityResult,
    VectorMetadata,
)
from vaultindex.db.repository import VectorRepository

__all__ = [
    "Database",
    "EmbeddingChunk",
    "EmbeddingDbStats",
    "MIGRATIONS",
    "SearchScope",
    "SimilarityResult",
    "VectorMetadata",
    "VectorRepository",
    "run_migrations",
]
