"""Domain models for the vector index database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field


@dataclass(frozen=True)
class VectorMetadata:
    """Source line range of a chunk (1-based, inclusive)."""

    start_line: int
    end_line: int

    def to_json(self) -> str:
        return json.dumps({"startLine": self.start_line, "endLine": self.end_line})

    @classmethod
    def from_json(cls, raw: str) -> VectorMetadata:
        data = json.loads(raw or "{}")
        return cls(
            start_line=int(data.get("startLine", 0)),
            end_line=int(data.get("endLine", 0)),
        )


@dataclass
class EmbeddingChunk:
    """One embedded span of one document, for one embedding model."""

    path: str
    mtime: int
    content: str
    model: str
    dimension: int
    embedding: list[float]
    metadata: VectorMetadata
    id: int | None = None  # set once persisted


@dataclass
class PendingChunk:
    """A chunk waiting for its embedding (model and vector not yet known)."""

    path: str
    mtime: int
    content: str
    metadata: VectorMetadata


@dataclass
class SimilarityResult:
    """A stored chunk (without its vector) and its cosine similarity to a query."""

    id: int
    path: str
    mtime: int
    content: str
    model: str
    dimension: int
    metadata: VectorMetadata
    similarity: float


@dataclass
class EmbeddingDbStats:
    model: str
    rows_count: int
    total_data_bytes: int


@dataclass
class SearchScope:
    """Restrict a similarity search to explicit files and/or folder prefixes."""

    files: list[str] = field(default_factory=list)
    folders: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.files and not self.folders
