"""Text chunkers used by the indexing pipeline."""

from vaultindex.ingest.base import BaseChunker, TextChunk
from vaultindex.ingest.markdown import MarkdownChunker

__all__ = [
    "BaseChunker",
    "MarkdownChunker",
    "TextChunk",
]
