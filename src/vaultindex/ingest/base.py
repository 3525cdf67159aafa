"""Base chunker interface: text in, line-attributed spans out."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class TextChunk:
    """A contiguous span of a document with its 1-based inclusive line range."""

    content: str
    start_line: int
    end_line: int


class BaseChunker(ABC):
    """Abstract base for all chunkers.

    Subclasses implement ``split()`` and may use ``_split_fixed_window()`` for
    the fixed-window fallback path.

    ``chunk_size`` is measured in characters. Windows are built from whole
    lines so every chunk maps back to a line range; a single line longer than
    ``chunk_size`` is cut into several chunks sharing that line number.
    """

    def __init__(self, chunk_size: int = 1000, overlap: float = 0.10) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0.0 <= overlap < 1.0:
            raise ValueError("overlap must be in [0.0, 1.0)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    @abstractmethod
    def split(self, text: str) -> list[TextChunk]:
        """Split *text* into ordered, non-empty TextChunks. Deterministic."""

    def _split_fixed_window(self, text: str, first_line: int = 1) -> list[TextChunk]:
        """Split *text* into line-aligned windows of at most ``chunk_size`` chars.

        Consecutive windows share trailing lines totalling at most
        ``overlap * chunk_size`` characters. *first_line* is the document line
        number of the first line of *text*.
        """
        if not text.strip():
            return []

        pieces: list[tuple[int, str]] = []
        for offset, line in enumerate(text.split("\n")):
            line_no = first_line + offset
            if len(line) <= self.chunk_size:
                pieces.append((line_no, line))
                continue
            for start in range(0, len(line), self.chunk_size):
                pieces.append((line_no, line[start : start + self.chunk_size]))

        overlap_chars = int(self.chunk_size * self.overlap)
        chunks: list[TextChunk] = []
        window: list[tuple[int, str]] = []
        size = 0

        for piece in pieces:
            added = len(piece[1]) + (1 if window else 0)
            if window and size + added > self.chunk_size:
                chunk = _window_to_chunk(window)
                if chunk is not None:
                    chunks.append(chunk)
                window = _overlap_tail(window, overlap_chars)
                size = _joined_len(window)
                added = len(piece[1]) + (1 if window else 0)
                if size + added > self.chunk_size:
                    window, size = [], 0
                    added = len(piece[1])
            window.append(piece)
            size += added

        if window:
            chunk = _window_to_chunk(window)
            if chunk is not None:
                chunks.append(chunk)
        return chunks

    def _whole_chunk(self, text: str, first_line: int = 1) -> TextChunk | None:
        """Return *text* as one chunk (blank edge lines trimmed), or None if blank."""
        lines = text.split("\n")
        return _window_to_chunk([(first_line + i, line) for i, line in enumerate(lines)])


def _joined_len(window: list[tuple[int, str]]) -> int:
    if not window:
        return 0
    return sum(len(seg) for _, seg in window) + len(window) - 1


def _overlap_tail(window: list[tuple[int, str]], budget: int) -> list[tuple[int, str]]:
    """Trailing pieces of *window* whose joined length fits in *budget*."""
    tail: list[tuple[int, str]] = []
    for piece in reversed(window):
        candidate = [piece, *tail]
        if _joined_len(candidate) > budget:
            break
        tail = candidate
    return tail


def _window_to_chunk(window: list[tuple[int, str]]) -> TextChunk | None:
    """Join *window* into a chunk, trimming blank lines at both ends."""
    start = 0
    end = len(window)
    while start < end and not window[start][1].strip():
        start += 1
    while end > start and not window[end - 1][1].strip():
        end -= 1
    if start == end:
        return None
    kept = window[start:end]
    return TextChunk(
        content="\n".join(seg for _, seg in kept).strip(),
        start_line=kept[0][0],
        end_line=kept[-1][0],
    )
