"""Markdown chunker — heading-aware splits with fixed-window fallback."""

from __future__ import annotations

import re

from vaultindex.ingest.base import BaseChunker, TextChunk

# Matches an H1, H2 or H3 heading line.
_HEADING_RE = re.compile(r"^#{1,3} .+")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")


class MarkdownChunker(BaseChunker):
    """Split Markdown on H1/H2/H3 heading boundaries.

    Strategy:
    - Each heading + its following content is a *section*; headings inside
      fenced code blocks do not start a section.
    - Content before the first heading (preamble) becomes its own section.
    - Sections longer than ``chunk_size`` characters are further split with
      ``_split_fixed_window()``.
    - If the document has no H1/H2/H3 headings, fall back to fixed-window
      splitting of the whole text.
    """

    def split(self, text: str) -> list[TextChunk]:
        if not text.strip():
            return []

        lines = text.split("\n")
        starts = self._heading_lines(lines)
        if not starts:
            return self._split_fixed_window(text)

        if starts[0] != 0:
            starts.insert(0, 0)

        chunks: list[TextChunk] = []
        for i, start in enumerate(starts):
            end = starts[i + 1] if i + 1 < len(starts) else len(lines)
            section = "\n".join(lines[start:end])
            if len(section.strip()) <= self.chunk_size:
                chunk = self._whole_chunk(section, first_line=start + 1)
                if chunk is not None:
                    chunks.append(chunk)
            else:
                chunks.extend(self._split_fixed_window(section, first_line=start + 1))
        return chunks

    @staticmethod
    def _heading_lines(lines: list[str]) -> list[int]:
        """Return 0-based indexes of heading lines outside code fences."""
        in_fence = False
        found: list[int] = []
        for idx, line in enumerate(lines):
            if _FENCE_RE.match(line):
                in_fence = not in_fence
                continue
            if not in_fence and _HEADING_RE.match(line):
                found.append(idx)
        return found
