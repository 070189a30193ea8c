"""Splice citation markers into grounded text and append a source list.

Segment offsets from the backend count UTF-8 bytes, so markers are
inserted into the encoded text. Offsets past the end are clamped to the
end, negative offsets to the start, and an offset inside a multi-byte
character moves forward to the next character boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .models import GroundingChunk, GroundingSupport, SearchResult


@dataclass(frozen=True)
class Insertion:
    index: int
    marker: str


def build_insertions(supports: Sequence[GroundingSupport]) -> list[Insertion]:
    insertions: list[Insertion] = []
    for support in supports:
        if support.segment is None or not support.chunk_indices:
            continue
        marker = "".join(f"[{i + 1}]" for i in support.chunk_indices)
        insertions.append(Insertion(index=support.segment.end_index, marker=marker))
    return insertions


def _char_boundary(buf: bytearray, index: int) -> int:
    while index < len(buf) and (buf[index] & 0xC0) == 0x80:
        index += 1
    return index


def insert_markers(text: str, insertions: Sequence[Insertion]) -> str:
    """Apply insertions from the highest offset down.

    Working backwards keeps every pending offset valid. The sort is stable,
    so markers sharing an offset end up in reverse discovery order.
    """

    buf = bytearray(text.encode("utf-8"))
    limit = len(buf)
    for insertion in sorted(insertions, key=lambda ins: ins.index, reverse=True):
        at = _char_boundary(buf, max(0, min(insertion.index, limit)))
        buf[at:at] = insertion.marker.encode("utf-8")
    return buf.decode("utf-8")


def format_source(number: int, chunk: GroundingChunk) -> str:
    return f"[{number}] {chunk.title or 'Untitled'} ({chunk.uri or 'No URI'})"


def merge_citations(
    text: str,
    chunks: Sequence[GroundingChunk],
    supports: Sequence[GroundingSupport],
) -> str:
    if not chunks:
        return text
    merged = insert_markers(text, build_insertions(supports))
    sources = "\n".join(format_source(n, chunk) for n, chunk in enumerate(chunks, start=1))
    return f"{merged}\n\nSources:\n{sources}"


def merge_result(result: SearchResult) -> str:
    return merge_citations(result.text, result.chunks, result.supports)


__all__ = [
    "Insertion",
    "build_insertions",
    "format_source",
    "insert_markers",
    "merge_citations",
    "merge_result",
]
