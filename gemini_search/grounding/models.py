"""Typed views of a grounded generateContent response."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..utils.errors import ResponseFormatError


@dataclass(frozen=True)
class GroundingChunk:
    title: Optional[str] = None
    uri: Optional[str] = None


@dataclass(frozen=True)
class Segment:
    start_index: int
    end_index: int
    text: Optional[str] = None


@dataclass(frozen=True)
class GroundingSupport:
    segment: Optional[Segment]
    chunk_indices: tuple[int, ...] = ()


@dataclass(frozen=True)
class SearchResult:
    text: str
    chunks: tuple[GroundingChunk, ...] = field(default_factory=tuple)
    supports: tuple[GroundingSupport, ...] = field(default_factory=tuple)


def _expect(value: Any, kind: type, where: str) -> Any:
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ResponseFormatError(f"{where}: expected {kind.__name__}, got {type(value).__name__}")
    return value


def _optional(obj: dict[str, Any], key: str, kind: type, where: str) -> Any:
    value = obj.get(key)
    if value is None:
        return None
    return _expect(value, kind, f"{where}.{key}")


def _parse_chunk(raw: Any, where: str) -> GroundingChunk:
    raw = _expect(raw, dict, where)
    web = _optional(raw, "web", dict, where) or {}
    return GroundingChunk(
        title=_optional(web, "title", str, f"{where}.web"),
        uri=_optional(web, "uri", str, f"{where}.web"),
    )


def _parse_support(raw: Any, where: str) -> GroundingSupport:
    raw = _expect(raw, dict, where)
    segment = None
    raw_segment = _optional(raw, "segment", dict, where)
    if raw_segment is not None:
        # proto3 JSON omits zero-valued offsets
        segment = Segment(
            start_index=_optional(raw_segment, "startIndex", int, f"{where}.segment") or 0,
            end_index=_optional(raw_segment, "endIndex", int, f"{where}.segment") or 0,
            text=_optional(raw_segment, "text", str, f"{where}.segment"),
        )
    indices = _optional(raw, "groundingChunkIndices", list, where) or []
    return GroundingSupport(
        segment=segment,
        chunk_indices=tuple(
            _expect(i, int, f"{where}.groundingChunkIndices[{n}]") for n, i in enumerate(indices)
        ),
    )


def parse_generate_content(payload: dict[str, Any]) -> SearchResult:
    """Read text and grounding metadata from the first candidate.

    Missing optional fields yield empty values; present fields of the wrong
    type raise ResponseFormatError.
    """

    candidates = _optional(payload, "candidates", list, "response") or []
    if not candidates:
        return SearchResult(text="")
    candidate = _expect(candidates[0], dict, "candidates[0]")

    content = _optional(candidate, "content", dict, "candidates[0]") or {}
    parts = _optional(content, "parts", list, "candidates[0].content") or []
    texts: list[str] = []
    for n, part in enumerate(parts):
        part = _expect(part, dict, f"candidates[0].content.parts[{n}]")
        text = _optional(part, "text", str, f"candidates[0].content.parts[{n}]")
        if text and not part.get("thought"):
            texts.append(text)

    metadata = _optional(candidate, "groundingMetadata", dict, "candidates[0]") or {}
    raw_chunks = _optional(metadata, "groundingChunks", list, "groundingMetadata") or []
    raw_supports = _optional(metadata, "groundingSupports", list, "groundingMetadata") or []

    return SearchResult(
        text="".join(texts),
        chunks=tuple(_parse_chunk(c, f"groundingChunks[{n}]") for n, c in enumerate(raw_chunks)),
        supports=tuple(_parse_support(s, f"groundingSupports[{n}]") for n, s in enumerate(raw_supports)),
    )


__all__ = [
    "GroundingChunk",
    "GroundingSupport",
    "SearchResult",
    "Segment",
    "parse_generate_content",
]
