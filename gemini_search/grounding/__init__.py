"""Grounded search results and citation formatting."""

from .citations import merge_citations, merge_result
from .models import GroundingChunk, GroundingSupport, SearchResult, Segment

__all__ = [
    "GroundingChunk",
    "GroundingSupport",
    "SearchResult",
    "Segment",
    "merge_citations",
    "merge_result",
]
