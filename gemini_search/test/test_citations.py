import unittest

from gemini_search.grounding.citations import (
    Insertion,
    build_insertions,
    insert_markers,
    merge_citations,
)
from gemini_search.grounding.models import GroundingChunk, GroundingSupport, SearchResult, Segment
from gemini_search.grounding import merge_result


def _support(end: int, *indices: int, start: int = 0) -> GroundingSupport:
    return GroundingSupport(segment=Segment(start_index=start, end_index=end), chunk_indices=tuple(indices))


class CitationMergeTests(unittest.TestCase):
    def test_single_support_with_source_list(self) -> None:
        text = "Paris is the capital."
        merged = merge_citations(
            text,
            [GroundingChunk(title="Wiki", uri="https://wiki.example")],
            [_support(21, 0)],
        )
        self.assertEqual(
            merged,
            "Paris is the capital.[1]\n\nSources:\n[1] Wiki (https://wiki.example)",
        )

    def test_descending_insertions_keep_original_offsets(self) -> None:
        insertions = [Insertion(2, "<a>"), Insertion(10, "<c>"), Insertion(5, "<b>")]
        self.assertEqual(insert_markers("abcdefghij", insertions), "ab<a>cde<b>fghij<c>")

    def test_no_chunks_returns_text_unchanged(self) -> None:
        text = "Nothing to cite here."
        self.assertEqual(merge_citations(text, [], [_support(7, 0)]), text)
        self.assertNotIn("Sources:", merge_citations(text, [], []))

    def test_shared_end_index_markers_are_adjacent_and_deterministic(self) -> None:
        chunks = [GroundingChunk("A", "https://a"), GroundingChunk("B", "https://b")]
        supports = [_support(5, 0), _support(5, 1)]
        first = merge_citations("Hello world", chunks, supports)
        second = merge_citations("Hello world", chunks, supports)
        self.assertEqual(first, second)
        self.assertTrue(first.startswith("Hello[2][1] world"))

    def test_multiple_chunk_indices_concatenate_markers(self) -> None:
        chunks = [GroundingChunk("A", "u1"), GroundingChunk("B", "u2"), GroundingChunk("C", "u3")]
        merged = merge_citations("Claim.", chunks, [_support(6, 2, 0)])
        self.assertTrue(merged.startswith("Claim.[3][1]\n\nSources:\n"))

    def test_empty_supports_still_list_sources(self) -> None:
        chunks = [GroundingChunk(None, None), GroundingChunk("Doc", "https://doc")]
        merged = merge_citations("Plain text.", chunks, [])
        self.assertEqual(
            merged,
            "Plain text.\n\nSources:\n[1] Untitled (No URI)\n[2] Doc (https://doc)",
        )

    def test_supports_without_segment_or_indices_are_skipped(self) -> None:
        supports = [
            GroundingSupport(segment=None, chunk_indices=(0,)),
            GroundingSupport(segment=Segment(0, 3), chunk_indices=()),
        ]
        self.assertEqual(build_insertions(supports), [])

    def test_out_of_range_offsets_are_clamped(self) -> None:
        insertions = [Insertion(100, "[1]"), Insertion(-4, "[2]"), Insertion(50, "[3]")]
        self.assertEqual(insert_markers("abc", insertions), "[2]abc[3][1]")

    def test_offsets_count_utf8_bytes(self) -> None:
        text = "Café au lait. Next."
        end_of_first = len("Café au lait.".encode("utf-8"))
        self.assertEqual(
            insert_markers(text, [Insertion(end_of_first, "[1]")]),
            "Café au lait.[1] Next.",
        )

    def test_offset_inside_multibyte_character_moves_forward(self) -> None:
        # "é" occupies bytes 3-4; offset 4 falls inside it
        self.assertEqual(insert_markers("Café!", [Insertion(4, "[1]")]), "Café[1]!")

    def test_merge_result_uses_result_fields(self) -> None:
        result = SearchResult(
            text="Paris is the capital.",
            chunks=(GroundingChunk("Wiki", "https://wiki.example"),),
            supports=(_support(21, 0),),
        )
        self.assertEqual(
            merge_result(result),
            merge_citations(result.text, result.chunks, result.supports),
        )


if __name__ == "__main__":
    unittest.main()
