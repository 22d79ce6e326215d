"""
Test suite for TextChunker.

Covers whitespace normalization, the short-text shortcut, paragraph
accumulation with word overlap, sentence-level fallback, and size bounds.
"""

import pytest

from core.domain import ChunkOptions
from infrastructure.text_chunker import TextChunker, chunk_text, normalize_text

from conftest import THREE_TOPIC_DOCUMENT


class TestNormalization:
    """Test suite for normalize_text()."""

    def test_should_collapse_spaces_and_blank_line_runs(self) -> None:
        # Act
        result = normalize_text("a \t b\n\n\n\nc   d\n")

        # Assert
        assert result == "a b\n\nc d"

    def test_should_trim_surrounding_whitespace(self) -> None:
        assert normalize_text("   \n  hello  \n\n ") == "hello"


class TestShortText:
    """Texts no longer than max_chunk_size come back as one chunk."""

    def test_short_text_should_be_single_collapsed_chunk(self) -> None:
        # Act
        chunks = chunk_text("  Hello   world \n\n again ")

        # Assert
        assert chunks == ["Hello world again"]

    def test_short_text_below_min_size_is_still_returned(self) -> None:
        chunks = chunk_text("tiny", ChunkOptions(max_chunk_size=512, overlap=50, min_chunk_size=100))

        assert chunks == ["tiny"]

    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t"])
    def test_empty_text_should_produce_no_chunks(self, text: str) -> None:
        assert chunk_text(text) == []


class TestMultiChunk:
    """Test suite for the paragraph/overlap path."""

    def test_three_topic_document_should_split_into_three_chunks(self) -> None:
        # Act
        chunks = chunk_text(THREE_TOPIC_DOCUMENT, ChunkOptions(512, 50, 100))

        # Assert
        assert len(chunks) == 3
        assert chunks[0].startswith("apple orchard harvest")
        assert "ocean tide sailing" in chunks[1]
        assert chunks[2].endswith("mountain glacier climbing")

    def test_consecutive_chunks_should_share_overlap_words(self) -> None:
        # Arrange
        overlap = 50

        # Act
        chunks = chunk_text(THREE_TOPIC_DOCUMENT, ChunkOptions(512, overlap, 100))

        # Assert
        for previous, current in zip(chunks, chunks[1:]):
            tail = " ".join(previous.split()[-overlap:])
            assert current.startswith(tail)

    def test_zero_overlap_should_start_chunk_with_next_paragraph(self) -> None:
        # Act
        chunks = chunk_text(THREE_TOPIC_DOCUMENT, ChunkOptions(512, 0, 100))

        # Assert
        assert chunks[1].startswith("ocean tide sailing")
        assert chunks[2].startswith("mountain glacier climbing")

    def test_chunks_should_meet_min_size_except_trailing(self) -> None:
        # Arrange
        options = ChunkOptions(512, 50, 100)

        # Act
        chunks = chunk_text(THREE_TOPIC_DOCUMENT, options)

        # Assert
        assert all(c for c in chunks)
        assert all(len(c) >= options.min_chunk_size for c in chunks[:-1])

    def test_chunk_content_should_have_collapsed_whitespace(self) -> None:
        chunks = chunk_text(THREE_TOPIC_DOCUMENT.replace(" ", "   "), ChunkOptions(512, 50, 100))

        assert all("  " not in c and "\n" not in c for c in chunks)

    def test_undersized_buffer_should_absorb_next_paragraph(self) -> None:
        # Arrange
        text = "one two\n\nalpha bravo charlie delta echo foxtrot golfer"
        options = ChunkOptions(max_chunk_size=50, overlap=2, min_chunk_size=40)

        # Act
        chunks = chunk_text(text, options)

        # Assert
        assert chunks == ["one two alpha bravo charlie delta echo foxtrot golfer"]

    def test_long_paragraph_should_split_at_sentence_boundaries(self) -> None:
        # Arrange
        text = "First sentence is here. Second sentence follows now. Third one closes it out."
        options = ChunkOptions(max_chunk_size=60, overlap=2, min_chunk_size=20)

        # Act
        chunks = chunk_text(text, options)

        # Assert
        assert chunks == [
            "First sentence is here. Second sentence follows now.",
            "follows now. Third one closes it out.",
        ]

    def test_oversized_sentence_should_be_kept_whole(self) -> None:
        # Arrange
        sentence = "word " * 20  # 100 characters, no sentence punctuation
        options = ChunkOptions(max_chunk_size=50, overlap=0, min_chunk_size=10)

        # Act
        chunks = chunk_text(sentence, options)

        # Assert
        assert chunks == [sentence.strip()]

    def test_chunking_should_be_deterministic(self) -> None:
        chunker = TextChunker(ChunkOptions(512, 50, 100))

        assert chunker.chunk(THREE_TOPIC_DOCUMENT) == chunker.chunk(THREE_TOPIC_DOCUMENT)
