"""Paragraph/sentence chunking with word-level overlap"""
import re
from typing import List, Optional

from core.domain import ChunkOptions

_HORIZONTAL_WS = re.compile(r'[ \t\f\v\r]+')
_BLANK_LINES = re.compile(r'\n\s*\n')
_SENTENCE_END = re.compile(r'(?<=[.!?])\s+')


def normalize_text(text: str) -> str:
    """
    Collapse whitespace runs to single spaces and runs of blank lines to a
    single paragraph break, then trim.
    """
    lines = [_HORIZONTAL_WS.sub(' ', line).strip() for line in text.split('\n')]
    joined = '\n'.join(lines)
    return _BLANK_LINES.sub('\n\n', joined).strip()


def _collapse(text: str) -> str:
    return ' '.join(text.split())


def split_paragraphs(text: str) -> List[str]:
    paragraphs = (_collapse(p) for p in _BLANK_LINES.split(text))
    return [p for p in paragraphs if p]


def split_sentences(paragraph: str) -> List[str]:
    return [s for s in _SENTENCE_END.split(paragraph) if s]


class TextChunker:
    """
    Splits document text into overlapping passages.

    Paragraphs accumulate into a buffer until the next one would overflow
    `max_chunk_size`. A full buffer is emitted and the next one starts with
    the last `overlap` words of the emitted chunk. Buffers under
    `min_chunk_size` absorb the paragraph instead. Paragraphs longer than
    `max_chunk_size` are fed sentence by sentence; a single oversized
    sentence is kept whole.
    """

    def __init__(self, options: Optional[ChunkOptions] = None):
        self.options = options or ChunkOptions()

    def chunk(self, text: str) -> List[str]:
        opts = self.options
        clean = normalize_text(text)

        if len(clean) <= opts.max_chunk_size:
            sole = _collapse(clean)
            return [sole] if sole else []

        chunks: List[str] = []
        buffer = ""
        for paragraph in split_paragraphs(clean):
            if len(paragraph) > opts.max_chunk_size:
                for sentence in split_sentences(paragraph):
                    buffer = self._feed(buffer, sentence, chunks)
            else:
                buffer = self._feed(buffer, paragraph, chunks)

        if len(buffer) >= opts.min_chunk_size:
            chunks.append(buffer)

        return [c for c in chunks if c]

    def _feed(self, buffer: str, unit: str, chunks: List[str]) -> str:
        """Append `unit` to the buffer, emitting the buffer first if it would overflow."""
        candidate = f"{buffer} {unit}".strip()
        if len(candidate) <= self.options.max_chunk_size:
            return candidate

        if len(buffer) >= self.options.min_chunk_size:
            chunks.append(buffer)
            return f"{self._tail_words(buffer)} {unit}".strip()

        # Undersized buffer: force-append rather than emit a tiny chunk
        return candidate

    def _tail_words(self, chunk: str) -> str:
        if self.options.overlap <= 0:
            return ""
        return ' '.join(chunk.split()[-self.options.overlap:])


def chunk_text(text: str, options: Optional[ChunkOptions] = None) -> List[str]:
    """Convenience wrapper: chunk `text` with the given (or default) options."""
    return TextChunker(options).chunk(text)
