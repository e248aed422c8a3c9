"""Paragraph-aligned chunking for analysis and question-answering context.

Chunk boundaries fall only at line breaks: a paragraph is never split, so a
single paragraph longer than ``max_chars`` becomes a chunk of its own.
Joining the returned chunks with ``"\\n"`` reproduces the input.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

_PARAGRAPH_SEPARATOR = "\n"


def chunk_paragraphs(text: str, max_chars: int) -> list[str]:
    """Greedily pack consecutive paragraphs into chunks of at most ``max_chars``.

    Args:
        text: Full document text.
        max_chars: Upper bound on chunk length, in characters.

    Returns:
        List of chunks in document order; empty for empty input.
    """
    max_chars = _validate_max_chars(max_chars)
    if not text:
        return []

    chunks: list[str] = []
    current: list[str] = []
    current_len = 0

    for paragraph in text.split(_PARAGRAPH_SEPARATOR):
        if current and current_len + len(paragraph) + 1 > max_chars:
            chunks.append(_PARAGRAPH_SEPARATOR.join(current))
            current = []
            current_len = 0
        if current:
            current_len += 1
        current.append(paragraph)
        current_len += len(paragraph)

    if current:
        chunks.append(_PARAGRAPH_SEPARATOR.join(current))

    oversized = sum(1 for c in chunks if len(c) > max_chars)
    if oversized:
        logger.debug("%d chunk(s) exceed %d chars (single long paragraph)", oversized, max_chars)
    return chunks


def _validate_max_chars(max_chars: int) -> int:
    max_chars = int(max_chars)
    if max_chars <= 0:
        raise ValueError("max_chars must be > 0")
    return max_chars
