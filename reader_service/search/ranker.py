"""Hybrid semantic + fuzzy ranking of analyzed documents against a query.

A document is kept when either signal clears its threshold; its score is the
larger of the two. The fuzzy signal rescues near-miss spellings
("curiculum" for "curriculum") that embeddings may score low.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence

from reader_service.analysis.retriever import resolve_embedding_language
from reader_service.capabilities import Embedder, LanguageDetector
from reader_service.config import (
    READER_SEARCH_FUZZY_EARLY_EXIT,
    READER_SEARCH_MIN_FUZZY,
    READER_SEARCH_MIN_SIMILARITY,
    READER_SEARCH_MIN_TOKEN_CHARS,
)
from reader_service.embedding import cosine_similarity
from reader_service.errors import EmbeddingError
from reader_service.models import Analysis, DocumentRecord, RankedResult

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[^\W_]+")


# ---------------------------------------------------------------------------
# Lexical scoring
# ---------------------------------------------------------------------------


def tokenize(text: str, min_chars: int = READER_SEARCH_MIN_TOKEN_CHARS) -> list[str]:
    """Lowercase alphanumeric runs of at least ``min_chars`` characters."""
    return [t for t in _TOKEN_RE.findall(text.lower()) if len(t) >= min_chars]


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        curr = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            curr[j] = min(prev[j] + 1, curr[j - 1] + 1, prev[j - 1] + cost)
        prev = curr
    return prev[-1]


def normalized_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def fuzzy_score(
    query_tokens: Sequence[str],
    document_tokens: Sequence[str],
    *,
    early_exit: float = READER_SEARCH_FUZZY_EARLY_EXIT,
) -> float:
    """Mean over query tokens of the best normalized match; -1 if either side is empty."""
    if not query_tokens or not document_tokens:
        return -1.0
    total = 0.0
    for q in query_tokens:
        best = 0.0
        for d in document_tokens:
            best = max(best, normalized_similarity(q, d))
            if best > early_exit:
                break
        total += best
    return total / len(query_tokens)


def searchable_text(analysis: Analysis) -> str:
    return " ".join([analysis.summary, " ".join(analysis.tags), analysis.category.value])


# ---------------------------------------------------------------------------
# Ranker
# ---------------------------------------------------------------------------


class SemanticRanker:
    def __init__(
        self,
        embedder: Embedder,
        detector: LanguageDetector,
        *,
        min_similarity: float = READER_SEARCH_MIN_SIMILARITY,
        min_fuzzy: float = READER_SEARCH_MIN_FUZZY,
    ) -> None:
        self._embedder = embedder
        self._detector = detector
        self._min_similarity = min_similarity
        self._min_fuzzy = min_fuzzy

    async def rank(self, query: str, documents: Sequence[DocumentRecord]) -> list[DocumentRecord]:
        if not query.strip():
            return list(documents)
        return [r.document for r in await self.rank_with_scores(query, documents)]

    async def rank_with_scores(self, query: str, documents: Sequence[DocumentRecord]) -> list[RankedResult]:
        """Scored matches, best first; a blank query scores nothing and returns []."""
        trimmed = query.strip()
        if not trimmed:
            return []

        language = resolve_embedding_language(
            self._embedder, await asyncio.to_thread(self._detector.detect, trimmed)
        )
        if language is None:
            logger.info("No embedding model available for search")
            return []
        try:
            query_vec = await self._embedder.embed(trimmed, language, query=True)
        except EmbeddingError:
            logger.warning("Query embedding failed", exc_info=True)
            return []
        if not query_vec:
            return []

        query_tokens = tokenize(trimmed)
        results: list[RankedResult] = []
        for doc in documents:
            if doc.analysis is None:
                continue
            text = searchable_text(doc.analysis)
            try:
                doc_vec = await self._embedder.embed(text, language)
            except EmbeddingError:
                logger.warning("Skipping %s: embedding failed", doc.id, exc_info=True)
                continue
            if doc_vec is None:
                continue

            similarity = cosine_similarity(query_vec, doc_vec)
            fuzzy = fuzzy_score(query_tokens, tokenize(text))
            if similarity >= self._min_similarity or fuzzy >= self._min_fuzzy:
                results.append(
                    RankedResult(document=doc, score=max(similarity, fuzzy), similarity=similarity, fuzzy=fuzzy)
                )

        results.sort(key=lambda r: r.score, reverse=True)
        logger.debug("Query %r matched %d of %d documents", trimmed, len(results), len(documents))
        return results
