"""Budgeted context selection for question answering.

Long texts are split into paragraph chunks, ranked by cosine similarity to the
question, and the best few are joined. Whenever embeddings cannot be used the
plain text prefix is returned instead.
"""

from __future__ import annotations

import logging

from reader_service.capabilities import Embedder
from reader_service.chunking.chunker import chunk_paragraphs
from reader_service.config import (
    READER_EMBEDDING_FALLBACK_LANGUAGE,
    READER_QA_CHUNK_CHARS,
    READER_QA_CONTEXT_SEPARATOR,
    READER_QA_MAX_CONTEXT_CHARS,
    READER_QA_TOP_K,
)
from reader_service.embedding import cosine_similarity
from reader_service.errors import EmbeddingError
from reader_service.language import map_language
from reader_service.models import DocLanguage

logger = logging.getLogger(__name__)


def resolve_embedding_language(embedder: Embedder, language: DocLanguage) -> DocLanguage | None:
    """The language whose model to use: the requested one, else the fallback, else None."""
    if embedder.supports(language):
        return language
    fallback = map_language(READER_EMBEDDING_FALLBACK_LANGUAGE)
    if embedder.supports(fallback):
        return fallback
    return None


class ContextRetriever:
    def __init__(
        self,
        embedder: Embedder | None,
        *,
        max_context_chars: int = READER_QA_MAX_CONTEXT_CHARS,
        chunk_chars: int = READER_QA_CHUNK_CHARS,
        top_k: int = READER_QA_TOP_K,
        separator: str = READER_QA_CONTEXT_SEPARATOR,
    ) -> None:
        self._embedder = embedder
        self._budget = max_context_chars
        self._chunk_chars = chunk_chars
        self._top_k = max(1, top_k)
        self._separator = separator

    async def select(self, question: str, text: str, language: DocLanguage) -> str:
        if len(text) <= self._budget:
            return text

        prefix = text[: self._budget]
        if self._embedder is None:
            return prefix
        model_language = resolve_embedding_language(self._embedder, language)
        if model_language is None:
            logger.info("No embedding model for %s; using text prefix", language.value)
            return prefix

        chunks = chunk_paragraphs(text, self._chunk_chars)
        try:
            question_vec = await self._embedder.embed(question, model_language, query=True)
            chunk_vecs = await self._embedder.embed_many(chunks, model_language)
        except EmbeddingError:
            logger.warning("Context embedding failed; using text prefix", exc_info=True)
            return prefix
        if not question_vec or chunk_vecs is None:
            return prefix

        scored = [(cosine_similarity(question_vec, vec), i) for i, vec in enumerate(chunk_vecs)]
        # sorted() is stable: equal scores keep document order.
        top = sorted(scored, key=lambda pair: pair[0], reverse=True)[: self._top_k]
        context = self._separator.join(chunks[i] for _, i in top)
        logger.debug(
            "Selected chunks %s of %d for question context (%d chars)",
            [i for _, i in top],
            len(chunks),
            len(context),
        )
        return context[: self._budget]
