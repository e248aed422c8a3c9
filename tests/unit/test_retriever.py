"""Unit tests for question-context selection."""

from __future__ import annotations

from reader_service.analysis.retriever import ContextRetriever, resolve_embedding_language
from reader_service.models import DocLanguage
from tests.fakes import FakeEmbedder

PARAGRAPHS = [
    "general intro text goes here ok.",
    "the rent is due monthly here.",
    "no pet allowed and rent rises.",
    "signatures and closing words.",
]
TEXT = "\n".join(PARAGRAPHS)
QUESTION = "rent pet?"


def _retriever(embedder, **kwargs) -> ContextRetriever:
    options = {"max_context_chars": 100, "chunk_chars": 40, "top_k": 2}
    options.update(kwargs)
    return ContextRetriever(embedder, **options)


class TestResolveLanguage:
    def test_requested_language_first(self):
        assert resolve_embedding_language(FakeEmbedder(), DocLanguage.ES) is DocLanguage.ES

    def test_falls_back_to_english(self):
        embedder = FakeEmbedder(languages=[DocLanguage.EN])
        assert resolve_embedding_language(embedder, DocLanguage.ES) is DocLanguage.EN

    def test_none_when_nothing_supported(self):
        assert resolve_embedding_language(FakeEmbedder(languages=[]), DocLanguage.ES) is None


class TestSelect:
    async def test_text_within_budget_is_verbatim(self):
        embedder = FakeEmbedder()
        assert await _retriever(embedder).select(QUESTION, "short text", DocLanguage.EN) == "short text"
        assert embedder.calls == []

    async def test_top_chunks_by_similarity(self):
        embedder = FakeEmbedder(keywords=["rent", "pet"])

        context = await _retriever(embedder).select(QUESTION, TEXT, DocLanguage.EN)

        assert context == PARAGRAPHS[2] + "\n---\n" + PARAGRAPHS[1]
        assert (QUESTION, DocLanguage.EN, True) in embedder.calls

    async def test_context_truncated_to_budget(self):
        embedder = FakeEmbedder(keywords=["rent", "pet"])
        context = await _retriever(embedder, top_k=4).select(QUESTION, TEXT, DocLanguage.EN)
        assert len(context) == 100
        assert context.startswith(PARAGRAPHS[2])

    async def test_fallback_language_model_is_used(self):
        embedder = FakeEmbedder(languages=[DocLanguage.EN], keywords=["rent", "pet"])
        await _retriever(embedder).select(QUESTION, TEXT, DocLanguage.ES)
        assert {lang for _, lang, _ in embedder.calls} == {DocLanguage.EN}

    async def test_prefix_without_embedder(self):
        assert await _retriever(None).select(QUESTION, TEXT, DocLanguage.EN) == TEXT[:100]

    async def test_prefix_without_any_model(self):
        embedder = FakeEmbedder(languages=[])
        assert await _retriever(embedder).select(QUESTION, TEXT, DocLanguage.ES) == TEXT[:100]

    async def test_prefix_on_embedding_error(self):
        embedder = FakeEmbedder(fail=True)
        assert await _retriever(embedder).select(QUESTION, TEXT, DocLanguage.EN) == TEXT[:100]

    async def test_prefix_when_question_has_no_vector(self):
        embedder = FakeEmbedder(none_on=[QUESTION])
        assert await _retriever(embedder).select(QUESTION, TEXT, DocLanguage.EN) == TEXT[:100]
