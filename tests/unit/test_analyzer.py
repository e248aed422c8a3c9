"""Unit tests for document analysis, question answering and image notes."""

from __future__ import annotations

import pytest

from reader_service.analysis.analyzer import ANALYSIS_SCHEMA, EMPTY_QUESTION, DocumentAnalyzer
from reader_service.analysis.retriever import ContextRetriever
from reader_service.errors import QuestionAnsweringError
from reader_service.models import Analysis, DocCategory, DocLanguage
from tests.fakes import FakeLanguageModel


def _analyzer(llm: FakeLanguageModel, **kwargs) -> DocumentAnalyzer:
    return DocumentAnalyzer(llm, ContextRetriever(None), **kwargs)


class TestAnalyze:
    async def test_blank_text_is_no_content_without_model_call(self, fake_llm):
        result = await _analyzer(fake_llm).analyze("  \n ", DocLanguage.ES)
        assert result == Analysis.no_content()
        assert fake_llm.calls == 0

    async def test_single_call_normalizes_output(self, fake_llm):
        result = await _analyzer(fake_llm).analyze("Informe trimestral de ventas.", DocLanguage.ES)

        assert result.summary == "A short summary."
        assert result.category is DocCategory.INFORME
        assert result.tags == ["report", "finance"]
        assert len(fake_llm.structured_prompts) == 1
        assert fake_llm.schemas[0] is ANALYSIS_SCHEMA
        assert fake_llm.structured_prompts[0].startswith("Analiza el siguiente documento")

    async def test_english_prompt(self, fake_llm):
        await _analyzer(fake_llm).analyze("Quarterly report.", DocLanguage.EN)
        assert fake_llm.structured_prompts[0].startswith("Analyze the following document")

    async def test_unknown_category_and_bad_tags(self):
        llm = FakeLanguageModel(structured={"summary": " s ", "category": "Carta", "tags": "x"})
        result = await _analyzer(llm).analyze("texto", DocLanguage.ES)
        assert result.category is DocCategory.OTROS
        assert result.tags == []
        assert result.summary == "s"

    async def test_model_failure_degrades_to_sentinel(self):
        llm = FakeLanguageModel(fail_structured=True)
        result = await _analyzer(llm).analyze("texto", DocLanguage.ES)
        assert result == Analysis.failed()
        assert result.category is DocCategory.OTROS

    async def test_long_text_summarizes_chunks_then_combines(self):
        calls: list[str] = []

        def respond(prompt: str) -> dict:
            calls.append(prompt)
            return {"summary": f"summary {len(calls)}", "category": "Apuntes", "tags": ["t"]}

        llm = FakeLanguageModel(structured=respond)
        text = "\n".join(ch * 25 for ch in "abcd")

        result = await _analyzer(llm, max_single_chars=50, chunk_chars=30).analyze(text, DocLanguage.EN)

        # Four paragraph chunks plus one combining call.
        assert len(calls) == 5
        assert calls[-1].endswith("summary 1\nsummary 2\nsummary 3\nsummary 4")
        assert result.summary == "summary 5"
        assert result.category is DocCategory.APUNTES


class TestAnswerQuestion:
    async def test_blank_question_returns_canned_message(self, fake_llm):
        analyzer = _analyzer(fake_llm)
        assert await analyzer.answer_question("texto", "   ", DocLanguage.ES) == EMPTY_QUESTION[DocLanguage.ES]
        assert await analyzer.answer_question("text", "", DocLanguage.EN) == "Empty question."
        assert fake_llm.calls == 0

    async def test_answer_is_trimmed_and_prompt_grounded(self, fake_llm):
        answer = await _analyzer(fake_llm).answer_question("El importe es 40 euros.", " ¿Importe? ", DocLanguage.ES)

        assert answer == "the answer"
        prompt = fake_llm.text_prompts[0]
        assert "Documento:\nEl importe es 40 euros." in prompt
        assert prompt.endswith("Pregunta:\n¿Importe?")

    async def test_model_failure_raises(self):
        llm = FakeLanguageModel(fail_text=True)
        with pytest.raises(QuestionAnsweringError):
            await _analyzer(llm).answer_question("text", "What?", DocLanguage.EN)


class TestImageDescription:
    async def test_labels_in_prompt(self):
        llm = FakeLanguageModel(text=" Page 2, image 1 interpretation: A bar chart. ")
        note = await _analyzer(llm).interpret_image_description(["chart", "bars"], DocLanguage.EN, 1, 0)

        assert note == "Page 2, image 1 interpretation: A bar chart."
        assert "Detected labels: chart, bars." in llm.text_prompts[0]

    async def test_no_labels_asks_for_not_available(self, fake_llm):
        await _analyzer(fake_llm).interpret_image_description([], DocLanguage.ES, 0, 0)
        assert '"Pagina 1, imagen 1 interpretación: No disponible."' in fake_llm.text_prompts[0]

    async def test_failure_falls_back(self):
        llm = FakeLanguageModel(fail_text=True)
        analyzer = _analyzer(llm)
        assert (
            await analyzer.interpret_image_description(["x"], DocLanguage.ES, 1, 0)
            == "Pagina 2, imagen 1 interpretación: No disponible."
        )
        assert (
            await analyzer.interpret_image_description(["x"], DocLanguage.EN, 0, 2)
            == "Page 1, image 3 interpretation: Not available."
        )
