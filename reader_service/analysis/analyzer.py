"""Structured document analysis, question answering and image notes.

Failure policy differs per operation:

- ``analyze`` never raises. Model failures degrade to a sentinel analysis so
  the document still reaches ``done``.
- ``answer_question`` raises ``QuestionAnsweringError`` so the caller sees the
  failure.
- ``interpret_image_description`` falls back to a fixed "not available" line.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from reader_service.analysis.retriever import ContextRetriever
from reader_service.capabilities import LanguageModel
from reader_service.chunking.chunker import chunk_paragraphs
from reader_service.config import READER_ANALYSIS_CHUNK_CHARS, READER_ANALYSIS_MAX_CHARS
from reader_service.errors import QuestionAnsweringError
from reader_service.models import Analysis, DocCategory, DocLanguage

logger = logging.getLogger(__name__)

ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "summary": {"type": "STRING", "description": "Summary in 5-7 lines"},
        "category": {
            "type": "STRING",
            "enum": DocCategory.labels(),
            "description": "Category must be one of: " + ", ".join(DocCategory.labels()),
        },
        "tags": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "3-8 tags in lowercase",
        },
    },
    "required": ["summary", "category", "tags"],
}

EMPTY_QUESTION = {
    DocLanguage.ES: "Pregunta vacia.",
    DocLanguage.EN: "Empty question.",
}


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def _analysis_prompt(text: str, language: DocLanguage) -> str:
    categories = ", ".join(DocCategory.labels())
    if language is DocLanguage.ES:
        return (
            "Analiza el siguiente documento y devuelve un resumen de 5-7 lineas, "
            f"una categoria (una de: {categories}) y entre 3 y 8 tags en minusculas.\n\n"
            f"{text}"
        )
    return (
        "Analyze the following document and return a 5-7 line summary, "
        f"a category (one of: {categories}) and 3-8 lowercase tags.\n\n"
        f"{text}"
    )


def _question_prompt(context: str, question: str, language: DocLanguage) -> str:
    if language is DocLanguage.ES:
        return (
            "Responde a la pregunta usando solo el contenido del documento.\n"
            "Si no esta en el texto, di que no se encuentra en el documento.\n\n"
            f"Documento:\n{context}\n\n"
            f"Pregunta:\n{question}"
        )
    return (
        "Answer the question using only the document content.\n"
        "If the answer is not in the text, say it is not found in the document.\n\n"
        f"Document:\n{context}\n\n"
        f"Question:\n{question}"
    )


def image_note_prefix(language: DocLanguage, page_index: int, image_index: int) -> str:
    if language is DocLanguage.ES:
        return f"Pagina {page_index + 1}, imagen {image_index + 1} interpretación:"
    return f"Page {page_index + 1}, image {image_index + 1} interpretation:"


def _image_prompt(labels: Sequence[str], language: DocLanguage, page_index: int, image_index: int) -> str:
    prefix = image_note_prefix(language, page_index, image_index)
    if language is DocLanguage.ES:
        if not labels:
            return (
                "No hay etiquetas detectadas. Devuelve exactamente en este formato:\n"
                f'"{prefix} No disponible."'
            )
        return (
            "Genera una descripcion breve y concreta de lo que muestra una imagen.\n"
            f"Etiquetas detectadas: {', '.join(labels)}.\n"
            "Devuelve exactamente en este formato:\n"
            f'"{prefix} <descripcion>"'
        )
    if not labels:
        return (
            "No labels detected. Return exactly in this format:\n"
            f'"{prefix} Not available."'
        )
    return (
        "Generate a concise description of what an image shows.\n"
        f"Detected labels: {', '.join(labels)}.\n"
        "Return exactly in this format:\n"
        f'"{prefix} <description>"'
    )


def image_note_unavailable(language: DocLanguage, page_index: int, image_index: int) -> str:
    tail = "No disponible." if language is DocLanguage.ES else "Not available."
    return f"{image_note_prefix(language, page_index, image_index)} {tail}"


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class DocumentAnalyzer:
    def __init__(
        self,
        llm: LanguageModel,
        retriever: ContextRetriever,
        *,
        max_single_chars: int = READER_ANALYSIS_MAX_CHARS,
        chunk_chars: int = READER_ANALYSIS_CHUNK_CHARS,
    ) -> None:
        self._llm = llm
        self._retriever = retriever
        self._max_single = max_single_chars
        self._chunk_chars = chunk_chars

    async def analyze(self, text: str, language: DocLanguage) -> Analysis:
        """Summary, category and tags for ``text``; never raises."""
        cleaned = text.strip()
        if not cleaned:
            return Analysis.no_content()
        if len(cleaned) <= self._max_single:
            return await self._analyze_single(cleaned, language)
        return await self._analyze_chunked(cleaned, language)

    async def _analyze_chunked(self, text: str, language: DocLanguage) -> Analysis:
        chunks = chunk_paragraphs(text, self._chunk_chars)
        logger.info("Analyzing %d chars in %d chunks", len(text), len(chunks))
        summaries: list[str] = []
        for chunk in chunks:
            partial = await self._analyze_single(chunk, language)
            summaries.append(partial.summary)
        return await self._analyze_single("\n".join(summaries), language)

    async def _analyze_single(self, text: str, language: DocLanguage) -> Analysis:
        try:
            data = await self._llm.generate_structured(_analysis_prompt(text, language), ANALYSIS_SCHEMA)
            tags = data.get("tags")
            return Analysis(
                summary=str(data.get("summary") or "").strip(),
                category=data.get("category"),
                tags=tags if isinstance(tags, list) else [],
            )
        except Exception:
            # Soft failure: analysis degrades to the sentinel, the pipeline continues.
            logger.warning("Analysis request failed; using sentinel analysis", exc_info=True)
            return Analysis.failed()

    async def answer_question(self, text: str, question: str, language: DocLanguage) -> str:
        cleaned = question.strip()
        if not cleaned:
            return EMPTY_QUESTION[language]

        context = await self._retriever.select(cleaned, text, language)
        try:
            answer = await self._llm.generate_text(_question_prompt(context, cleaned, language))
        except Exception as exc:
            # Hard failure: unlike analysis, the caller must see this.
            raise QuestionAnsweringError(f"Could not answer the question: {exc}") from exc
        return answer.strip()

    async def interpret_image_description(
        self,
        labels: Sequence[str],
        language: DocLanguage,
        page_index: int,
        image_index: int,
    ) -> str:
        prompt = _image_prompt(list(labels), language, page_index, image_index)
        try:
            return (await self._llm.generate_text(prompt)).strip()
        except Exception:
            logger.warning(
                "Image interpretation failed for page %d image %d",
                page_index + 1,
                image_index + 1,
                exc_info=True,
            )
            return image_note_unavailable(language, page_index, image_index)
