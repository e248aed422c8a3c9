"""Narrow contracts for the external capabilities the pipeline consumes.

Each protocol has one concrete adapter in the package (PyMuPDF, Document AI,
Gemini, langdetect); tests substitute in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from reader_service.models import DocLanguage


@runtime_checkable
class Rasterizer(Protocol):
    def render(self, document: bytes, page_index: int, scale: float) -> bytes:
        """Render one page to PNG bytes. Blocking; called off the event loop."""
        ...


@runtime_checkable
class TextRecognizer(Protocol):
    def recognize(self, image: bytes, language_hints: Sequence[str]) -> str:
        """OCR one page image, preferring the given languages. Blocking."""
        ...


@runtime_checkable
class ImageClassifier(Protocol):
    async def classify(self, image: bytes, max_labels: int) -> list[str]: ...


@runtime_checkable
class LanguageModel(Protocol):
    async def generate_text(self, prompt: str) -> str: ...

    async def generate_structured(self, prompt: str, schema: dict[str, Any]) -> dict[str, Any]: ...


@runtime_checkable
class Embedder(Protocol):
    def supports(self, language: DocLanguage) -> bool: ...

    async def embed(self, text: str, language: DocLanguage, *, query: bool = False) -> list[float] | None:
        """Return an L2-normalized vector, or ``None`` when the language has no model."""
        ...

    async def embed_many(
        self, texts: Sequence[str], language: DocLanguage
    ) -> list[list[float]] | None: ...


@runtime_checkable
class LanguageDetector(Protocol):
    def detect(self, text: str) -> DocLanguage: ...
