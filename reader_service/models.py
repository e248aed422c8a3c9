"""Domain models for the reader service: records, analyses and cache entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from reader_service.ingestion.types import ContentRef

# -- Enumerations -------------------------------------------------------------


class DocumentStatus(str, Enum):
    IDLE = "idle"
    OCR = "ocr"
    ANALYZING = "analyzing"
    DONE = "done"
    ERROR = "error"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.DONE, DocumentStatus.ERROR)


_STATUS_LABELS = {
    DocumentStatus.IDLE: "Listo",
    DocumentStatus.OCR: "OCR",
    DocumentStatus.ANALYZING: "Analizando",
    DocumentStatus.DONE: "Hecho",
    DocumentStatus.ERROR: "Error",
}


class DocCategory(str, Enum):
    FACTURA = "Factura"
    CONTRATO = "Contrato"
    CV = "CV"
    APUNTES = "Apuntes"
    EMAIL = "Email"
    INFORME = "Informe"
    OTROS = "Otros"

    @classmethod
    def fallback(cls) -> DocCategory:
        return cls.OTROS

    @classmethod
    def from_label(cls, raw: str | None) -> DocCategory:
        """Map a free-form label onto the closed set; unknown labels give ``Otros``."""
        if not raw:
            return cls.OTROS
        return _CATEGORY_LOOKUP.get(raw.strip().lower(), cls.OTROS)

    @classmethod
    def labels(cls) -> list[str]:
        return [c.value for c in cls]


_CATEGORY_LOOKUP: dict[str, DocCategory] = {c.value.lower(): c for c in DocCategory}


class DocLanguage(str, Enum):
    ES = "es"
    EN = "en"

    @classmethod
    def default(cls) -> DocLanguage:
        return cls.ES


# -- Analysis / cache ---------------------------------------------------------

NO_CONTENT_SUMMARY = "no content"
ANALYSIS_ERROR_SUMMARY = "analysis error"


class Analysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: str
    category: DocCategory = DocCategory.OTROS
    tags: list[str] = Field(default_factory=list)

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: object) -> DocCategory:
        if isinstance(value, DocCategory):
            return value
        return DocCategory.from_label(str(value) if value is not None else None)

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: object) -> list[str]:
        if value is None:
            return []
        out: list[str] = []
        for tag in value:  # type: ignore[union-attr]
            cleaned = str(tag).strip().lower()
            if cleaned:
                out.append(cleaned)
        return out

    @classmethod
    def no_content(cls) -> Analysis:
        return cls(summary=NO_CONTENT_SUMMARY)

    @classmethod
    def failed(cls) -> Analysis:
        return cls(summary=ANALYSIS_ERROR_SUMMARY)


class CacheEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    extracted_text: str
    analysis: Analysis


# -- Records ------------------------------------------------------------------


@dataclass(frozen=True)
class QAEntry:
    question: str
    answer: str


@dataclass(frozen=True)
class PageImage:
    """Text-only note about one image found on a page; no image bytes are kept."""

    page_index: int
    image_index: int
    labels: tuple[str, ...]
    description: str


@dataclass
class DocumentRecord:
    id: str
    ref: ContentRef
    title: str
    status: DocumentStatus = DocumentStatus.IDLE
    progress: float = 0.0
    text: str | None = None
    analysis: Analysis | None = None
    error_message: str | None = None
    is_cached: bool = False
    qa_history: list[QAEntry] = field(default_factory=list)
    images: list[PageImage] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "uri": self.ref.uri,
            "status": self.status.value,
            "status_label": self.status.label,
            "progress": round(self.progress, 4),
            "is_cached": self.is_cached,
            "error": self.error_message,
            "analysis": self.analysis.model_dump(mode="json") if self.analysis else None,
            "text_chars": len(self.text) if self.text is not None else None,
            "qa": [{"question": q.question, "answer": q.answer} for q in self.qa_history],
            "images": [
                {"page": img.page_index + 1, "image": img.image_index + 1, "description": img.description}
                for img in self.images
            ],
        }


@dataclass(frozen=True)
class RankedResult:
    document: DocumentRecord
    score: float
    similarity: float
    fuzzy: float
