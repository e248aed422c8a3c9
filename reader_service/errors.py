"""Exception taxonomy for the reader service.

Extraction errors are terminal for a document and end up as its error
message, so their text is user-facing and page numbers are 1-based.
"""

from __future__ import annotations


class ReaderError(Exception):
    """Base exception for all reader-service errors."""


class ContentAccessError(ReaderError):
    """Raised when document bytes are read outside an access scope or cannot be read."""


# -- Extraction ---------------------------------------------------------------


class ExtractionError(ReaderError):
    """Base class for failures that abort text extraction of a document."""


class DocumentOpenError(ExtractionError):
    def __init__(self, detail: str | None = None) -> None:
        message = "Could not open the document."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class _PageError(ExtractionError):
    template = "Page {page} failed."

    def __init__(self, page_index: int) -> None:
        self.page_index = page_index
        super().__init__(self.template.format(page=page_index + 1))


class PageMissingError(_PageError):
    template = "Could not read page {page}."


class PageRenderError(_PageError):
    template = "Could not render page {page}."


class RecognitionError(_PageError):
    template = "Text recognition failed on page {page}."


# -- Model capabilities -------------------------------------------------------


class LanguageModelError(ReaderError):
    """Raised by language-model adapters on any generation failure."""


class EmbeddingError(ReaderError):
    """Raised by embedding adapters when the provider call fails."""


class QuestionAnsweringError(ReaderError):
    """Raised to callers of question answering; never degraded silently."""
