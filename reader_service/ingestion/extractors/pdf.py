from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from reader_service.capabilities import Rasterizer, TextRecognizer
from reader_service.config import READER_OCR_SCALE
from reader_service.errors import (
    DocumentOpenError,
    PageMissingError,
    PageRenderError,
    RecognitionError,
)
from reader_service.ingestion.extractors.base import PdfOpener, open_pdf
from reader_service.ingestion.progress import CancellationToken, ExtractionJob, ProgressChannel
from reader_service.ingestion.types import ContentRef

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


class PdfPageTextExtractor:
    """
    Page-by-page text extraction with streamed progress.

    Pages carrying an embedded text layer are used verbatim; the rest are
    rasterized and sent to OCR. Any page failure aborts the whole document.
    """

    def __init__(
        self,
        *,
        rasterizer: Rasterizer,
        recognizer: TextRecognizer | None,
        ocr_scale: float = READER_OCR_SCALE,
        open_document: PdfOpener = open_pdf,
    ) -> None:
        self._rasterizer = rasterizer
        self._recognizer = recognizer
        self._scale = ocr_scale
        self._open = open_document

    def extract(self, ref: ContentRef, language_hints: Sequence[str]) -> ExtractionJob:
        """Start extracting ``ref``; must be called from a running event loop."""
        channel = ProgressChannel()
        token = CancellationToken()
        task = asyncio.create_task(
            self._extract_pages(ref, list(language_hints), channel, token),
            name=f"extract:{ref.name}",
        )
        # Closes on success, failure and cancellation, even before the task starts.
        task.add_done_callback(lambda _: channel.close())
        return ExtractionJob(task=task, progress=channel, token=token)

    async def _extract_pages(
        self,
        ref: ContentRef,
        hints: list[str],
        channel: ProgressChannel,
        token: CancellationToken,
    ) -> str:
        async with ref.access():
            data = ref.read_bytes()
            try:
                reader = await asyncio.to_thread(self._open, data)
                page_count = len(reader.pages)
            except Exception as exc:
                raise DocumentOpenError(str(exc) or type(exc).__name__) from exc

            parts: list[str] = []
            ocr_pages = 0
            for index in range(page_count):
                token.raise_if_cancelled()
                text, used_ocr = await asyncio.to_thread(self._page_text, reader, data, index, hints)
                token.raise_if_cancelled()
                parts.append(text)
                ocr_pages += int(used_ocr)
                channel.emit((index + 1) / page_count)

        logger.info(
            "Extracted %s: pages=%d ocr_pages=%d chars=%d",
            ref.name,
            page_count,
            ocr_pages,
            sum(len(p) for p in parts),
        )
        return PAGE_SEPARATOR.join(parts)

    def _page_text(self, reader: Any, data: bytes, index: int, hints: list[str]) -> tuple[str, bool]:
        """Blocking: text for one page, plus whether OCR was used."""
        try:
            page = reader.pages[index]
        except Exception as exc:
            raise PageMissingError(index) from exc

        try:
            embedded = page.extract_text() or ""
        except Exception as e:
            logger.warning("PyPDF text extraction failed on page %d, falling back to OCR: %s", index + 1, e)
            embedded = ""
        if embedded.strip():
            return embedded, False

        if self._recognizer is None:
            logger.warning("Page %d has no text layer and OCR is disabled", index + 1)
            return "", False

        try:
            image = self._rasterizer.render(data, index, self._scale)
        except Exception as exc:
            raise PageRenderError(index) from exc
        if not image:
            raise PageRenderError(index)

        try:
            return self._recognizer.recognize(image, hints), True
        except Exception as exc:
            raise RecognitionError(index) from exc
