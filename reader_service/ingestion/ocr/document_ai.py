from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from google.cloud import documentai_v1 as documentai

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocAIConfig:
    project: str
    location: str
    processor_id: str

    @property
    def processor_name(self) -> str:
        return f"projects/{self.project}/locations/{self.location}/processors/{self.processor_id}"

    @property
    def api_endpoint(self) -> str:
        return f"{self.location}-documentai.googleapis.com"


class DocumentAIRecognizer:
    """
    Page-image OCR through Document AI online processing.

    Document AI always runs its full recognition model, so there is no
    separate accurate mode to request; language hints are forwarded as OCR
    hints in priority order.
    """

    def __init__(self, *, cfg: DocAIConfig, client: Any | None = None) -> None:
        self._cfg = cfg
        if client is None:
            client = documentai.DocumentProcessorServiceClient(
                client_options={"api_endpoint": cfg.api_endpoint}
            )
        self._doc_client = client

    def recognize(self, image: bytes, language_hints: Sequence[str]) -> str:
        text, meta = self.ocr_online(content=image, mime_type="image/png", language_hints=language_hints)
        logger.debug("Document AI OCR returned %d chars (%s pages)", len(text), meta["pages"])
        return text

    def ocr_online(
        self,
        *,
        content: bytes,
        mime_type: str,
        language_hints: Sequence[str] = (),
    ) -> tuple[str, dict[str, Any]]:
        hints = [_hint_code(h) for h in language_hints]
        req = documentai.ProcessRequest(
            name=self._cfg.processor_name,
            raw_document=documentai.RawDocument(content=content, mime_type=mime_type),
            process_options=documentai.ProcessOptions(
                ocr_config=documentai.OcrConfig(
                    hints=documentai.OcrConfig.Hints(language_hints=hints),
                )
            ),
        )
        resp = self._doc_client.process_document(request=req)
        text = resp.document.text or ""
        meta = {
            "provider": "documentai",
            "mode": "online",
            "mime_type": mime_type,
            "language_hints": hints,
            "pages": len(resp.document.pages) if resp.document.pages else None,
        }
        return text.strip(), meta


def _hint_code(tag: str) -> str:
    # Document AI takes BCP-47 language codes; region subtags are dropped.
    return tag.split("-", 1)[0].lower()
