from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from reader_service.config import (
    READER_CACHE_DIR,
    READER_MAX_CONCURRENT_DOCUMENTS,
    READER_OCR_ENABLED,
    READER_OCR_LANGUAGES,
)


@dataclass(frozen=True)
class ReaderConfig:
    # Cache
    cache_dir: Path

    # OCR / Document AI
    ocr_enabled: bool
    docai_project: str | None
    docai_location: str | None
    docai_processor_id: str | None
    recognition_languages: tuple[str, ...]

    # Concurrency
    max_concurrent_documents: int

    @classmethod
    def from_env(cls) -> ReaderConfig:
        return cls(
            cache_dir=READER_CACHE_DIR,
            ocr_enabled=READER_OCR_ENABLED,
            docai_project=os.getenv("READER_DOC_AI_PROJECT") or os.getenv("GOOGLE_CLOUD_PROJECT"),
            docai_location=os.getenv("READER_DOC_AI_LOCATION", "us"),
            docai_processor_id=os.getenv("READER_DOC_AI_PROCESSOR_ID"),
            recognition_languages=tuple(READER_OCR_LANGUAGES),
            max_concurrent_documents=READER_MAX_CONCURRENT_DOCUMENTS,
        )

    def validate(self) -> None:
        if self.ocr_enabled:
            missing = [
                k
                for k, v in {
                    "READER_DOC_AI_PROJECT": self.docai_project,
                    "READER_DOC_AI_LOCATION": self.docai_location,
                    "READER_DOC_AI_PROCESSOR_ID": self.docai_processor_id,
                }.items()
                if not v
            ]
            if missing:
                raise ValueError(f"OCR enabled but missing DocAI config: {', '.join(missing)}")

        if not self.recognition_languages:
            raise ValueError("READER_OCR_LANGUAGES was set but parsed as empty")
        if self.max_concurrent_documents < 1:
            raise ValueError("READER_MAX_CONCURRENT_DOCUMENTS must be >= 1")
