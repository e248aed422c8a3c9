"""Dominant-language detection constrained to the supported document languages."""

from __future__ import annotations

import logging

from langdetect import DetectorFactory, detect
from langdetect.lang_detect_exception import LangDetectException

from reader_service.config import READER_OCR_LANGUAGES
from reader_service.models import DocLanguage

logger = logging.getLogger(__name__)

# Deterministic results across runs.
DetectorFactory.seed = 0

_OCR_TAGS = {DocLanguage.ES: "es-ES", DocLanguage.EN: "en-US"}


def map_language(code: str | None) -> DocLanguage:
    """Map an ISO 639-1 code onto the supported set; anything else is Spanish."""
    if not code:
        return DocLanguage.default()
    try:
        return DocLanguage(code.split("-", 1)[0].lower())
    except ValueError:
        return DocLanguage.default()


def detect_language(text: str) -> DocLanguage:
    sample = text.strip()
    if not sample:
        return DocLanguage.default()
    try:
        return map_language(detect(sample))
    except LangDetectException:
        logger.debug("Language detection found no features; defaulting to %s", DocLanguage.default().value)
        return DocLanguage.default()


def recognition_languages(language: DocLanguage) -> list[str]:
    """OCR language hints in priority order, the document language first."""
    first = _OCR_TAGS[language]
    return [first] + [tag for tag in READER_OCR_LANGUAGES if tag != first]


class LangdetectDetector:
    def detect(self, text: str) -> DocLanguage:
        return detect_language(text)
