from __future__ import annotations

import asyncio
import logging

from reader_service.analysis.analyzer import DocumentAnalyzer
from reader_service.capabilities import ImageClassifier, Rasterizer
from reader_service.config import READER_IMAGE_MAX_LABELS, READER_IMAGE_SCALE
from reader_service.ingestion.extractors.base import PdfOpener, open_pdf, page_has_image
from reader_service.ingestion.types import ContentRef
from reader_service.models import DocLanguage, PageImage

logger = logging.getLogger(__name__)


class PageImageExtractor:
    """
    Text notes for pages that embed images.

    Each such page is rendered, labelled by the classifier and turned into a
    one-line description. Only the description is kept, never the image.
    """

    def __init__(
        self,
        *,
        rasterizer: Rasterizer,
        classifier: ImageClassifier | None,
        analyzer: DocumentAnalyzer,
        scale: float = READER_IMAGE_SCALE,
        max_labels: int = READER_IMAGE_MAX_LABELS,
        open_document: PdfOpener = open_pdf,
    ) -> None:
        self._rasterizer = rasterizer
        self._classifier = classifier
        self._analyzer = analyzer
        self._scale = scale
        self._max_labels = max_labels
        self._open = open_document

    async def extract_images(self, ref: ContentRef, language: DocLanguage) -> list[PageImage]:
        async with ref.access():
            data = ref.read_bytes()
            try:
                pages = await asyncio.to_thread(self._image_pages, data)
            except Exception as e:
                logger.warning("Could not open %s for image notes: %s", ref.name, e)
                return []

            results: list[PageImage] = []
            for page_index in pages:
                try:
                    image = await asyncio.to_thread(self._rasterizer.render, data, page_index, self._scale)
                except Exception as e:
                    logger.warning("Skipping page %d of %s: render failed: %s", page_index + 1, ref.name, e)
                    continue
                if not image:
                    continue

                labels = await self._labels(image)
                description = await self._analyzer.interpret_image_description(
                    labels, language, page_index, 0
                )
                results.append(
                    PageImage(page_index=page_index, image_index=0, labels=tuple(labels), description=description)
                )

        logger.info("Described %d image page(s) in %s", len(results), ref.name)
        return results

    def _image_pages(self, data: bytes) -> list[int]:
        reader = self._open(data)
        out: list[int] = []
        for index, page in enumerate(reader.pages):
            try:
                if page_has_image(page):
                    out.append(index)
            except Exception as e:
                logger.debug("Could not inspect resources of page %d: %s", index + 1, e)
        return out

    async def _labels(self, image: bytes) -> list[str]:
        if self._classifier is None:
            return []
        try:
            labels = await self._classifier.classify(image, self._max_labels)
        except Exception as e:
            logger.warning("Image classification failed: %s", e)
            return []
        return list(labels)[: self._max_labels]
