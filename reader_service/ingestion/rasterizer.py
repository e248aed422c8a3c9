from __future__ import annotations

import logging

import pymupdf

logger = logging.getLogger(__name__)


class PyMuPdfRasterizer:
    """Renders a single PDF page to PNG bytes with PyMuPDF."""

    def render(self, document: bytes, page_index: int, scale: float) -> bytes:
        if scale <= 0:
            raise ValueError("scale must be > 0")
        with pymupdf.open(stream=document, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
            page = doc.load_page(page_index)
            pix = page.get_pixmap(matrix=pymupdf.Matrix(scale, scale), alpha=False)
            png = pix.tobytes("png")
        logger.debug("Rendered page %d at %.1fx: %dx%d", page_index + 1, scale, pix.width, pix.height)
        return png
