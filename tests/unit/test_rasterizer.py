"""Unit tests for PyMuPDF page rendering."""

from __future__ import annotations

import pytest

from reader_service.ingestion.rasterizer import PyMuPdfRasterizer

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


class TestPyMuPdfRasterizer:
    def test_renders_png(self, multi_page_pdf_bytes):
        png = PyMuPdfRasterizer().render(multi_page_pdf_bytes, 1, 1.0)
        assert png.startswith(PNG_MAGIC)

    def test_scale_grows_output(self, multi_page_pdf_bytes):
        rasterizer = PyMuPdfRasterizer()
        small = rasterizer.render(multi_page_pdf_bytes, 0, 0.5)
        large = rasterizer.render(multi_page_pdf_bytes, 0, 2.0)
        assert len(large) > len(small)

    def test_bad_page_index(self, multi_page_pdf_bytes):
        with pytest.raises(Exception):
            PyMuPdfRasterizer().render(multi_page_pdf_bytes, 7, 1.0)

    def test_non_positive_scale(self, multi_page_pdf_bytes):
        with pytest.raises(ValueError, match="scale"):
            PyMuPdfRasterizer().render(multi_page_pdf_bytes, 0, 0)
