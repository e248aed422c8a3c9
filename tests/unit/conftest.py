"""Unit test conftest: real PDF fixtures generated in memory with fpdf2."""

from __future__ import annotations

import io

import pytest


@pytest.fixture
def multi_page_pdf_bytes() -> bytes:
    """Generate a 3-page PDF with one line of text per page."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.set_font("Helvetica", size=12)
    for i in range(1, 4):
        pdf.add_page()
        pdf.cell(text=f"Content on page {i}.")
    return bytes(pdf.output())


@pytest.fixture
def mixed_pdf_bytes() -> bytes:
    """Generate a 2-page PDF: page 1 has a text layer, page 2 is blank (scanned)."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.set_font("Helvetica", size=12)
    pdf.add_page()
    pdf.cell(text="Typed invoice header.")
    pdf.add_page()
    return bytes(pdf.output())


@pytest.fixture
def image_pdf_bytes() -> bytes:
    """Generate a 1-page PDF whose only content is an embedded PNG."""
    fpdf = pytest.importorskip("fpdf")
    pil_image = pytest.importorskip("PIL.Image")
    buf = io.BytesIO()
    pil_image.new("RGB", (16, 16), color=(200, 30, 30)).save(buf, format="PNG")
    buf.seek(0)

    pdf = fpdf.FPDF()
    pdf.add_page()
    pdf.image(buf, x=10, y=10, w=20)
    return bytes(pdf.output())
