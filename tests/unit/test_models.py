"""Unit tests for domain models: category lookup, status labels, analysis normalization."""

from __future__ import annotations

import pytest

from reader_service.ingestion.types import MemoryRef
from reader_service.models import (
    Analysis,
    CacheEntry,
    DocCategory,
    DocLanguage,
    DocumentRecord,
    DocumentStatus,
)


class TestDocCategory:
    @pytest.mark.parametrize("raw", ["factura", "FACTURA ", "Factura", "  fAcTuRa\n"])
    def test_case_and_whitespace_insensitive(self, raw):
        assert DocCategory.from_label(raw) is DocCategory.FACTURA

    @pytest.mark.parametrize("raw", ["Resumen Ejecutivo", "", None, "Invoice"])
    def test_unknown_maps_to_fallback(self, raw):
        assert DocCategory.from_label(raw) is DocCategory.OTROS

    def test_cv_label(self):
        assert DocCategory.from_label("cv") is DocCategory.CV

    def test_labels_in_declared_order(self):
        assert DocCategory.labels() == ["Factura", "Contrato", "CV", "Apuntes", "Email", "Informe", "Otros"]


class TestDocumentStatus:
    def test_labels(self):
        assert [s.label for s in DocumentStatus] == ["Listo", "OCR", "Analizando", "Hecho", "Error"]

    def test_terminal_states(self):
        assert DocumentStatus.DONE.is_terminal
        assert DocumentStatus.ERROR.is_terminal
        assert not DocumentStatus.OCR.is_terminal


class TestAnalysis:
    def test_category_string_is_normalized(self):
        a = Analysis(summary="s", category=" contrato ", tags=[])
        assert a.category is DocCategory.CONTRATO

    def test_tags_trimmed_and_lowercased_in_order(self):
        a = Analysis(summary="s", tags=[" Beta", "ALPHA ", "  ", "gamma"])
        assert a.tags == ["beta", "alpha", "gamma"]

    def test_sentinels(self):
        assert Analysis.no_content() == Analysis(summary="no content", category=DocCategory.OTROS, tags=[])
        assert Analysis.failed() == Analysis(summary="analysis error", category=DocCategory.OTROS, tags=[])

    def test_frozen(self):
        a = Analysis(summary="s")
        with pytest.raises(Exception):
            a.summary = "changed"  # type: ignore[misc]


class TestCacheEntry:
    def test_json_round_trip_keeps_category(self):
        entry = CacheEntry(extracted_text="hola", analysis=Analysis(summary="s", category="Email", tags=["x"]))
        restored = CacheEntry.model_validate_json(entry.model_dump_json())
        assert restored == entry
        assert restored.analysis.category is DocCategory.EMAIL


class TestDocumentRecord:
    def test_to_dict(self):
        record = DocumentRecord(id="abc", ref=MemoryRef(b"x", "invoice.pdf"), title="invoice")
        d = record.to_dict()
        assert d["status"] == "idle"
        assert d["status_label"] == "Listo"
        assert d["analysis"] is None
        assert d["uri"] == "memory://invoice.pdf"

    def test_default_language(self):
        assert DocLanguage.default() is DocLanguage.ES
