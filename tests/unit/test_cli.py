"""Unit tests for the command-line entry point, its config and target expansion."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from reader_service.analysis.analyzer import DocumentAnalyzer
from reader_service.analysis.retriever import ContextRetriever
from reader_service.ingestion.cli import build_parser
from reader_service.ingestion.config import ReaderConfig
from reader_service.ingestion.extractors.pdf import PdfPageTextExtractor
from reader_service.ingestion.main import _amain, resolve_refs
from reader_service.ingestion.types import GcsObjectRef, LocalFileRef
from reader_service.pipeline.orchestrator import DocumentLibrary
from reader_service.search.ranker import SemanticRanker
from reader_service.stores.content_cache import ContentCache
from tests.fakes import (
    FakeDetector,
    FakeEmbedder,
    FakeLanguageModel,
    FakeRasterizer,
    FakeRecognizer,
    fake_open,
)


def _config(**overrides) -> ReaderConfig:
    values = {
        "cache_dir": Path("/tmp/cache"),
        "ocr_enabled": True,
        "docai_project": "proj",
        "docai_location": "us",
        "docai_processor_id": "pid",
        "recognition_languages": ("es-ES", "en-US"),
        "max_concurrent_documents": 2,
    }
    values.update(overrides)
    return ReaderConfig(**values)


def _fake_library(cache_dir) -> DocumentLibrary:
    embedder, detector = FakeEmbedder(), FakeDetector()
    return DocumentLibrary(
        extractor=PdfPageTextExtractor(
            rasterizer=FakeRasterizer(), recognizer=FakeRecognizer(), open_document=fake_open
        ),
        analyzer=DocumentAnalyzer(FakeLanguageModel(), ContextRetriever(embedder)),
        cache=ContentCache(cache_dir),
        ranker=SemanticRanker(embedder, detector),
        detector=detector,
    )


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["a.pdf"])
        assert args.documents == ["a.pdf"]
        assert args.query is None
        assert not args.force
        assert args.concurrency == 0

    def test_requires_a_document(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestReaderConfig:
    def test_from_env(self):
        env = {
            "READER_DOC_AI_PROJECT": "p",
            "READER_DOC_AI_LOCATION": "eu",
            "READER_DOC_AI_PROCESSOR_ID": "x",
        }
        with patch.dict("os.environ", env, clear=True):
            cfg = ReaderConfig.from_env()
        assert (cfg.docai_project, cfg.docai_location, cfg.docai_processor_id) == ("p", "eu", "x")

    def test_project_falls_back_to_gcp_project(self):
        with patch.dict("os.environ", {"GOOGLE_CLOUD_PROJECT": "gcp"}, clear=True):
            cfg = ReaderConfig.from_env()
        assert cfg.docai_project == "gcp"
        assert cfg.docai_location == "us"

    def test_ocr_enabled_without_processor_raises(self):
        with pytest.raises(ValueError, match="OCR enabled but missing DocAI config"):
            _config(docai_processor_id=None).validate()

    def test_ocr_disabled_needs_no_processor(self):
        _config(ocr_enabled=False, docai_project=None, docai_processor_id=None).validate()

    def test_bad_concurrency(self):
        with pytest.raises(ValueError, match="must be >= 1"):
            _config(max_concurrent_documents=0).validate()

    def test_empty_languages(self):
        with pytest.raises(ValueError, match="parsed as empty"):
            _config(recognition_languages=()).validate()

    def test_valid_config_passes(self):
        _config().validate()  # Should not raise


class TestResolveRefs:
    def test_local_and_object_targets(self, tmp_path):
        refs = resolve_refs([str(tmp_path / "a.pdf"), "gs://bkt/docs/b.pdf"])
        assert isinstance(refs[0], LocalFileRef)
        assert isinstance(refs[1], GcsObjectRef)
        assert refs[1].object_name == "docs/b.pdf"

    def test_prefix_expands_to_pdfs(self):
        client = MagicMock()
        with (
            patch("reader_service.ingestion.main.get_storage_client", return_value=client),
            patch(
                "reader_service.ingestion.main.list_pdf_uris",
                return_value=["gs://bkt/in/a.pdf", "gs://bkt/in/b.pdf"],
            ) as mock_list,
        ):
            refs = resolve_refs(["gs://bkt/in/"])

        mock_list.assert_called_once_with(client, "bkt", "in/")
        assert [r.uri for r in refs] == ["gs://bkt/in/a.pdf", "gs://bkt/in/b.pdf"]


class TestMain:
    async def _run(self, argv, cache_dir):
        library = _fake_library(cache_dir)
        with (
            patch("reader_service.ingestion.main.setup_logging"),
            patch("reader_service.ingestion.main.build_library", return_value=library),
        ):
            code = await _amain(argv)
        return code, library

    async def test_processes_and_prints_json(self, tmp_path, cache_dir, capsys):
        doc = tmp_path / "Factura marzo.pdf"
        doc.write_bytes(b"importe total 40 euros")

        code, _ = await self._run([str(doc), "--no-ocr", "--json", "--ask", "Total?"], cache_dir)

        assert code == 0
        (record,) = json.loads(capsys.readouterr().out)
        assert record["title"] == "Factura marzo"
        assert record["status"] == "done"
        assert record["analysis"]["category"] == "Informe"
        assert record["qa"] == [{"question": "Total?", "answer": "the answer"}]

    async def test_failed_document_exit_code(self, tmp_path, cache_dir, capsys):
        doc = tmp_path / "broken.pdf"
        doc.write_bytes(b"BROKEN")

        code, _ = await self._run([str(doc), "--no-ocr"], cache_dir)

        assert code == 2
        out = capsys.readouterr().out
        assert "broken  [Error]" in out
        assert "Could not open the document" in out

    async def test_second_run_uses_cache(self, tmp_path, cache_dir, capsys):
        doc = tmp_path / "notes.pdf"
        doc.write_bytes(b"apuntes de clase")
        await self._run([str(doc), "--no-ocr"], cache_dir)

        _, library = await self._run([str(doc), "--no-ocr"], cache_dir)
        assert library.items[0].is_cached

        _, library = await self._run([str(doc), "--no-ocr", "--force"], cache_dir)
        assert not library.items[0].is_cached
