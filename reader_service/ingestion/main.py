from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from collections.abc import Sequence

from reader_service.analysis.analyzer import DocumentAnalyzer
from reader_service.analysis.retriever import ContextRetriever
from reader_service.embedding import GeminiEmbedder
from reader_service.errors import QuestionAnsweringError
from reader_service.ingestion.cli import build_parser
from reader_service.ingestion.config import ReaderConfig
from reader_service.ingestion.extractors.images import PageImageExtractor
from reader_service.ingestion.extractors.pdf import PdfPageTextExtractor
from reader_service.ingestion.gcs import get_storage_client, list_pdf_uris
from reader_service.ingestion.ocr.document_ai import DocAIConfig, DocumentAIRecognizer
from reader_service.ingestion.rasterizer import PyMuPdfRasterizer
from reader_service.ingestion.types import ContentRef, ref_from_uri
from reader_service.language import LangdetectDetector
from reader_service.llm import GeminiImageClassifier, GeminiLanguageModel
from reader_service.logging_config import setup_logging
from reader_service.models import DocumentRecord, DocumentStatus
from reader_service.pipeline.orchestrator import DocumentLibrary
from reader_service.search.ranker import SemanticRanker
from reader_service.stores.content_cache import ContentCache

logger = logging.getLogger("reader_service.ingestion")


def build_library(cfg: ReaderConfig) -> DocumentLibrary:
    """Wire the concrete adapters into a ``DocumentLibrary``."""
    rasterizer = PyMuPdfRasterizer()
    recognizer = None
    if cfg.ocr_enabled:
        recognizer = DocumentAIRecognizer(
            cfg=DocAIConfig(
                project=cfg.docai_project or "",
                location=cfg.docai_location or "",
                processor_id=cfg.docai_processor_id or "",
            )
        )

    llm = GeminiLanguageModel()
    embedder = GeminiEmbedder()
    detector = LangdetectDetector()
    analyzer = DocumentAnalyzer(llm, ContextRetriever(embedder))

    return DocumentLibrary(
        extractor=PdfPageTextExtractor(rasterizer=rasterizer, recognizer=recognizer),
        analyzer=analyzer,
        cache=ContentCache(cfg.cache_dir),
        ranker=SemanticRanker(embedder, detector),
        detector=detector,
        image_extractor=PageImageExtractor(
            rasterizer=rasterizer,
            classifier=GeminiImageClassifier(),
            analyzer=analyzer,
        ),
        recognition_hints=cfg.recognition_languages,
        max_concurrent=cfg.max_concurrent_documents,
    )


def resolve_refs(targets: Sequence[str]) -> list[ContentRef]:
    """Turn CLI targets into refs, expanding ``gs://bucket/prefix/`` to its PDFs."""
    refs: list[ContentRef] = []
    for target in targets:
        if target.startswith("gs://") and target.endswith("/"):
            bucket, _, prefix = target[len("gs://") :].partition("/")
            uris = list_pdf_uris(get_storage_client(), bucket, prefix)
            if not uris:
                logger.warning("No PDFs under %s", target)
            refs.extend(ref_from_uri(u) for u in uris)
        else:
            refs.append(ref_from_uri(target))
    return refs


def _format_record(record: DocumentRecord) -> str:
    lines = [f"{record.title}  [{record.status.label}]{'  (cached)' if record.is_cached else ''}"]
    if record.error_message:
        lines.append(f"  error: {record.error_message}")
    if record.analysis:
        lines.append(f"  category: {record.analysis.category.value}")
        lines.append(f"  tags: {', '.join(record.analysis.tags)}")
        lines.extend(f"  | {line}" for line in record.analysis.summary.splitlines())
    for entry in record.qa_history:
        lines.append(f"  Q: {entry.question}")
        lines.append(f"  A: {entry.answer}")
    for image in record.images:
        lines.append(f"  * {image.description}")
    return "\n".join(lines)


async def _amain(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level.upper())

    cfg = ReaderConfig.from_env()
    if args.no_ocr:
        cfg = dataclasses.replace(cfg, ocr_enabled=False)
    if args.concurrency and args.concurrency > 0:
        cfg = dataclasses.replace(cfg, max_concurrent_documents=args.concurrency)
    cfg.validate()

    refs = resolve_refs(args.documents)
    if not refs:
        logger.warning("No documents to process. Exiting.")
        return 0

    library = build_library(cfg)
    if args.clear_cache:
        await library.clear_cache()

    library.import_documents(refs, force=bool(args.force))
    await library.wait_idle()

    finished = [r for r in library.items if r.status is DocumentStatus.DONE]
    if args.ask:
        for record in finished:
            try:
                await library.answer_question(record.id, args.ask)
            except QuestionAnsweringError as e:
                logger.error("Question failed for %s: %s", record.title, e)
    if args.images:
        for record in finished:
            await library.describe_images(record.id)

    if args.query is not None:
        library.set_query(args.query)
        await library.wait_idle()

    shown = library.filtered_items
    if args.json:
        print(json.dumps([r.to_dict() for r in shown], ensure_ascii=False, indent=2))
    else:
        for record in shown:
            print(_format_record(record))
            print()

    failed = sum(1 for r in library.items if r.status is DocumentStatus.ERROR)
    logger.info("DONE documents=%d failed=%d shown=%d", len(library.items), failed, len(shown))
    return 0 if failed == 0 else 2


def main() -> None:
    raise SystemExit(asyncio.run(_amain()))


if __name__ == "__main__":
    main()
