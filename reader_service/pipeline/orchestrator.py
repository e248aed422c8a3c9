"""Document library: per-document pipelines, cache use and the ranked view.

All record and ranked-view mutation happens here, on the event loop. Blocking
work (extraction, hashing, detection, file I/O) is pushed to threads by the
components, and progress arrives through each run's ``ProgressChannel``.

Pipeline per document::

    access(ref) -> cache hit?  -> done (cached)
                -> ocr -> extract (progress relayed) -> analyzing -> analyze
                -> done -> persist
                -> error (extraction failure)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Coroutine, Iterable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import Any, Literal

from reader_service.analysis.analyzer import DocumentAnalyzer
from reader_service.capabilities import LanguageDetector
from reader_service.config import READER_MAX_CONCURRENT_DOCUMENTS, READER_OCR_LANGUAGES
from reader_service.errors import QuestionAnsweringError
from reader_service.ingestion.extractors.images import PageImageExtractor
from reader_service.ingestion.extractors.pdf import PdfPageTextExtractor
from reader_service.ingestion.progress import ProgressChannel
from reader_service.ingestion.types import ContentRef
from reader_service.language import recognition_languages
from reader_service.logging_config import generate_run_id
from reader_service.models import (
    CacheEntry,
    DocLanguage,
    DocumentRecord,
    DocumentStatus,
    PageImage,
    QAEntry,
)
from reader_service.search.ranker import SemanticRanker
from reader_service.stores.content_cache import ContentCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LibraryEvent:
    kind: Literal["record", "ranking"]
    record: DocumentRecord | None = None


Listener = Callable[[LibraryEvent], None]


class DocumentLibrary:
    def __init__(
        self,
        *,
        extractor: PdfPageTextExtractor,
        analyzer: DocumentAnalyzer,
        cache: ContentCache,
        ranker: SemanticRanker,
        detector: LanguageDetector,
        image_extractor: PageImageExtractor | None = None,
        recognition_hints: Sequence[str] = READER_OCR_LANGUAGES,
        max_concurrent: int = READER_MAX_CONCURRENT_DOCUMENTS,
    ) -> None:
        self._extractor = extractor
        self._analyzer = analyzer
        self._cache = cache
        self._ranker = ranker
        self._detector = detector
        self._image_extractor = image_extractor
        self._hints = list(recognition_hints)
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent))

        self._records: list[DocumentRecord] = []  # newest first
        self._by_id: dict[str, DocumentRecord] = {}
        self._pipelines: dict[str, asyncio.Task[None]] = {}
        self._listeners: list[Listener] = []

        self._query = ""
        self._ranked_ids: list[str] = []
        self._search_task: asyncio.Task[None] | None = None
        self._search_generation = 0

    # -- Observable collection ------------------------------------------------

    @property
    def items(self) -> list[DocumentRecord]:
        return list(self._records)

    @property
    def query(self) -> str:
        return self._query

    @property
    def filtered_items(self) -> list[DocumentRecord]:
        """All items for a blank query, otherwise the current ranked view."""
        if not self._query.strip():
            return self.items
        return [self._by_id[i] for i in self._ranked_ids if i in self._by_id]

    def get(self, doc_id: str) -> DocumentRecord | None:
        return self._by_id.get(doc_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, event: LibraryEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Library listener failed on %s event", event.kind)

    def _update(self, record: DocumentRecord, **changes: Any) -> None:
        for key, value in changes.items():
            setattr(record, key, value)
        self._notify(LibraryEvent("record", record))

    def _require(self, doc_id: str) -> DocumentRecord:
        record = self._by_id.get(doc_id)
        if record is None:
            raise KeyError(f"Unknown document id: {doc_id}")
        return record

    # -- Import / reprocess / cache --------------------------------------------

    def import_documents(self, refs: Iterable[ContentRef], *, force: bool = False) -> list[str]:
        """Create a record per ref (newest first, status ``ocr``) and start its pipeline.

        ``force`` drops any cached entry first and skips the cache shortcut.
        """
        ids: list[str] = []
        for ref in refs:
            record = DocumentRecord(id=uuid.uuid4().hex, ref=ref, title=ref.title, status=DocumentStatus.OCR)
            self._records.insert(0, record)
            self._by_id[record.id] = record
            self._notify(LibraryEvent("record", record))
            self._spawn(record.id, self._process(record.id, force=force))
            ids.append(record.id)
        logger.info("Imported %d document(s)", len(ids))
        return ids

    def reprocess(self, doc_id: str) -> asyncio.Task[None]:
        """Cancel any running pipeline for ``doc_id``, drop its cache entry and rerun."""
        self._require(doc_id)
        previous = self._pipelines.get(doc_id)
        if previous is not None and not previous.done():
            previous.cancel()
        return self._spawn(doc_id, self._rerun(doc_id, previous))

    async def _rerun(self, doc_id: str, previous: asyncio.Task[None] | None) -> None:
        if previous is not None:
            # Let the cancelled run unwind (and release its scopes) first.
            await asyncio.wait({previous})
        await self._process(doc_id, force=True)

    async def clear_cache(self) -> int:
        removed = await self._cache.clear_all()
        for record in self._records:
            self._update(record, is_cached=False)
        logger.info("Cleared %d cache entr%s", removed, "y" if removed == 1 else "ies")
        return removed

    def _spawn(self, doc_id: str, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=f"pipeline:{doc_id}")
        self._pipelines[doc_id] = task
        task.add_done_callback(partial(self._forget_pipeline, doc_id))
        return task

    def _forget_pipeline(self, doc_id: str, task: asyncio.Task[None]) -> None:
        if self._pipelines.get(doc_id) is task:
            del self._pipelines[doc_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Pipeline for %s crashed", doc_id, exc_info=task.exception())

    async def wait_idle(self) -> None:
        """Wait until no pipeline or ranking computation is running."""
        while True:
            pending: set[asyncio.Task[None]] = {t for t in self._pipelines.values() if not t.done()}
            if self._search_task is not None and not self._search_task.done():
                pending.add(self._search_task)
            if not pending:
                return
            await asyncio.wait(pending)

    # -- Pipeline -----------------------------------------------------------------

    async def _process(self, doc_id: str, *, force: bool) -> None:
        async with self._semaphore:
            record = self._by_id.get(doc_id)
            if record is None:
                return
            run_id = generate_run_id()
            logger.info("Processing %s (run=%s force=%s)", record.title, run_id, force)
            try:
                async with record.ref.access():
                    if force:
                        await self._cache.invalidate(record.ref)
                    await self._run_pipeline(record, force=force, run_id=run_id)
            except asyncio.CancelledError:
                logger.info("Run %s for %s cancelled", run_id, record.title)
                raise
            except Exception as exc:
                # Content that cannot be opened at all ends like an extraction failure.
                logger.warning("Run %s for %s failed: %s", run_id, record.title, exc)
                self._update(record, status=DocumentStatus.ERROR, error_message=str(exc))
                self._refresh_search()

    async def _run_pipeline(self, record: DocumentRecord, *, force: bool, run_id: str) -> None:
        if not force:
            cached = await self._cache.load(record.ref)
            if cached is not None:
                self._update(
                    record,
                    text=cached.extracted_text,
                    analysis=cached.analysis,
                    status=DocumentStatus.DONE,
                    progress=1.0,
                    is_cached=True,
                    error_message=None,
                )
                logger.info("Run %s: cache hit for %s", run_id, record.title)
                self._refresh_search()
                return

        hints = await self._hints_for(record)
        self._update(
            record,
            status=DocumentStatus.OCR,
            progress=0.0,
            is_cached=False,
            text=None,
            analysis=None,
            error_message=None,
        )

        job = self._extractor.extract(record.ref, hints)
        relay = asyncio.create_task(self._relay_progress(record, job.progress))
        try:
            text = await job.result()
        except asyncio.CancelledError:
            job.cancel()
            relay.cancel()
            raise
        except Exception as exc:
            # Hard failure: extraction errors end the document in the error state.
            await relay
            logger.warning("Run %s: extraction failed for %s: %s", run_id, record.title, exc)
            self._update(record, status=DocumentStatus.ERROR, error_message=str(exc))
            self._refresh_search()
            return
        # The channel is closed once the job finishes; drain what is left.
        await relay

        self._update(record, status=DocumentStatus.ANALYZING, text=text)
        language = await asyncio.to_thread(self._detector.detect, text)
        # Soft failure: analyze() degrades to a sentinel instead of raising.
        analysis = await self._analyzer.analyze(text, language)
        self._update(record, analysis=analysis, status=DocumentStatus.DONE, progress=1.0)
        logger.info(
            "Run %s: %s done (lang=%s category=%s chars=%d)",
            run_id,
            record.title,
            language.value,
            analysis.category.value,
            len(text),
        )
        self._refresh_search()

        await self._cache.save(CacheEntry(extracted_text=text, analysis=analysis), record.ref)

    async def _relay_progress(self, record: DocumentRecord, channel: ProgressChannel) -> None:
        async for value in channel:
            if value > record.progress:
                self._update(record, progress=value)

    async def _hints_for(self, record: DocumentRecord) -> list[str]:
        # A rerun knows the language from the previous text; put it first.
        if record.text:
            language = await asyncio.to_thread(self._detector.detect, record.text)
            return recognition_languages(language)
        return list(self._hints)

    # -- Search -------------------------------------------------------------------

    def set_query(self, text: str) -> asyncio.Task[None] | None:
        """Store the query and recompute the ranked view; the latest call wins."""
        self._query = text
        if self._search_task is not None and not self._search_task.done():
            self._search_task.cancel()
        self._search_generation += 1
        generation = self._search_generation

        if not text.strip():
            self._search_task = None
            self._ranked_ids = [r.id for r in self._records]
            self._notify(LibraryEvent("ranking"))
            return None

        self._search_task = asyncio.create_task(
            self._search(text, list(self._records), generation),
            name=f"search:{generation}",
        )
        self._search_task.add_done_callback(self._log_search_failure)
        return self._search_task

    def _log_search_failure(self, task: asyncio.Task[None]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Ranking for %s failed", task.get_name(), exc_info=task.exception())

    async def _search(self, query: str, snapshot: list[DocumentRecord], generation: int) -> None:
        ranked = await self._ranker.rank(query, snapshot)
        if generation != self._search_generation:
            logger.debug("Discarding stale ranking (generation %d)", generation)
            return
        self._ranked_ids = [r.id for r in ranked]
        self._notify(LibraryEvent("ranking"))

    def _refresh_search(self) -> None:
        self.set_query(self._query)

    # -- Questions / images -------------------------------------------------------

    async def answer_question(self, doc_id: str, question: str) -> str:
        record = self._require(doc_id)
        if not record.text:
            raise QuestionAnsweringError(f"{record.title} has no extracted text yet.")
        language = await asyncio.to_thread(self._detector.detect, record.text)
        answer = await self._analyzer.answer_question(record.text, question, language)
        if question.strip():
            self._update(record, qa_history=[QAEntry(question.strip(), answer), *record.qa_history])
        return answer

    async def describe_images(self, doc_id: str) -> list[PageImage]:
        record = self._require(doc_id)
        if self._image_extractor is None:
            logger.warning("Image notes requested for %s but no image extractor is configured", record.title)
            return []
        if record.text:
            language = await asyncio.to_thread(self._detector.detect, record.text)
        else:
            language = DocLanguage.default()
        images = await self._image_extractor.extract_images(record.ref, language)
        self._update(record, images=images)
        return images
