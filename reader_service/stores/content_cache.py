"""Content-addressed, best-effort cache of extracted text and analysis.

Entries are keyed by the SHA-256 of the document bytes, so identical files
under different names or locations share one entry. Every failure here is
logged and swallowed: a cache problem must never fail a pipeline.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from reader_service.config import READER_CACHE_DIR
from reader_service.ingestion.types import ContentRef
from reader_service.models import CacheEntry

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


def content_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class ContentCache:
    def __init__(self, directory: str | Path = READER_CACHE_DIR) -> None:
        self._dir = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._dir

    async def key_for(self, ref: ContentRef) -> str | None:
        """SHA-256 hex digest of the referenced bytes, computed off the event loop."""
        try:
            async with ref.access():
                data = ref.read_bytes()
                return await asyncio.to_thread(content_hash, data)
        except Exception:
            logger.warning("Could not hash %s for cache lookup", ref.uri, exc_info=True)
            return None

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}{_SUFFIX}"

    async def load(self, ref: ContentRef) -> CacheEntry | None:
        key = await self.key_for(ref)
        if key is None:
            return None
        path = self._path(key)
        try:
            raw = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None
        except OSError:
            logger.warning("Cache read failed for %s", path, exc_info=True)
            return None
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cache entry %s", path, exc_info=True)
            return None

    async def save(self, entry: CacheEntry, ref: ContentRef) -> None:
        key = await self.key_for(ref)
        if key is None:
            return
        payload = entry.model_dump_json().encode("utf-8")
        try:
            await asyncio.to_thread(self._write_atomic, self._path(key), payload)
        except OSError:
            logger.warning("Cache write failed for %s", ref.uri, exc_info=True)

    async def invalidate(self, ref: ContentRef) -> None:
        key = await self.key_for(ref)
        if key is None:
            return
        try:
            await asyncio.to_thread(self._path(key).unlink, missing_ok=True)
        except OSError:
            logger.warning("Cache invalidate failed for %s", ref.uri, exc_info=True)

    async def clear_all(self) -> int:
        """Remove every persisted entry; returns how many files were removed."""
        try:
            return await asyncio.to_thread(self._clear_sync)
        except OSError:
            logger.warning("Cache clear failed for %s", self._dir, exc_info=True)
            return 0

    def _clear_sync(self) -> int:
        if not self._dir.is_dir():
            return 0
        removed = 0
        for path in self._dir.glob(f"*{_SUFFIX}"):
            try:
                path.unlink(missing_ok=True)
                removed += 1
            except OSError:
                logger.warning("Could not remove cache entry %s", path, exc_info=True)
        return removed

    def _write_atomic(self, path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=_SUFFIX)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
