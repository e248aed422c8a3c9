from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from reader_service.errors import ContentAccessError
from reader_service.ingestion.gcs import download_bytes, get_storage_client, gs_uri, parse_gs_uri

if TYPE_CHECKING:
    from google.cloud import storage

logger = logging.getLogger(__name__)


class ContentRef(ABC):
    """Handle to a document's bytes.

    Bytes are only readable inside ``async with ref.access():``. Scopes nest
    (reference counted); the bytes are loaded once when the first scope opens
    and released when the last one exits, on every exit path.
    """

    def __init__(self) -> None:
        self._depth = 0
        self._data: bytes | None = None
        self._lock = asyncio.Lock()

    @property
    @abstractmethod
    def uri(self) -> str: ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Final path component, including the extension."""

    @property
    def title(self) -> str:
        return _title_from_name(self.name)

    @abstractmethod
    def _load(self) -> bytes:
        """Blocking read of the full content. Called off the event loop."""

    @property
    def is_open(self) -> bool:
        return self._depth > 0

    @asynccontextmanager
    async def access(self) -> AsyncIterator[ContentRef]:
        async with self._lock:
            if self._depth == 0:
                try:
                    self._data = await asyncio.to_thread(self._load)
                except Exception as exc:
                    raise ContentAccessError(f"Could not read {self.uri}: {exc}") from exc
            self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            if self._depth == 0:
                self._data = None

    def read_bytes(self) -> bytes:
        if self._data is None:
            raise ContentAccessError(f"{self.uri} was read outside an access scope")
        return self._data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.uri!r})"


class LocalFileRef(ContentRef):
    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path).expanduser()

    @property
    def uri(self) -> str:
        return str(self.path)

    @property
    def name(self) -> str:
        return self.path.name

    def _load(self) -> bytes:
        return self.path.read_bytes()


class GcsObjectRef(ContentRef):
    def __init__(
        self,
        bucket: str,
        object_name: str,
        *,
        client_factory: Callable[[], storage.Client] | None = None,
    ) -> None:
        super().__init__()
        self.bucket = bucket
        self.object_name = object_name
        self._client_factory = client_factory

    @property
    def uri(self) -> str:
        return gs_uri(self.bucket, self.object_name)

    @property
    def name(self) -> str:
        return PurePosixPath(self.object_name).name

    def _load(self) -> bytes:
        client = self._client_factory() if self._client_factory else get_storage_client()
        return download_bytes(client, self.bucket, self.object_name)


class MemoryRef(ContentRef):
    """In-memory content, used by tests and for already-downloaded payloads."""

    def __init__(self, data: bytes, name: str = "document.pdf") -> None:
        super().__init__()
        self._payload = data
        self._name = name

    @property
    def uri(self) -> str:
        return f"memory://{self._name}"

    @property
    def name(self) -> str:
        return self._name

    def _load(self) -> bytes:
        return self._payload


def ref_from_uri(uri: str) -> ContentRef:
    """Build a content reference from a local path or a ``gs://bucket/object`` URI."""
    if uri.startswith("gs://"):
        bucket, object_name = parse_gs_uri(uri)
        return GcsObjectRef(bucket, object_name)
    return LocalFileRef(uri)


def _title_from_name(name: str) -> str:
    base = name.split("/")[-1]
    if not base:
        return name
    stem = PurePosixPath(base).stem
    return stem or base
