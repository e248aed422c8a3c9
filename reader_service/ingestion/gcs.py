from __future__ import annotations

from collections.abc import Iterable
from functools import lru_cache

from google.cloud import storage


def gs_uri(bucket: str, name: str) -> str:
    return f"gs://{bucket}/{name}"


def parse_gs_uri(uri: str) -> tuple[str, str]:
    """
    Split ``gs://bucket/path/to/object`` into ``(bucket, object_name)``.
    """
    if not uri.startswith("gs://"):
        raise ValueError(f"Not a gs:// URI: {uri}")
    bucket, _, name = uri[len("gs://") :].partition("/")
    if not bucket or not name:
        raise ValueError(f"gs:// URI must name a bucket and an object: {uri}")
    return bucket, name


@lru_cache(maxsize=1)
def get_storage_client() -> storage.Client:
    return storage.Client()


def list_pdf_uris(client: storage.Client, bucket: str, prefix: str) -> list[str]:
    """Expand a bucket prefix to the PDF objects beneath it, sorted by name."""
    out = [gs_uri(bucket, blob.name) for blob in list_objects(client, bucket, prefix) if blob.name.lower().endswith(".pdf")]
    out.sort()
    return out


def list_objects(client: storage.Client, bucket: str, prefix: str) -> Iterable[storage.Blob]:
    b = client.bucket(bucket)
    return client.list_blobs(b, prefix=prefix)


def download_bytes(client: storage.Client, bucket: str, name: str) -> bytes:
    b = client.bucket(bucket)
    blob = b.blob(name)
    return blob.download_as_bytes()
