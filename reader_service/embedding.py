"""Sentence embeddings via Gemini embedding models, one model per language.

- Languages without a configured model are "unsupported": ``embed`` returns
  ``None`` instead of raising, so callers can fall back to another language.
- Vectors are L2-normalized with numpy; a dimension mismatch fails loudly.
- Provider calls are blocking and run in the default executor with bounded
  retries and exponential backoff; final failures surface as ``EmbeddingError``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping, Sequence
from functools import lru_cache
from typing import cast

import numpy as np
from google import genai

from reader_service.config import (
    READER_EMBED_BATCH_SIZE,
    READER_EMBED_MAX_CONCURRENCY,
    READER_EMBED_MAX_RETRIES,
    READER_EMBED_RETRY_BASE_SECONDS,
    READER_EMBEDDING_DIM,
    READER_EMBEDDING_MODELS,
    READER_EMBEDDING_TASK_DOC,
    READER_EMBEDDING_TASK_QUERY,
    VERTEX_LOCATION,
    VERTEX_PROJECT,
)
from reader_service.errors import EmbeddingError
from reader_service.models import DocLanguage

logger = logging.getLogger(__name__)


def _is_gcp_environment() -> bool:
    """Detect if running on GCP (Cloud Run, GCE, etc.)."""
    return bool(os.getenv("K_SERVICE") or os.getenv("GOOGLE_APPLICATION_CREDENTIALS"))


@lru_cache(maxsize=1)
def _get_gemini_client() -> genai.Client:
    """Cached Gemini client with automatic credential detection."""
    if _is_gcp_environment():
        return genai.Client(
            vertexai=True, project=VERTEX_PROJECT, location=VERTEX_LOCATION
        )
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise ValueError(
            "GEMINI_API_KEY not set. Set it for local dev or run on GCP for ADC."
        )
    return genai.Client(api_key=api_key)


def _normalize(values: Sequence[float], *, model: str, position: int | None = None) -> list[float]:
    if len(values) != READER_EMBEDDING_DIM:
        where = f" at index {position}" if position is not None else ""
        raise ValueError(
            f"Embedding dimension mismatch{where}: got {len(values)}, expected {READER_EMBEDDING_DIM}. "
            f"Model {model} returned unexpected dimensions."
        )
    vec = np.array(values, dtype=np.float32)
    norm = np.linalg.norm(vec)
    if norm > 0:
        vec = vec / norm
    return cast(list[float], vec.tolist())


def get_embeddings_batch(
    texts: list[str], model: str, task_type: str = READER_EMBEDDING_TASK_DOC
) -> list[list[float]]:
    """Generate embeddings for multiple texts in a single API call.

    The Gemini API accepts a list of strings in ``contents`` and returns
    one embedding per input. Each embedding is validated for dimension
    and L2-normalized before returning.
    """
    client = _get_gemini_client()

    response = client.models.embed_content(
        model=model,
        contents=texts,
        config={"task_type": task_type, "output_dimensionality": READER_EMBEDDING_DIM},
    )

    if response.embeddings is None:
        raise RuntimeError("Batch embedding response was empty")
    if len(response.embeddings) != len(texts):
        raise ValueError(
            f"Batch embedding count mismatch: got {len(response.embeddings)}, expected {len(texts)}"
        )

    results: list[list[float]] = []
    for i, emb_obj in enumerate(response.embeddings):
        if emb_obj.values is None:
            raise RuntimeError(f"Embedding values were None for item {i}")
        results.append(_normalize(emb_obj.values, model=model, position=i))
    return results


async def _embed_batch_with_retries(
    texts: list[str], model: str, task_type: str
) -> list[list[float]]:
    """Run blocking batch embedding call in executor with bounded retries."""
    loop = asyncio.get_running_loop()
    retries = max(0, READER_EMBED_MAX_RETRIES)

    for attempt in range(retries + 1):
        try:
            return await loop.run_in_executor(
                None, get_embeddings_batch, texts, model, task_type
            )
        except Exception as exc:
            if attempt >= retries:
                raise EmbeddingError(f"Embedding with {model} failed: {exc}") from exc
            backoff_seconds = READER_EMBED_RETRY_BASE_SECONDS * (2**attempt)
            logger.warning(
                "Embedding attempt %d/%d failed; retrying in %.2fs",
                attempt + 1,
                retries + 1,
                backoff_seconds,
            )
            await asyncio.sleep(backoff_seconds)

    raise RuntimeError("Unreachable embedding retry path")


class GeminiEmbedder:
    """Per-language Gemini embedder implementing the ``Embedder`` capability."""

    def __init__(self, models: Mapping[str, str] | None = None) -> None:
        self._models = dict(READER_EMBEDDING_MODELS if models is None else models)

    def model_for(self, language: DocLanguage) -> str | None:
        return self._models.get(language.value)

    def supports(self, language: DocLanguage) -> bool:
        return self.model_for(language) is not None

    async def embed(self, text: str, language: DocLanguage, *, query: bool = False) -> list[float] | None:
        model = self.model_for(language)
        if model is None:
            return None
        task_type = READER_EMBEDDING_TASK_QUERY if query else READER_EMBEDDING_TASK_DOC
        (vector,) = await _embed_batch_with_retries([text], model, task_type)
        return vector

    async def embed_many(self, texts: Sequence[str], language: DocLanguage) -> list[list[float]] | None:
        """Embed documents in batches with bounded concurrency, preserving order."""
        model = self.model_for(language)
        if model is None:
            return None
        if not texts:
            return []

        batch_size = max(1, READER_EMBED_BATCH_SIZE)
        items = list(texts)
        batches = [items[i : i + batch_size] for i in range(0, len(items), batch_size)]
        semaphore = asyncio.Semaphore(max(1, READER_EMBED_MAX_CONCURRENCY))

        async def _embed_batch(batch: list[str]) -> list[list[float]]:
            async with semaphore:
                return await _embed_batch_with_retries(batch, model, READER_EMBEDDING_TASK_DOC)

        batch_results = await asyncio.gather(*(_embed_batch(b) for b in batches))
        return [emb for batch_result in batch_results for emb in batch_result]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine over the shared prefix of both vectors; -1 when undefined."""
    count = min(len(a), len(b))
    if count == 0:
        return -1.0
    va = np.asarray(a[:count], dtype=np.float64)
    vb = np.asarray(b[:count], dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom <= 0:
        return -1.0
    return float(np.dot(va, vb) / denom)
