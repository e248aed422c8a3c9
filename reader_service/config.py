"""Environment-variable-driven configuration for the reader service.

Thresholds and model names live here as module constants; the runtime
wiring (cache location, OCR processor, concurrency) is assembled by
``reader_service.ingestion.config.ReaderConfig``.
"""

from __future__ import annotations

import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_map(name: str, default: str) -> dict[str, str]:
    """Parse ``key:value,key:value`` pairs."""
    out: dict[str, str] = {}
    for item in _env_csv(name, default):
        key, sep, value = item.partition(":")
        if sep and key.strip() and value.strip():
            out[key.strip().lower()] = value.strip()
    return out


# -- Analysis -----------------------------------------------------------------
READER_ANALYSIS_MAX_CHARS: int = int(os.getenv("READER_ANALYSIS_MAX_CHARS", "8000"))
READER_ANALYSIS_CHUNK_CHARS: int = int(os.getenv("READER_ANALYSIS_CHUNK_CHARS", "6000"))

# -- Question answering -------------------------------------------------------
READER_QA_MAX_CONTEXT_CHARS: int = int(os.getenv("READER_QA_MAX_CONTEXT_CHARS", "9000"))
READER_QA_CHUNK_CHARS: int = int(os.getenv("READER_QA_CHUNK_CHARS", "2500"))
READER_QA_TOP_K: int = int(os.getenv("READER_QA_TOP_K", "3"))
READER_QA_CONTEXT_SEPARATOR: str = "\n---\n"

# -- Search -------------------------------------------------------------------
READER_SEARCH_MIN_SIMILARITY: float = float(os.getenv("READER_SEARCH_MIN_SIMILARITY", "0.32"))
READER_SEARCH_MIN_FUZZY: float = float(os.getenv("READER_SEARCH_MIN_FUZZY", "0.82"))
READER_SEARCH_FUZZY_EARLY_EXIT: float = float(os.getenv("READER_SEARCH_FUZZY_EARLY_EXIT", "0.92"))
READER_SEARCH_MIN_TOKEN_CHARS: int = 3

# -- OCR / rendering ----------------------------------------------------------
READER_OCR_LANGUAGES: list[str] = _env_csv("READER_OCR_LANGUAGES", "es-ES,en-US")
READER_OCR_SCALE: float = float(os.getenv("READER_OCR_SCALE", "2.5"))
READER_IMAGE_SCALE: float = float(os.getenv("READER_IMAGE_SCALE", "1.5"))
READER_IMAGE_MAX_LABELS: int = int(os.getenv("READER_IMAGE_MAX_LABELS", "6"))

# -- Language model -----------------------------------------------------------
READER_LLM_MODEL: str = os.getenv("READER_LLM_MODEL", "gemini-2.5-flash")
READER_LLM_TEMPERATURE: float = float(os.getenv("READER_LLM_TEMPERATURE", "0.2"))
READER_LLM_MAX_OUTPUT_TOKENS: int = int(os.getenv("READER_LLM_MAX_OUTPUT_TOKENS", "2048"))

# -- Embedding ----------------------------------------------------------------
# Per-language embedding models; a language missing here is "unsupported".
READER_EMBEDDING_MODELS: dict[str, str] = _env_map(
    "READER_EMBEDDING_MODELS",
    "es:gemini-embedding-001,en:gemini-embedding-001",
)
READER_EMBEDDING_FALLBACK_LANGUAGE: str = os.getenv("READER_EMBEDDING_FALLBACK_LANGUAGE", "en")
READER_EMBEDDING_DIM: int = int(os.getenv("READER_EMBEDDING_DIM", "768"))
READER_EMBEDDING_TASK_DOC: str = "RETRIEVAL_DOCUMENT"
READER_EMBEDDING_TASK_QUERY: str = "RETRIEVAL_QUERY"
READER_EMBED_BATCH_SIZE: int = int(os.getenv("READER_EMBED_BATCH_SIZE", "100"))
READER_EMBED_MAX_CONCURRENCY: int = int(os.getenv("READER_EMBED_MAX_CONCURRENCY", "4"))
READER_EMBED_MAX_RETRIES: int = int(os.getenv("READER_EMBED_MAX_RETRIES", "2"))
READER_EMBED_RETRY_BASE_SECONDS: float = float(os.getenv("READER_EMBED_RETRY_BASE_SECONDS", "0.5"))

# -- Cache --------------------------------------------------------------------
READER_CACHE_DIR: Path = Path(
    os.getenv("READER_CACHE_DIR", str(Path.home() / ".cache" / "reader-service"))
).expanduser()

# -- Pipeline -----------------------------------------------------------------
READER_MAX_CONCURRENT_DOCUMENTS: int = int(os.getenv("READER_MAX_CONCURRENT_DOCUMENTS", "2"))
READER_OCR_ENABLED: bool = _env_bool("READER_OCR_ENABLED", True)

# -- GCP ----------------------------------------------------------------------
VERTEX_PROJECT: str = os.getenv("GOOGLE_CLOUD_PROJECT", "")
VERTEX_LOCATION: str = os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1")

