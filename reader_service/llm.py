"""Gemini-backed language model and image classifier adapters.

Every provider failure (transport, empty output, unparseable JSON) is raised
as ``LanguageModelError``; callers decide whether to degrade or propagate.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from google.genai import types

from reader_service.config import (
    READER_IMAGE_MAX_LABELS,
    READER_LLM_MAX_OUTPUT_TOKENS,
    READER_LLM_MODEL,
    READER_LLM_TEMPERATURE,
)
from reader_service.embedding import _get_gemini_client
from reader_service.errors import LanguageModelError

logger = logging.getLogger(__name__)

_LABELS_SCHEMA: dict[str, Any] = {"type": "ARRAY", "items": {"type": "STRING"}}


class GeminiLanguageModel:
    def __init__(
        self,
        *,
        model: str = READER_LLM_MODEL,
        temperature: float = READER_LLM_TEMPERATURE,
        max_output_tokens: int = READER_LLM_MAX_OUTPUT_TOKENS,
        client: Any | None = None,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._client = client

    def build_config(self, **extra: Any) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
            **extra,
        )

    async def generate_content(self, contents: Any, config: types.GenerateContentConfig) -> str:
        try:
            client = self._client or _get_gemini_client()
            response = await client.aio.models.generate_content(
                model=self._model,
                contents=contents,
                config=config,
            )
        except Exception as exc:
            raise LanguageModelError(f"{self._model} request failed: {exc}") from exc

        raw = (getattr(response, "text", "") or "").strip()
        if not raw:
            raise LanguageModelError(f"{self._model} returned an empty response")
        return raw

    async def generate_text(self, prompt: str) -> str:
        return await self.generate_content(prompt, self.build_config())

    async def generate_structured(self, prompt: str, schema: dict[str, Any]) -> dict[str, Any]:
        raw = await self.generate_content(
            prompt,
            self.build_config(response_mime_type="application/json", response_schema=schema),
        )
        data = parse_json_object(raw)
        if data is None:
            logger.warning("Structured output was not a JSON object: %.200s", raw)
            raise LanguageModelError("structured output was not a JSON object")
        return data


class GeminiImageClassifier:
    """Labels a rendered page image with a multimodal Gemini model."""

    def __init__(self, llm: GeminiLanguageModel | None = None) -> None:
        self._llm = llm or GeminiLanguageModel(temperature=0.0)

    async def classify(self, image: bytes, max_labels: int = READER_IMAGE_MAX_LABELS) -> list[str]:
        prompt = (
            f"List up to {max_labels} short labels for the main things this image shows, "
            "most prominent first. Return ONLY a JSON array of strings."
        )
        raw = await self._llm.generate_content(
            [types.Part.from_bytes(data=image, mime_type="image/png"), prompt],
            self._llm.build_config(response_mime_type="application/json", response_schema=_LABELS_SCHEMA),
        )
        try:
            labels = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise LanguageModelError("image labels were not valid JSON") from exc
        if not isinstance(labels, list):
            raise LanguageModelError("image labels were not a JSON array")
        cleaned = [str(label).strip() for label in labels if str(label).strip()]
        return cleaned[:max_labels]


def parse_json_object(raw: str) -> dict[str, Any] | None:
    """Parse model response as a JSON object with tolerant fallback."""
    try:
        obj = json.loads(raw)
        if isinstance(obj, dict):
            return obj
    except json.JSONDecodeError:
        pass

    # Models sometimes wrap the object in prose or a code fence.
    m = re.search(r"\{.*\}", raw, flags=re.DOTALL)
    if m:
        try:
            obj = json.loads(m.group(0))
            if isinstance(obj, dict):
                return obj
        except json.JSONDecodeError:
            pass
    return None
