"""Shared test fixtures for the reader-service test suite."""

from __future__ import annotations

import pytest

from tests.fakes import FakeDetector, FakeEmbedder, FakeLanguageModel


@pytest.fixture
def fake_llm() -> FakeLanguageModel:
    return FakeLanguageModel()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_detector() -> FakeDetector:
    return FakeDetector()


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"
