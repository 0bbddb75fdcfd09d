"""Shared fakes and fixtures for the unit tests."""

import re
import zlib
from typing import Any

import chromadb
import pytest

from twindata.config import Settings
from twindata.services.document_store import DocumentStore, create_async_engine_from_path

TEST_DIMENSIONS = 64


class FakeEmbedder:
    """Deterministic bag-of-words embedder.

    Each word is hashed into one of ``dimensions`` buckets, so texts sharing
    words end up close to each other under cosine distance.
    """

    def __init__(self, dimensions: int = TEST_DIMENSIONS) -> None:
        self.dimensions = dimensions
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        vector = [0.01] * self.dimensions
        for word in re.findall(r"\w+", text.lower()):
            vector[zlib.crc32(word.encode("utf-8")) % self.dimensions] += 1.0
        return vector


class FakeChat:
    """Chat model returning canned responses and recording what it was sent."""

    def __init__(self, responses: list[str] | None = None, error: Exception | None = None) -> None:
        self.responses = list(responses or [])
        self.error = error
        self.calls: list[Any] = []

    async def complete(self, content: Any) -> str:
        self.calls.append(content)
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, embedding_dimensions=TEST_DIMENSIONS)


@pytest.fixture
def ephemeral_client() -> chromadb.ClientAPI:
    """Create an ephemeral ChromaDB client for testing."""
    return chromadb.EphemeralClient()


@pytest.fixture
def async_engine():
    """Create an in-memory async SQLite engine for testing."""
    return create_async_engine_from_path(":memory:")


@pytest.fixture
async def document_store(async_engine) -> DocumentStore:
    """Create a DocumentStore with initialized schema."""
    store = DocumentStore(engine=async_engine)
    await store.initialize_schema()
    return store


@pytest.fixture
def fake_chat() -> FakeChat:
    """Chat model with no canned responses; tests append what they need."""
    return FakeChat()
