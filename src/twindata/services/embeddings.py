"""Text embeddings for the search indexes.

``OpenAIEmbedder`` calls the embeddings endpoint through ``AsyncOpenAI``.
Anything with the same ``embed`` coroutine can stand in for it, which is how
tests run without network access.
"""

from typing import Protocol

import structlog
from openai import AsyncOpenAI

from twindata.errors import EmbeddingError


class Embedder(Protocol):
    dimensions: int

    async def embed(self, text: str) -> list[float]: ...


class OpenAIEmbedder:
    """Generates fixed-size embeddings with an OpenAI embedding model."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
        max_chars: int = 8000,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self.dimensions = dimensions
        self._max_chars = max_chars
        self._logger = logger or structlog.get_logger(__name__)

    async def embed(self, text: str) -> list[float]:
        """Embed ``text``, truncated to the configured character limit.

        Raises:
            EmbeddingError: If the text is blank or the vector has the wrong size.
        """
        if not text or not text.strip():
            raise EmbeddingError("cannot embed empty text")
        if len(text) > self._max_chars:
            self._logger.debug("embedding_input_truncated", original_chars=len(text), max_chars=self._max_chars)
            text = text[: self._max_chars]

        response = await self._client.embeddings.create(
            model=self._model,
            input=text,
            dimensions=self.dimensions,
        )
        vector = list(response.data[0].embedding)
        if len(vector) != self.dimensions:
            raise EmbeddingError(f"expected {self.dimensions} dimensions, got {len(vector)}")
        self._logger.debug("embedding_generated", model=self._model, dimensions=len(vector))
        return vector


__all__ = ["Embedder", "OpenAIEmbedder"]
