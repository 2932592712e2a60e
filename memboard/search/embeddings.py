"""
Embed capability: Gemini embeddings with fixed output dimensionality.
The same embedder is used for chunk/archive writes and for query embedding.
"""

from typing import Protocol

from google import genai
from google.genai import types

from memboard.config import settings
from memboard.db import VECTOR_DIM
from memboard.errors import EmbeddingFailure


class Embedder(Protocol):
    """Anything that turns text into a VECTOR_DIM float vector."""

    async def embed(self, text: str) -> list[float]: ...


class GeminiEmbedder:
    """Embedder backed by the google-genai async client."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        dimensions: int = VECTOR_DIM,
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_API_KEY
        self.model = model or settings.EMBEDDING_MODEL
        self.dimensions = dimensions
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def embed(self, text: str) -> list[float]:
        """Embed a single string. Raises EmbeddingFailure on provider errors or empty output."""
        if not text or not text.strip():
            raise EmbeddingFailure("Cannot embed empty text")
        try:
            result = await self._get_client().aio.models.embed_content(
                model=self.model,
                contents=text,
                config=types.EmbedContentConfig(output_dimensionality=self.dimensions),
            )
        except Exception as e:
            raise EmbeddingFailure(f"Embedding request failed: {e}") from e
        if not result.embeddings or not result.embeddings[0].values:
            raise EmbeddingFailure("Empty embeddings from API")
        values = list(result.embeddings[0].values)
        if len(values) != self.dimensions:
            raise EmbeddingFailure(f"Expected {self.dimensions} dimensions, got {len(values)}")
        return values
