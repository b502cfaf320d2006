"""
Embedding providers.

A provider embeds one request worth of texts and tags every vector with
the position of its input in that request. Chunking a large input list
into requests is the caller's job (see embedding_batch).
"""

import os

import openai
import requests

from ..errors import ProviderError
from ..types import DEFAULT_EMBEDDING_DIMENSION, IndexedEmbedding
from .base import get_registry


class OpenAIEmbedder:
    """
    Embedder using an OpenAI-compatible embeddings API.

    The API returns an ``index`` for each vector; it is passed through
    as-is rather than trusting response order.

    Requires: api_key parameter, EMBEDDING_API_KEY or OPENAI_API_KEY.
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
        api_key: str | None = None,
        dimensions: int | None = DEFAULT_EMBEDDING_DIMENSION,
        timeout: float = 120.0,
    ):
        key = api_key or os.environ.get("EMBEDDING_API_KEY") or os.environ.get("OPENAI_API_KEY")
        if not key:
            raise ValueError("Embedding API key required. Set EMBEDDING_API_KEY or OPENAI_API_KEY")

        self.model = model
        self._dimensions = dimensions
        self._client = openai.OpenAI(
            api_key=key,
            base_url=base_url.rstrip("/") if base_url else None,
            timeout=timeout,
        )

    @property
    def dimension(self) -> int:
        return self._dimensions or DEFAULT_EMBEDDING_DIMENSION

    def embed_batch(self, texts: list[str]) -> list[IndexedEmbedding]:
        if not texts:
            return []
        kwargs = {"model": self.model, "input": texts}
        if self._dimensions:
            kwargs["dimensions"] = self._dimensions
        try:
            response = self._client.embeddings.create(**kwargs)
        except openai.OpenAIError as e:
            raise ProviderError(f"Creating embeddings: {e}") from e

        return [IndexedEmbedding(index=d.index, vector=list(d.embedding)) for d in response.data]


class OllamaEmbedder:
    """
    Embedder using Ollama's local ``/api/embed`` endpoint.

    Ollama returns vectors in request order without indices, so indices
    are assigned by position.

    Respects OLLAMA_HOST env var (default: http://localhost:11434).
    """

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str | None = None,
        dimensions: int | None = DEFAULT_EMBEDDING_DIMENSION,
        api_key: str | None = None,
        timeout: float = 120.0,
    ):
        self.model = model
        self.base_url = (
            base_url or os.environ.get("OLLAMA_HOST") or "http://localhost:11434"
        ).rstrip("/")
        if not self.base_url.startswith(("http://", "https://")):
            self.base_url = f"http://{self.base_url}"
        self._dimensions = dimensions
        self.timeout = timeout

    @property
    def dimension(self) -> int:
        return self._dimensions or DEFAULT_EMBEDDING_DIMENSION

    def embed_batch(self, texts: list[str]) -> list[IndexedEmbedding]:
        if not texts:
            return []
        payload = {"model": self.model, "input": texts}
        if self._dimensions:
            payload["dimensions"] = self._dimensions
        try:
            response = requests.post(
                f"{self.base_url}/api/embed",
                json=payload,
                timeout=(10, self.timeout),  # (connect, read)
            )
        except requests.RequestException as e:
            raise ProviderError(
                f"Cannot reach Ollama at {self.base_url}. Is Ollama running? ({e})"
            ) from e

        if not response.ok:
            detail = response.text[:200] if response.text else ""
            raise ProviderError(
                f"Ollama embedding failed (model={self.model}): "
                f"HTTP {response.status_code} from {self.base_url}. {detail}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderError(f"Parsing Ollama response: {e}") from e

        vectors = (body.get("embeddings") if isinstance(body, dict) else None) or []
        if len(vectors) != len(texts):
            raise ProviderError(
                f"Ollama returned {len(vectors)} embeddings for {len(texts)} inputs"
            )
        return [IndexedEmbedding(index=i, vector=v) for i, v in enumerate(vectors)]


# Register providers
_registry = get_registry()
_registry.register_embedding("openai", OpenAIEmbedder)
_registry.register_embedding("ollama", OllamaEmbedder)
