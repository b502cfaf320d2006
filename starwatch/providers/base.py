"""
Shared provider plumbing.

Holds the summarization prompt and reply parsing used by every LLM
summarizer, and the registry that turns ``[summarization]`` /
``[embedding]`` config sections into provider instances.
"""

import json

from ..errors import ProviderError
from ..protocol import EmbedderProtocol, SummarizerProtocol
from ..types import Item, SummaryResult


# -----------------------------------------------------------------------------
# Summarization
# -----------------------------------------------------------------------------

CATEGORIES = (
    "LLM Framework",
    "Vector Database",
    "ML Training",
    "NLP",
    "Computer Vision",
    "AI Agent",
    "RAG",
    "Model Serving",
    "Data Pipeline",
    "Developer Tool",
    "Library/SDK",
    "Research",
    "Observability",
    "Other",
)

SUMMARY_SYSTEM_PROMPT = f"""You are a technical analyst. Given a GitHub repository's name, description, and README excerpt, produce a JSON object with:

1. "summary": A 2-3 sentence summary of what the repo does, its main use case, and why it's notable.
2. "categories": An array of 1-3 categories from this list:
   {", ".join(CATEGORIES)}

Return ONLY valid JSON. No markdown, no code fences."""


def build_summary_prompt(item: Item) -> str:
    """Build the user message describing one repository."""
    parts = [f"Repository: {item.full_name}"]
    if item.description:
        parts.append(f"Description: {item.description}")
    if item.readme_excerpt:
        parts.append(f"README excerpt:\n{item.readme_excerpt}")
    return "\n\n".join(parts)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences that some models wrap around JSON."""
    text = text.strip()
    if text.startswith("```"):
        # Opening fence (```json or ```)
        newline = text.find("\n")
        if newline != -1:
            text = text[newline + 1:]
        closing = text.rfind("```")
        if closing != -1:
            text = text[:closing]
        text = text.strip()
    return text


def parse_summary_reply(content: str | None, full_name: str) -> SummaryResult:
    """
    Parse an LLM reply into a SummaryResult.

    Raises:
        ProviderError: If the reply is empty, not JSON, or the wrong shape
    """
    if not content:
        raise ProviderError(f"Empty LLM response for {full_name}")

    raw = strip_code_fences(content)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProviderError(f"Parsing LLM response for {full_name}: {e}\nraw: {raw[:500]}") from e

    if not isinstance(data, dict) or not isinstance(data.get("summary"), str):
        raise ProviderError(f"LLM response for {full_name} has no summary: {raw[:500]}")

    categories = data.get("categories") or []
    if not isinstance(categories, list) or not all(isinstance(c, str) for c in categories):
        raise ProviderError(f"LLM response for {full_name} has malformed categories: {raw[:500]}")

    return SummaryResult(summary=data["summary"].strip(), categories=categories)


# -----------------------------------------------------------------------------
# Provider Registry
# -----------------------------------------------------------------------------

class ProviderRegistry:
    """
    Registry for discovering and instantiating providers.

    Providers are registered by name and instantiated from configuration,
    so starwatch.toml can name a provider without code changes.

    Example:
        registry = get_registry()
        summarizer = registry.create_summarization("openai", {"model": "gpt-4o-mini"})
    """

    def __init__(self):
        self._embedding_providers: dict[str, type] = {}
        self._summarization_providers: dict[str, type] = {}
        self._loaded = False

    def _ensure_providers_loaded(self) -> None:
        """Import provider modules so they register themselves."""
        if self._loaded:
            return
        self._loaded = True
        from . import embeddings, llm  # noqa: F401

    def register_embedding(self, name: str, provider_class: type) -> None:
        """Register an embedding provider class."""
        self._embedding_providers[name] = provider_class

    def register_summarization(self, name: str, provider_class: type) -> None:
        """Register a summarization provider class."""
        self._summarization_providers[name] = provider_class

    @staticmethod
    def _create_provider(kind: str, name: str, providers: dict, params: dict | None):
        """Shared factory logic for all provider types."""
        if name not in providers:
            available = ", ".join(sorted(providers)) or "none"
            raise ValueError(
                f"Unknown {kind} provider: '{name}'. "
                f"Available providers: {available}."
            )
        try:
            return providers[name](**(params or {}))
        except (TypeError, ValueError) as e:
            raise RuntimeError(
                f"Failed to create {kind} provider '{name}': {e}"
            ) from e

    def create_summarization(self, name: str, params: dict | None = None) -> SummarizerProtocol:
        """Create a summarization provider instance."""
        self._ensure_providers_loaded()
        return self._create_provider("summarization", name, self._summarization_providers, params)

    def create_embedding(self, name: str, params: dict | None = None) -> EmbedderProtocol:
        """Create an embedding provider instance."""
        self._ensure_providers_loaded()
        return self._create_provider("embedding", name, self._embedding_providers, params)

    def list_summarization_providers(self) -> list[str]:
        self._ensure_providers_loaded()
        return sorted(self._summarization_providers)

    def list_embedding_providers(self) -> list[str]:
        self._ensure_providers_loaded()
        return sorted(self._embedding_providers)


# Global registry instance
# Concrete providers register themselves on import
_registry = ProviderRegistry()


def get_registry() -> ProviderRegistry:
    """Get the global provider registry."""
    return _registry
