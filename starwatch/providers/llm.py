"""
Summarization providers using LLMs.

Each provider sends one repository description to a chat model and
parses the JSON reply into a SummaryResult.
"""

import os

import anthropic
import openai

from ..errors import ProviderError
from ..types import Item, SummaryResult
from .base import SUMMARY_SYSTEM_PROMPT, build_summary_prompt, get_registry, parse_summary_reply


class OpenAISummarizer:
    """
    Summarizer using an OpenAI-compatible chat completions API.

    Works against api.openai.com or any compatible endpoint (OpenRouter,
    vLLM, LM Studio) via ``base_url``.

    Requires: api_key parameter, LLM_API_KEY or OPENAI_API_KEY.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        api_key: str | None = None,
        temperature: float = 0.3,
        timeout: float = 60.0,
    ):
        key = api_key or os.environ.get("LLM_API_KEY") or os.environ.get("OPENAI_API_KEY")
        if not key:
            raise ValueError("LLM API key required. Set LLM_API_KEY or OPENAI_API_KEY")

        self.model = model
        self.temperature = temperature
        self._client = openai.OpenAI(
            api_key=key,
            base_url=base_url.rstrip("/") if base_url else None,
            timeout=timeout,
        )

    def summarize(self, item: Item) -> SummaryResult:
        """Summarize a repository. No JSON response mode: not every
        compatible model supports it, the system prompt asks for pure JSON."""
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": build_summary_prompt(item)},
                ],
                temperature=self.temperature,
            )
        except openai.OpenAIError as e:
            raise ProviderError(f"LLM call for {item.full_name}: {e}") from e

        if not response.choices:
            raise ProviderError(f"No choices returned for {item.full_name}")
        return parse_summary_reply(response.choices[0].message.content, item.full_name)


class AnthropicSummarizer:
    """
    Summarizer using Anthropic's Claude API.

    Requires: api_key parameter or ANTHROPIC_API_KEY.
    """

    def __init__(
        self,
        model: str = "claude-haiku-4-5-20251001",
        api_key: str | None = None,
        max_tokens: int = 400,
        base_url: str | None = None,
    ):
        key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not key:
            raise ValueError("Anthropic API key required. Set ANTHROPIC_API_KEY")

        self.model = model
        self.max_tokens = max_tokens
        self._client = anthropic.Anthropic(api_key=key, base_url=base_url)

    def summarize(self, item: Item) -> SummaryResult:
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SUMMARY_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_summary_prompt(item)}],
            )
        except anthropic.AnthropicError as e:
            raise ProviderError(f"LLM call for {item.full_name}: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return parse_summary_reply(text, item.full_name)


# Register providers
_registry = get_registry()
_registry.register_summarization("openai", OpenAISummarizer)
_registry.register_summarization("anthropic", AnthropicSummarizer)
