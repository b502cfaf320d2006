"""Summarization and embedding providers."""

from .base import ProviderRegistry, get_registry

__all__ = ["ProviderRegistry", "get_registry"]
