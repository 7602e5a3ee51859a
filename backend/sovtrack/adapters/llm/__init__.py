"""
AI Provider Adapters - Unified interface for the answer engines being tracked
"""

from typing import Optional

import httpx

from .base import (
    AIProviderType,
    BaseAIAdapter,
    ProviderConfig,
    ProviderReply,
    ProviderUsage,
)
from .openai_adapter import OpenAIAdapter
from .anthropic_adapter import AnthropicAdapter


def get_adapter(
    provider: str,
    api_key: Optional[str] = None,
    config: Optional[ProviderConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> BaseAIAdapter:
    """
    Factory function to get the appropriate provider adapter.

    Args:
        provider: One of "openai", "anthropic"
        api_key: Optional API key (uses settings if not provided)
        config: Optional generation configuration
        client: Optional shared httpx client

    Raises:
        ValueError: If provider is not supported
    """
    adapters = {
        "openai": OpenAIAdapter,
        "anthropic": AnthropicAdapter,
    }

    if provider not in adapters:
        raise ValueError(f"Unsupported provider: {provider}. Must be one of {list(adapters.keys())}")

    return adapters[provider](api_key=api_key, config=config, client=client)


__all__ = [
    "get_adapter",
    "AIProviderType",
    "BaseAIAdapter",
    "ProviderConfig",
    "ProviderReply",
    "ProviderUsage",
    "OpenAIAdapter",
    "AnthropicAdapter",
]
