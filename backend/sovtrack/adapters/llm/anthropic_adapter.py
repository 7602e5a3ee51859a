"""
Anthropic (Claude) Adapter
"""

from typing import Any, Dict, Optional, Tuple

import httpx

from sovtrack.config import get_settings
from .base import (
    AIProviderType,
    BaseAIAdapter,
    ProviderConfig,
    ProviderUsage,
)


class AnthropicAdapter(BaseAIAdapter):
    """Adapter for the Anthropic messages API"""

    API_BASE = "https://api.anthropic.com/v1"
    API_VERSION = "2023-06-01"

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[ProviderConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key or get_settings().ANTHROPIC_API_KEY, config, client)

    @property
    def provider(self) -> AIProviderType:
        return AIProviderType.ANTHROPIC

    @property
    def default_model(self) -> str:
        return get_settings().ANTHROPIC_DEFAULT_MODEL

    def _build_request(
        self,
        prompt_text: str,
        system_prompt: Optional[str],
        cfg: ProviderConfig,
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        payload = {
            "model": cfg.model,
            "messages": [{"role": "user", "content": prompt_text}],
            "temperature": cfg.temperature,
            "max_tokens": cfg.max_tokens,
            **cfg.extra_params,
        }
        if system_prompt:
            payload["system"] = system_prompt

        headers = {
            "x-api-key": self.api_key or "",
            "anthropic-version": self.API_VERSION,
            "Content-Type": "application/json",
        }
        return f"{self.API_BASE}/messages", headers, payload

    def _extract_text(self, data: Dict[str, Any]) -> str:
        # Content is a list of blocks; only text blocks carry the answer
        blocks = data["content"]
        return "".join(b.get("text", "") for b in blocks if b.get("type") == "text")

    def _extract_finish_reason(self, data: Dict[str, Any]) -> Optional[str]:
        return data.get("stop_reason")

    def _extract_usage(self, data: Dict[str, Any]) -> Optional[ProviderUsage]:
        usage = data.get("usage")
        if not usage:
            return None
        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)
        return ProviderUsage(
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )
