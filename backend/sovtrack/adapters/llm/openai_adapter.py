"""
OpenAI (ChatGPT) Adapter
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


class OpenAIAdapter(BaseAIAdapter):
    """Adapter for the OpenAI chat completions API"""

    API_BASE = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[ProviderConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key or get_settings().OPENAI_API_KEY, config, client)

    @property
    def provider(self) -> AIProviderType:
        return AIProviderType.OPENAI

    @property
    def default_model(self) -> str:
        return get_settings().OPENAI_DEFAULT_MODEL

    def _build_request(
        self,
        prompt_text: str,
        system_prompt: Optional[str],
        cfg: ProviderConfig,
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt_text})

        payload = {
            "model": cfg.model,
            "messages": messages,
            "temperature": cfg.temperature,
            "max_tokens": cfg.max_tokens,
            **cfg.extra_params,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        return f"{self.API_BASE}/chat/completions", headers, payload

    def _extract_text(self, data: Dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"] or ""

    def _extract_finish_reason(self, data: Dict[str, Any]) -> Optional[str]:
        return data["choices"][0].get("finish_reason")

    def _extract_usage(self, data: Dict[str, Any]) -> Optional[ProviderUsage]:
        usage = data.get("usage")
        if not usage:
            return None
        return ProviderUsage(
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            total_tokens=usage.get("total_tokens", 0),
        )
