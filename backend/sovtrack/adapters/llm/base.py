"""
Base AI Provider Adapter
Every provider implements CallAIProvider(promptText, timeout) through this interface
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import httpx

from sovtrack.errors import (
    EmptyResponse,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimited,
    ProviderTimeout,
)


class AIProviderType(str, Enum):
    """Supported AI providers"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


@dataclass
class ProviderConfig:
    """Generation settings for a provider request"""
    model: str
    temperature: float = 0.7
    max_tokens: int = 1500
    extra_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderUsage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ProviderReply:
    """Successful provider answer"""
    text: str
    provider: AIProviderType
    model: str
    latency_ms: int
    usage: Optional[ProviderUsage] = None
    finish_reason: Optional[str] = None


class BaseAIAdapter(ABC):
    """
    Abstract base class for AI provider adapters.

    Subclasses describe the wire format (request building, text and usage
    extraction); the base class owns transport, timeout and error mapping so
    every provider fails with the same typed errors.
    """

    def __init__(
        self,
        api_key: Optional[str],
        config: Optional[ProviderConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.config = config
        # Optional shared client (tests inject one backed by MockTransport)
        self._client = client

    @property
    @abstractmethod
    def provider(self) -> AIProviderType:
        """Return the provider type"""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Return the default model for this provider"""

    @abstractmethod
    def _build_request(
        self,
        prompt_text: str,
        system_prompt: Optional[str],
        cfg: ProviderConfig,
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        """Return (url, headers, json payload)"""

    @abstractmethod
    def _extract_text(self, data: Dict[str, Any]) -> str:
        """Pull the answer text out of a decoded response body"""

    def _extract_usage(self, data: Dict[str, Any]) -> Optional[ProviderUsage]:
        return None

    def _extract_finish_reason(self, data: Dict[str, Any]) -> Optional[str]:
        return None

    def _effective_config(self, config: Optional[ProviderConfig]) -> ProviderConfig:
        return config or self.config or ProviderConfig(model=self.default_model)

    async def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any], timeout: float) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, headers=headers, timeout=timeout)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.post(url, json=payload, headers=headers)

    def _raise_for_status(self, response: httpx.Response) -> None:
        details = {"provider": self.provider.value, "status_code": response.status_code}
        if response.status_code in (401, 403):
            raise ProviderAuthError("Provider rejected API key", details)
        if response.status_code == 429:
            raise ProviderRateLimited("Provider rate limit exceeded", details)
        if response.status_code != 200:
            details["response"] = response.text[:500]
            raise ProviderError(f"Provider returned HTTP {response.status_code}", details)

    async def complete(
        self,
        prompt_text: str,
        timeout: float,
        config: Optional[ProviderConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> ProviderReply:
        """
        Send one prompt and return the answer text.

        Raises:
            ProviderTimeout: the call exceeded `timeout` seconds
            ProviderError: transport failure, non-2xx status or malformed body
            EmptyResponse: the provider answered with no usable text
        """
        cfg = self._effective_config(config)
        url, headers, payload = self._build_request(prompt_text, system_prompt, cfg)
        started = time.monotonic()

        try:
            response = await self._post(url, headers, payload, timeout)
        except httpx.TimeoutException:
            raise ProviderTimeout(
                f"Request timed out after {timeout}s",
                {"provider": self.provider.value},
            )
        except httpx.RequestError as e:
            raise ProviderError(
                f"Request failed: {e}",
                {"provider": self.provider.value},
            )

        latency_ms = int((time.monotonic() - started) * 1000)
        self._raise_for_status(response)

        try:
            data = response.json()
            text = self._extract_text(data)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(
                f"Malformed provider response: {e}",
                {"provider": self.provider.value, "response": response.text[:500]},
            )

        if not text or not text.strip():
            raise EmptyResponse(
                "Provider returned no text",
                {"provider": self.provider.value, "model": cfg.model},
            )

        return ProviderReply(
            text=text,
            provider=self.provider,
            model=cfg.model,
            latency_ms=latency_ms,
            usage=self._extract_usage(data),
            finish_reason=self._extract_finish_reason(data),
        )
