"""
Tests for AI provider adapters and the GEO factor evaluator

Provider HTTP calls go through httpx.MockTransport.
"""

import json

import httpx
import pytest

from sovtrack.adapters.content import FetchedPage, LLMFactorEvaluator
from sovtrack.adapters.llm import (
    AIProviderType, AnthropicAdapter, OpenAIAdapter, ProviderConfig, get_adapter,
)
from sovtrack.errors import (
    EmptyResponse, ProviderAuthError, ProviderError, ProviderRateLimited, ProviderTimeout,
)
from sovtrack.services import RUBRIC

from conftest import FakeAdapter


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _openai_body(text, finish_reason="stop"):
    return {
        "choices": [{"message": {"role": "assistant", "content": text}, "finish_reason": finish_reason}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 30, "total_tokens": 42},
    }


def _anthropic_body(text):
    return {
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 10, "output_tokens": 20},
    }


class TestOpenAIAdapter:
    """Chat completions wire format and error mapping"""

    @pytest.mark.asyncio
    async def test_successful_completion(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, json=_openai_body("Acme is the leader."))

        async with _client(handler) as client:
            adapter = OpenAIAdapter(api_key="sk-123", client=client)
            reply = await adapter.complete("Best tools?", timeout=5, system_prompt="Be brief")

        assert reply.text == "Acme is the leader."
        assert reply.provider == AIProviderType.OPENAI
        assert reply.finish_reason == "stop"
        assert reply.usage.total_tokens == 42
        assert seen["url"] == "https://api.openai.com/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-123"
        assert seen["payload"]["messages"] == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Best tools?"},
        ]

    @pytest.mark.asyncio
    async def test_config_overrides_model(self):
        seen = {}

        def handler(request):
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, json=_openai_body("ok"))

        async with _client(handler) as client:
            adapter = OpenAIAdapter(api_key="sk", client=client)
            reply = await adapter.complete("q", timeout=5, config=ProviderConfig(model="gpt-test", temperature=0.0))

        assert reply.model == "gpt-test"
        assert seen["payload"]["model"] == "gpt-test"
        assert seen["payload"]["temperature"] == 0.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, error", [
        (401, ProviderAuthError),
        (403, ProviderAuthError),
        (429, ProviderRateLimited),
        (500, ProviderError),
    ])
    async def test_status_mapping(self, status, error):
        async with _client(lambda request: httpx.Response(status, text="nope")) as client:
            adapter = OpenAIAdapter(api_key="sk", client=client)
            with pytest.raises(error) as exc_info:
                await adapter.complete("q", timeout=5)

        assert exc_info.value.details["status_code"] == status

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler) as client:
            adapter = OpenAIAdapter(api_key="sk", client=client)
            with pytest.raises(ProviderTimeout):
                await adapter.complete("q", timeout=0.5)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            adapter = OpenAIAdapter(api_key="sk", client=client)
            with pytest.raises(ProviderError):
                await adapter.complete("q", timeout=5)

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        async with _client(lambda request: httpx.Response(200, json={"unexpected": True})) as client:
            adapter = OpenAIAdapter(api_key="sk", client=client)
            with pytest.raises(ProviderError) as exc_info:
                await adapter.complete("q", timeout=5)

        assert "Malformed" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   \n", None])
    async def test_blank_answer_is_empty_response(self, text):
        async with _client(lambda request: httpx.Response(200, json=_openai_body(text))) as client:
            adapter = OpenAIAdapter(api_key="sk", client=client)
            with pytest.raises(EmptyResponse):
                await adapter.complete("q", timeout=5)


class TestAnthropicAdapter:
    """Messages API wire format"""

    @pytest.mark.asyncio
    async def test_successful_completion(self):
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, json=_anthropic_body("Foo and Acme both work."))

        async with _client(handler) as client:
            adapter = AnthropicAdapter(api_key="sk-ant", client=client)
            reply = await adapter.complete("Best tools?", timeout=5, system_prompt="Be brief")

        assert reply.text == "Foo and Acme both work."
        assert reply.provider == AIProviderType.ANTHROPIC
        assert reply.usage.total_tokens == 30
        assert reply.finish_reason == "end_turn"
        assert seen["headers"]["x-api-key"] == "sk-ant"
        assert seen["headers"]["anthropic-version"] == AnthropicAdapter.API_VERSION
        assert seen["payload"]["system"] == "Be brief"

    @pytest.mark.asyncio
    async def test_non_text_blocks_ignored(self):
        body = {"content": [{"type": "tool_use", "id": "t1"}, {"type": "text", "text": "Answer"}]}
        async with _client(lambda request: httpx.Response(200, json=body)) as client:
            reply = await AnthropicAdapter(api_key="k", client=client).complete("q", timeout=5)

        assert reply.text == "Answer"
        assert reply.usage is None

    @pytest.mark.asyncio
    async def test_only_non_text_blocks_is_empty(self):
        body = {"content": [{"type": "tool_use", "id": "t1"}]}
        async with _client(lambda request: httpx.Response(200, json=body)) as client:
            with pytest.raises(EmptyResponse):
                await AnthropicAdapter(api_key="k", client=client).complete("q", timeout=5)


class TestGetAdapter:
    def test_known_providers(self):
        assert isinstance(get_adapter("openai", api_key="k"), OpenAIAdapter)
        assert isinstance(get_adapter("anthropic", api_key="k"), AnthropicAdapter)

    def test_api_key_from_settings(self):
        assert get_adapter("openai").api_key == "sk-test"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            get_adapter("gemini")


class TestLLMFactorEvaluator:
    """Score parsing and prompt construction"""

    @pytest.fixture
    def page(self):
        return FetchedPage(url="https://acme.com/blog", text="Body text", title="Acme blog")

    def test_parse_json(self):
        evaluation = LLMFactorEvaluator(adapter=FakeAdapter()).parse(
            'Sure: {"score": 7.5, "note": " Clear headings "}'
        )
        assert evaluation.score == 7.5
        assert evaluation.note == "Clear headings"

    @pytest.mark.parametrize("reply, expected", [
        ("I would give this a 6 out of 10", 6.0),
        ("Rating: 7.5/10 on a 0-10 scale", 7.5),
        ("Score: 8 (headings could be clearer in 2 places)", 8.0),
        ("On a 0-10 scale I'd give it 7", 7.0),
    ])
    def test_parse_text_replies(self, reply, expected):
        evaluation = LLMFactorEvaluator(adapter=FakeAdapter()).parse(reply)
        assert evaluation.score == expected
        assert evaluation.note == ""

    def test_parse_without_number(self):
        with pytest.raises(ProviderError):
            LLMFactorEvaluator(adapter=FakeAdapter()).parse("Looks fine to me")

    @pytest.mark.asyncio
    async def test_evaluate_sends_factor_guidance(self, page):
        factor = RUBRIC[0]
        prompt_answer = '{"score": 9, "note": "Strong FAQ"}'

        class Capturing(FakeAdapter):
            async def complete(self, prompt_text, timeout, config=None, system_prompt=None):
                self.last = (prompt_text, config, system_prompt)
                return await super().complete(prompt_text, timeout, config, system_prompt)

        adapter = Capturing(default_answer=prompt_answer)
        evaluation = await LLMFactorEvaluator(adapter=adapter, timeout=3).evaluate(factor, page)

        prompt_text, config, system_prompt = adapter.last
        assert evaluation.score == 9.0
        assert evaluation.note == "Strong FAQ"
        assert factor.name in prompt_text
        assert factor.guidance in prompt_text
        assert "Body text" in prompt_text
        assert config.max_tokens == 200
        assert system_prompt == LLMFactorEvaluator.SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_provider_failure_propagates(self, page):
        adapter = FakeAdapter()
        adapter.fail_all = ProviderTimeout("slow")
        with pytest.raises(ProviderTimeout):
            await LLMFactorEvaluator(adapter=adapter).evaluate(RUBRIC[1], page)
