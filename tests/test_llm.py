"""
Unit tests for LLMService - request building and error wrapping.

A stub stands in for AsyncOpenAI (passed through ``client=``), so no
credentials or network are needed. Parameters come from the real
models.yaml through LLMRouter.

Run with: python -m pytest tests/test_llm.py -v
"""

import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from scenra.services.llm import LLMError, LLMService, RateLimitError, _is_rate_limit_error
from scenra.services.llm_router import LLMRouter

MESSAGES = [
    {"role": "system", "content": "You are the director."},
    {"role": "user", "content": "Pitch a 10 second opener"},
]


def _completion(content, finish_reason="stop"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason=finish_reason)],
        model="gpt-4o-2024-08-06",
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=30, total_tokens=42),
    )


def _chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class _Stream:
    """Async iterator over chunks, optionally failing after them."""

    def __init__(self, chunks, error=None):
        self.chunks = list(chunks)
        self.error = error

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.chunks:
            return self.chunks.pop(0)
        if self.error is not None:
            raise self.error
        raise StopAsyncIteration


class StubClient:
    """Records create() kwargs and answers with a canned result or error."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.requests = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **params):
        self.requests.append(params)
        if self.error is not None:
            raise self.error
        return self.result


class TestChatCompletion:

    def setup_method(self):
        for key in list(os.environ.keys()):
            if key.startswith('TEST_') and key.endswith('_MODEL'):
                del os.environ[key]
        self.router = LLMRouter()

    def _service(self, client):
        return LLMService(router=self.router, client=client)

    async def test_success(self):
        client = StubClient(result=_completion("Open on rain."))
        response = await self._service(client).chat_completion("director", MESSAGES)

        assert response["content"] == "Open on rain."
        assert response["usage"]["total_tokens"] == 42
        assert response["finish_reason"] == "stop"
        assert client.requests[0]["messages"] == MESSAGES
        assert client.requests[0]["model"] == self.router.get_model_for_agent("director")

    async def test_json_mode_reaches_response_format(self):
        client = StubClient(result=_completion('{"optimized_prompt": "x"}'))
        await self._service(client).chat_completion("synthesis", MESSAGES)

        assert client.requests[0]["response_format"] == {"type": "json_object"}

    async def test_persona_call_has_no_response_format(self):
        client = StubClient(result=_completion("Open on rain."))
        await self._service(client).chat_completion("director", MESSAGES)

        assert "response_format" not in client.requests[0]

    async def test_overrides_beat_router(self):
        client = StubClient(result=_completion("Open on rain."))
        await self._service(client).chat_completion("director", MESSAGES, max_tokens=50, temperature=None)

        params = client.requests[0]
        assert params["max_tokens"] == 50
        # None overrides are ignored
        assert params["temperature"] == 0.8

    async def test_rate_limit_wrapped(self):
        error = Exception("Error code: 429 rate limit")
        client = StubClient(error=error)

        with pytest.raises(RateLimitError) as exc_info:
            await self._service(client).chat_completion("editor", MESSAGES)

        assert exc_info.value.agent == "editor"
        assert exc_info.value.__cause__ is error

    async def test_generic_failure_wrapped(self):
        client = StubClient(error=ConnectionError("connection reset"))

        with pytest.raises(LLMError) as exc_info:
            await self._service(client).chat_completion("colorist", MESSAGES)

        assert not isinstance(exc_info.value, RateLimitError)
        assert exc_info.value.agent == "colorist"
        assert "ConnectionError" in str(exc_info.value)

    async def test_empty_content(self):
        client = StubClient(result=_completion("   "))

        with pytest.raises(LLMError, match="empty response"):
            await self._service(client).chat_completion("director", MESSAGES)

    async def test_no_choices(self):
        client = StubClient(result=SimpleNamespace(choices=[], model="gpt-4o", usage=None))

        with pytest.raises(LLMError, match="empty response"):
            await self._service(client).chat_completion("director", MESSAGES)


class TestStreamCompletion:

    def setup_method(self):
        self.router = LLMRouter()

    async def test_deltas_in_order(self):
        client = StubClient(result=_Stream([_chunk("Open "), _chunk(None), _chunk("on rain.")]))
        service = LLMService(router=self.router, client=client)

        deltas = [d async for d in service.stream_completion("director", MESSAGES)]

        assert deltas == ["Open ", "on rain."]
        assert client.requests[0]["stream"] is True

    async def test_mid_stream_failure_wrapped(self):
        client = StubClient(result=_Stream([_chunk("Open ")], error=RuntimeError("socket closed")))
        service = LLMService(router=self.router, client=client)

        received = []
        with pytest.raises(LLMError) as exc_info:
            async for delta in service.stream_completion("cinematographer", MESSAGES):
                received.append(delta)

        assert received == ["Open "]
        assert exc_info.value.agent == "cinematographer"

    async def test_stream_rate_limit(self):
        client = StubClient(error=Exception("Too Many Requests"))
        service = LLMService(router=self.router, client=client)

        with pytest.raises(RateLimitError):
            async for _ in service.stream_completion("director", MESSAGES):
                pass


class TestRateLimitDetection:

    def test_status_code(self):
        error = Exception("boom")
        error.status_code = 429
        assert _is_rate_limit_error(error)

    def test_type_name(self):
        class RateLimitExceeded(Exception):
            pass
        assert _is_rate_limit_error(RateLimitExceeded("slow down"))

    def test_quota_message(self):
        assert _is_rate_limit_error(Exception("insufficient_quota: check your plan"))

    def test_other_errors(self):
        assert not _is_rate_limit_error(ValueError("bad request: max_tokens too large"))
