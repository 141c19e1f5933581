"""
LLM Service - OpenAI chat completions client

Single entry point for every model call the roundtable makes. Model and
sampling parameters come from the LLMRouter (models.yaml), keyed by agent
name; callers only say which agent is speaking and what the messages are.

Every provider failure is re-raised as LLMError (RateLimitError for 429s),
chained to the original exception. There are no retries here; retry policy
belongs to the caller.

Usage:
    from scenra.services.llm import get_llm_service

    llm = get_llm_service()
    response = await llm.chat_completion(
        "director",
        messages=[{"role": "user", "content": "Pitch a 10 second opener"}],
    )
    print(response["content"])

    async for delta in llm.stream_completion("director", messages):
        print(delta, end="")
"""

import logging
import time
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from scenra.services.llm_router import LLMRouter, get_llm_router

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """An upstream model call failed (provider error, timeout, empty output)."""

    def __init__(self, message: str, agent: Optional[str] = None):
        super().__init__(message)
        self.agent = agent


class RateLimitError(LLMError):
    """The provider rejected the call with a rate limit / quota error."""


def _is_rate_limit_error(error: Exception) -> bool:
    """Detect if an exception is a rate limit (429) error from OpenAI."""
    error_str = str(error).lower()
    error_type = type(error).__name__.lower()

    if "ratelimit" in error_type or "toomanyrequests" in error_type:
        return True
    if getattr(error, "status_code", None) == 429:
        return True

    rate_limit_indicators = [
        "429",
        "rate limit",
        "rate_limit",
        "too many requests",
        "quota exceeded",
        "insufficient_quota",
        "requests per minute",
        "tokens per minute",
    ]

    return any(indicator in error_str for indicator in rate_limit_indicators)


def _preview_messages(messages: List[Dict[str, str]]) -> str:
    user_msg = next((m['content'] for m in reversed(messages) if m.get('role') == 'user'), "")
    return (user_msg or "")[:150].replace('\n', ' ')


class LLMService:
    """
    Async OpenAI client bound to the LLM router.

    The underlying AsyncOpenAI client is created on first use so the app can
    start (and report a clear error per request) without credentials.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        router: Optional[LLMRouter] = None,
        app_logger=None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.router = router or get_llm_router()
        self.app_logger = app_logger
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    def _build_params(self, agent: str, messages: List[Dict[str, str]], overrides: Dict[str, Any]) -> Dict[str, Any]:
        params = self.router.get_llm_kwargs(agent)
        params.update({k: v for k, v in overrides.items() if v is not None})
        params["messages"] = messages
        return params

    def _wrap_error(self, agent: str, error: Exception) -> LLMError:
        if _is_rate_limit_error(error):
            return RateLimitError(f"{agent}: rate limited by provider ({error})", agent=agent)
        return LLMError(f"{agent}: model call failed ({type(error).__name__}: {error})", agent=agent)

    def _record_call(self, model: str, usage: Any, started: float, status: str):
        if self.app_logger is None:
            return
        self.app_logger.llm_api_call(
            provider="openai",
            model=model,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            latency=time.monotonic() - started,
            status=status,
        )

    async def chat_completion(
        self,
        agent: str,
        messages: List[Dict[str, str]],
        **overrides,
    ) -> Dict[str, Any]:
        """
        Send one chat completion request for an agent.

        Args:
            agent: Agent name as configured in models.yaml
            messages: Chat messages ({"role", "content"})
            **overrides: Request parameters that beat the router's
                         (e.g. temperature=0.2, response_format=...)

        Returns:
            Dict with content, model, usage and finish_reason

        Raises:
            LLMError: provider failure or empty response
            RateLimitError: provider rate limit
        """
        params = self._build_params(agent, messages, overrides)
        started = time.monotonic()

        logger.info(f"🔷 LLM Request: agent={agent}, model={params['model']}")
        logger.debug(f"   💬 Context: {_preview_messages(messages)}...")

        try:
            response = await self.client.chat.completions.create(**params)
        except Exception as e:
            logger.error(f"❌ LLM call failed for {agent}: {e}")
            self._record_call(params["model"], None, started, "error")
            raise self._wrap_error(agent, e) from e

        choice = response.choices[0] if response.choices else None
        content = choice.message.content if choice and choice.message else None
        if not content or not content.strip():
            self._record_call(params["model"], response.usage, started, "error")
            raise LLMError(f"{agent}: model returned an empty response", agent=agent)

        usage = response.usage
        result = {
            "content": content,
            "model": response.model,
            "usage": {
                "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
                "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
                "total_tokens": getattr(usage, "total_tokens", 0) or 0,
            },
            "finish_reason": choice.finish_reason,
        }

        self._record_call(params["model"], usage, started, "success")
        logger.info(
            f"🤖 LLM Response: agent={agent}, model={result['model']} | "
            f"tokens: {result['usage']['total_tokens']}"
        )
        return result

    async def stream_completion(
        self,
        agent: str,
        messages: List[Dict[str, str]],
        **overrides,
    ) -> AsyncIterator[str]:
        """
        Stream text deltas for an agent's response.

        Raises:
            LLMError: provider failure before or during the stream
        """
        params = self._build_params(agent, messages, overrides)
        params["stream"] = True
        started = time.monotonic()

        logger.info(f"🔷 LLM Stream: agent={agent}, model={params['model']}")

        try:
            stream = await self.client.chat.completions.create(**params)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except Exception as e:
            logger.error(f"❌ LLM stream failed for {agent}: {e}")
            self._record_call(params["model"], None, started, "error")
            raise self._wrap_error(agent, e) from e

        self._record_call(params["model"], None, started, "success")

    async def close(self):
        """Release the HTTP connection pool, if a client was ever created."""
        if self._client is not None:
            await self._client.close()
            self._client = None


# Singleton instance
_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get the global LLM service (created from settings on first use)."""
    global _llm_service
    if _llm_service is None:
        from scenra.config import get_settings
        settings = get_settings()
        _llm_service = LLMService(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.llm_timeout_seconds,
        )
    return _llm_service


def init_llm_service(
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: float = 60.0,
    router: Optional[LLMRouter] = None,
    app_logger=None,
) -> LLMService:
    """Initialize the global LLM service (call at app startup)."""
    global _llm_service
    _llm_service = LLMService(
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
        router=router,
        app_logger=app_logger,
    )
    return _llm_service


def reset_llm_service():
    """Reset the singleton (useful for testing)."""
    global _llm_service
    _llm_service = None
