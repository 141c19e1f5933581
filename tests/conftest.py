"""
Shared fixtures: a scripted stand-in for the LLM service and a quiet logger.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from scenra.services.llm import LLMError
from scenra.services.logger import ScenraLogger


DEFAULT_SYNTHESIS = {
    "optimized_prompt": "Handheld 35mm close-up of a nurse in a flickering ER corridor, teal grade, 9:16.",
    "detailed_breakdown": {
        "story_direction": "Quiet dread building to relief",
        "format_and_look": "8s, 180 degree shutter, light grain",
        "sound": "Fluorescent hum, distant monitor beeps",
    },
    "hashtags": ["#nightshift", "filmmaking", "#NightShift"],
    "suggested_shots": [
        {"description": "Wide of the corridor", "timing": "0-3s", "camera": "Static"},
        {"description": "Close-up on her hands"},
    ],
}


class FakeLLM:
    """
    Scripted LLM service with the same surface as LLMService.

    Args:
        delays: seconds each agent waits before answering
        fail: agent name -> exception to raise for that agent
        responses: agent name -> persona text (default "<agent> take")
        synthesis: dict (sent as JSON) or raw string for the synthesis call
    """

    def __init__(
        self,
        delays: Optional[Dict[str, float]] = None,
        fail: Optional[Dict[str, Exception]] = None,
        responses: Optional[Dict[str, str]] = None,
        synthesis: Any = None,
    ):
        self.delays = delays or {}
        self.fail = fail or {}
        self.responses = responses or {}
        self.synthesis = DEFAULT_SYNTHESIS if synthesis is None else synthesis
        self.calls: List[Dict[str, Any]] = []
        self.finished: List[str] = []
        self.cancelled: List[str] = []
        self.round_counts: Dict[str, int] = {}

    def _text_for(self, agent: str) -> str:
        if agent == "synthesis":
            if isinstance(self.synthesis, str):
                return self.synthesis
            return json.dumps(self.synthesis)
        count = self.round_counts.get(agent, 0) + 1
        self.round_counts[agent] = count
        return self.responses.get(agent, f"{agent} take {count}")

    async def _wait(self, agent: str):
        try:
            await asyncio.sleep(self.delays.get(agent, 0))
        except asyncio.CancelledError:
            self.cancelled.append(agent)
            raise
        if agent in self.fail:
            raise self.fail[agent]

    async def chat_completion(self, agent: str, messages: List[Dict[str, str]], **overrides) -> Dict[str, Any]:
        self.calls.append({"agent": agent, "messages": messages, "stream": False})
        await self._wait(agent)
        self.finished.append(agent)
        return {
            "content": self._text_for(agent),
            "model": "fake",
            "usage": {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
            "finish_reason": "stop",
        }

    async def stream_completion(self, agent: str, messages: List[Dict[str, str]], **overrides):
        self.calls.append({"agent": agent, "messages": messages, "stream": True})
        await self._wait(agent)
        text = self._text_for(agent)
        for word in text.split(" "):
            yield word + " "
        self.finished.append(agent)

    def user_messages(self, agent: str) -> List[str]:
        return [c["messages"][-1]["content"] for c in self.calls if c["agent"] == agent]


@pytest.fixture
def fake_llm_factory():
    return FakeLLM


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def quiet_logger():
    return ScenraLogger(quiet=True)


@pytest.fixture
def llm_error():
    def _make(agent: str = "editor", message: str = "provider timed out"):
        return LLMError(f"{agent}: {message}", agent=agent)
    return _make
