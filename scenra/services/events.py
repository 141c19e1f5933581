"""
Event Types for Roundtable Streaming

The streaming channel carries a tagged union of events. Every event has a
``type`` tag and frames itself as one Server-Sent Event:

    event: turn
    data: {"type": "turn", "agent": "director", "round": 1, ...}

A stream is any number of status / turn / turn_chunk events followed by
exactly one terminal event: ``result`` on success or ``error`` on failure.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import Field

from scenra.models import AgentName, DiscussionTurn, GenerationResult, ScenraModel


# ==================== Event Type Constants ====================
EVENT_STATUS = "status"
EVENT_TURN = "turn"
EVENT_TURN_CHUNK = "turn_chunk"
EVENT_RESULT = "result"
EVENT_ERROR = "error"

TERMINAL_EVENTS = (EVENT_RESULT, EVENT_ERROR)

# Status stages, in the order a run passes through them
STAGE_INITIALIZATION = "initialization"
STAGE_ROUND1_START = "round1_start"
STAGE_ROUND1_COMPLETE = "round1_complete"
STAGE_ROUND2_START = "round2_start"
STAGE_ROUND2_COMPLETE = "round2_complete"
STAGE_SYNTHESIS_START = "synthesis_start"


class _Event(ScenraModel):
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())

    def to_sse(self) -> str:
        """Frame as one SSE message."""
        payload = self.model_dump_json(by_alias=True, exclude_none=True)
        return f"event: {self.type}\ndata: {payload}\n\n"


class StatusEvent(_Event):
    """Progress note between turns ("Round 1: Creative team analyzing...")."""
    type: Literal["status"] = EVENT_STATUS
    message: str
    stage: str


class TurnEvent(_Event):
    """One persona turn, emitted as soon as it completes."""
    type: Literal["turn"] = EVENT_TURN
    agent: AgentName
    name: str
    emoji: str
    response: str
    round: int
    responding_to: Optional[AgentName] = None
    is_challenge: bool = False
    building_on: List[AgentName] = Field(default_factory=list)

    @classmethod
    def from_turn(cls, turn: DiscussionTurn, round_number: int, name: str, emoji: str) -> "TurnEvent":
        return cls(
            agent=turn.agent,
            name=name,
            emoji=emoji,
            response=turn.response,
            round=round_number,
            responding_to=turn.responding_to,
            is_challenge=turn.is_challenge,
            building_on=list(turn.building_on),
        )


class TurnChunkEvent(_Event):
    """Partial text of a turn that is still being generated."""
    type: Literal["turn_chunk"] = EVENT_TURN_CHUNK
    agent: str
    round: int
    content: str


class ResultEvent(_Event):
    """Terminal success event carrying the same shape as the non-streaming response."""
    type: Literal["result"] = EVENT_RESULT
    result: GenerationResult


class ErrorEvent(_Event):
    """Terminal failure event. The HTTP status is already 200 when this is sent."""
    type: Literal["error"] = EVENT_ERROR
    message: str
    agent: Optional[str] = None


RoundtableEvent = Annotated[
    Union[StatusEvent, TurnEvent, TurnChunkEvent, ResultEvent, ErrorEvent],
    Field(discriminator="type"),
]
