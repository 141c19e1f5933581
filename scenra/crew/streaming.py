"""
Streaming Adapter - roundtable progress as Server-Sent Events

stream_roundtable() wraps RoundtableOrchestrator.run_streaming():

- one producer task runs the roundtable and pushes events into a queue
- the generator yields them in exactly the order they were produced
- the stream always ends with one terminal event: ResultEvent or ErrorEvent
- if the consumer goes away (client disconnect) the producer is cancelled

Transport invariant: SSE_HEADERS and the 200 status are sent before the first
event. An upstream failure after that point cannot change the status, so it
arrives in-band as an ``error`` event.
"""

import asyncio
import logging
from typing import AsyncIterator

from scenra.agents import get_persona
from scenra.models import AgentName, DiscussionTurn, GenerationRequest
from scenra.services.events import (
    TERMINAL_EVENTS,
    ErrorEvent,
    ResultEvent,
    RoundtableEvent,
    StatusEvent,
    TurnChunkEvent,
    TurnEvent,
)
from scenra.services.llm import LLMError

from .roundtable import RoundtableOrchestrator

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def stream_roundtable(
    orchestrator: RoundtableOrchestrator,
    request: GenerationRequest,
    stream_chunks: bool = True,
) -> AsyncIterator[RoundtableEvent]:
    """
    Run one roundtable and yield its events.

    Args:
        orchestrator: Orchestrator to run
        request: Aggregated, validated request
        stream_chunks: Also emit turn_chunk events while personas speak

    Yields:
        status / turn / turn_chunk events, then one result or error event
    """
    queue: "asyncio.Queue[RoundtableEvent]" = asyncio.Queue()

    async def on_turn(turn: DiscussionTurn, round_number: int):
        persona = get_persona(turn.agent)
        await queue.put(TurnEvent.from_turn(turn, round_number, persona.name, persona.emoji))

    async def on_status(message: str, stage: str):
        await queue.put(StatusEvent(message=message, stage=stage))

    async def on_chunk(agent: AgentName, round_number: int, content: str):
        await queue.put(TurnChunkEvent(agent=agent.value, round=round_number, content=content))

    async def produce():
        try:
            result = await orchestrator.run_streaming(
                request,
                on_turn=on_turn,
                on_status=on_status,
                on_chunk=on_chunk if stream_chunks else None,
            )
            await queue.put(ResultEvent(result=result))
        except LLMError as e:
            logger.error(f"❌ Roundtable stream failed: {e}")
            await queue.put(ErrorEvent(message=str(e), agent=e.agent))
        except Exception as e:
            logger.exception(f"❌ Roundtable stream crashed: {e}")
            await queue.put(ErrorEvent(message="Roundtable failed unexpectedly"))

    producer = asyncio.create_task(produce(), name="roundtable-stream")
    try:
        while True:
            event = await queue.get()
            yield event
            if event.type in TERMINAL_EVENTS:
                break
    finally:
        if not producer.done():
            logger.info("🔌 Stream consumer gone, cancelling roundtable")
            producer.cancel()


async def sse_frames(events: AsyncIterator[RoundtableEvent]) -> AsyncIterator[str]:
    """Frame each event as an SSE message."""
    async for event in events:
        yield event.to_sse()
