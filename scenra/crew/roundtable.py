"""
Roundtable Orchestrator - two rounds, five personas, one prompt

Flow for one run:

    ROUND 1  all five personas get the brief + aggregated context and answer
             independently. Calls are issued concurrently; the transcript is
             always recorded in persona order (director, cinematographer,
             editor, colorist, platform_expert), whatever order they finish in.
    ROUND 2  starts only once round 1 is assembled. Follows ROUND2_PLAN step by
             step: each step sees round 1 plus every earlier round 2 turn.
    SYNTHESIS one JSON-mode call reduces both rounds into the optimized prompt,
             the detailed breakdown, hashtags and suggested shots.

Any LLM failure cancels outstanding round 1 calls and propagates as LLMError.
No partial transcript is returned and nothing is retried here.
"""

import asyncio
import inspect
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from scenra.agents import PERSONA_ORDER, get_persona
from scenra.config.limits import MAX_HASHTAGS, OPTIMAL_PROMPT_LENGTH, PROMPT_SOFT_CEILING
from scenra.models import (
    AgentDiscussion,
    AgentName,
    DetailedBreakdown,
    DiscussionTurn,
    GenerationRequest,
    GenerationResult,
    Shot,
)
from scenra.prompts.roundtable import (
    SYNTHESIS_SYSTEM_PROMPT,
    format_shot_list,
    format_transcript,
    get_build_on_prompt,
    get_challenge_prompt,
    get_initial_take_prompt,
    get_persona_system_prompt,
    get_response_prompt,
    get_synthesis_prompt,
)
from scenra.services.character_service import build_voice_profile_context
from scenra.services.context_service import build_agent_context
from scenra.services.events import (
    STAGE_INITIALIZATION,
    STAGE_ROUND1_COMPLETE,
    STAGE_ROUND1_START,
    STAGE_ROUND2_COMPLETE,
    STAGE_ROUND2_START,
    STAGE_SYNTHESIS_START,
)
from scenra.services.llm import LLMError, LLMService
from scenra.services.logger import ScenraLogger, get_logger
from scenra.services.text_processing import clean_persona_response, normalize_hashtags, parse_json_object

logger = logging.getLogger(__name__)

SYNTHESIS_AGENT = "synthesis"

TurnCallback = Callable[[DiscussionTurn, int], Union[None, Awaitable[None]]]
StatusCallback = Callable[[str, str], Union[None, Awaitable[None]]]
ChunkCallback = Callable[[AgentName, int, str], Union[None, Awaitable[None]]]


# =========================================================================
# ROUND 2 PLAN
# =========================================================================

CHALLENGE = "challenge"
RESPOND = "respond"
BUILD_ON = "build_on"

DEBATE_ACTIONS = (CHALLENGE, RESPOND, BUILD_ON)


@dataclass(frozen=True)
class DebateStep:
    """One round 2 turn: who speaks, what they do, and to whom."""
    agent: AgentName
    action: str
    target: Optional[AgentName] = None
    building_on: Tuple[AgentName, ...] = ()


ROUND2_PLAN: Tuple[DebateStep, ...] = (
    DebateStep(AgentName.PLATFORM_EXPERT, CHALLENGE, target=AgentName.DIRECTOR),
    DebateStep(AgentName.DIRECTOR, RESPOND, target=AgentName.PLATFORM_EXPERT),
    DebateStep(AgentName.CINEMATOGRAPHER, BUILD_ON, building_on=(AgentName.DIRECTOR,)),
    DebateStep(AgentName.EDITOR, BUILD_ON, building_on=(AgentName.DIRECTOR, AgentName.CINEMATOGRAPHER)),
    DebateStep(
        AgentName.COLORIST,
        BUILD_ON,
        building_on=(AgentName.DIRECTOR, AgentName.CINEMATOGRAPHER, AgentName.EDITOR),
    ),
)


def validate_debate_plan(plan: Sequence[DebateStep]):
    """
    Check that every step only refers to agents already in the transcript.

    Raises:
        ValueError: describing the first invalid step
    """
    if not plan:
        raise ValueError("round 2 needs at least one step")
    spoken = set(PERSONA_ORDER)
    challenges = set()
    for index, step in enumerate(plan):
        where = f"round 2 step {index} ({step.agent.value} {step.action})"
        if step.action not in DEBATE_ACTIONS:
            raise ValueError(f"{where}: unknown action")
        if step.action in (CHALLENGE, RESPOND):
            if step.target is None:
                raise ValueError(f"{where}: needs a target")
            if step.target == step.agent:
                raise ValueError(f"{where}: cannot address itself")
            if step.target not in spoken:
                raise ValueError(f"{where}: {step.target.value} has not spoken yet")
        if step.action == RESPOND and (step.target, step.agent) not in challenges:
            raise ValueError(f"{where}: {step.target.value} never challenged {step.agent.value}")
        if step.action == BUILD_ON:
            if not step.building_on:
                raise ValueError(f"{where}: needs at least one agent to build on")
            for agent in step.building_on:
                if agent == step.agent or agent not in spoken:
                    raise ValueError(f"{where}: cannot build on {agent.value}")
        if step.action == CHALLENGE:
            challenges.add((step.agent, step.target))
        spoken.add(step.agent)


def check_turn_references(discussion: AgentDiscussion) -> List[str]:
    """
    List round 2 references to agents that have not spoken yet.

    Every reference must name the agent of a round 1 turn or of an earlier
    round 2 turn. Returns [] for a well-formed transcript.
    """
    seen = {turn.agent for turn in discussion.round1}
    problems = []
    for index, turn in enumerate(discussion.round2):
        if turn.is_challenge and turn.responding_to is None:
            problems.append(f"round2[{index}] {turn.agent.value}: challenge without a target")
        if turn.responding_to is not None and turn.responding_to not in seen:
            problems.append(f"round2[{index}] {turn.agent.value}: responds to {turn.responding_to.value}, who has not spoken")
        for agent in turn.building_on:
            if agent not in seen:
                problems.append(f"round2[{index}] {turn.agent.value}: builds on {agent.value}, who has not spoken")
        seen.add(turn.agent)
    return problems


# =========================================================================
# HELPERS
# =========================================================================

async def _notify(callback: Optional[Callable[..., Any]], *args):
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def build_enhanced_brief(request: GenerationRequest) -> str:
    """Brief plus the advanced guidance and requested shot list, when present."""
    brief = request.brief
    advanced = request.advanced
    if advanced is None:
        return brief
    if advanced.additional_guidance:
        brief += f"\n\nADDITIONAL CREATIVE GUIDANCE:\n{advanced.additional_guidance}"
    if advanced.shot_list:
        brief += f"\n\nREQUESTED SHOT LIST:\n{format_shot_list(advanced.shot_list)}"
    return brief


def _first_text(data: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _normalize_shots(raw_shots: Any) -> List[Shot]:
    if not isinstance(raw_shots, list):
        return []
    shots: List[Shot] = []
    for index, raw in enumerate(raw_shots):
        if isinstance(raw, str):
            raw = {"description": raw}
        if not isinstance(raw, dict) or not str(raw.get("description") or "").strip():
            logger.debug(f"Skipping suggested shot {index}: no description")
            continue
        entry = dict(raw)
        entry["id"] = entry.get("id") or f"shot-{index + 1}"
        entry["order"] = entry.get("order") or index + 1
        entry["timing"] = entry.get("timing") or f"{index * 4}-{(index + 1) * 4}s"
        try:
            shots.append(Shot.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"⚠️ Dropping unreadable suggested shot {index}: {e.error_count()} validation error(s)")
    return shots


def normalize_synthesis(
    data: Dict[str, Any],
    discussion: AgentDiscussion,
    fallback_shots: Sequence[Shot] = (),
) -> GenerationResult:
    """
    Turn the synthesis JSON into a GenerationResult.

    Accepts the current keys (optimized_prompt, detailed_breakdown) and the
    legacy ones (breakdown with hashtags inside). The prompt is never
    truncated; lengths past the targets are only logged.

    Raises:
        LLMError: the response has no optimized prompt
    """
    prompt = _first_text(data, "optimized_prompt", "optimizedPrompt", "prompt")
    if not prompt:
        raise LLMError("synthesis: response has no optimized_prompt", agent=SYNTHESIS_AGENT)

    breakdown_raw = data.get("detailed_breakdown") or data.get("detailedBreakdown") or data.get("breakdown") or {}
    if not isinstance(breakdown_raw, dict):
        breakdown_raw = {"story_direction": str(breakdown_raw)}

    hashtags = normalize_hashtags(data.get("hashtags") or breakdown_raw.get("hashtags"), limit=MAX_HASHTAGS)
    sections = {
        key: value if value is None or isinstance(value, (str, list, dict)) else str(value)
        for key, value in breakdown_raw.items()
        if key != "hashtags"
    }
    sections["hashtags"] = hashtags
    breakdown = DetailedBreakdown.model_validate(sections)

    shots = _normalize_shots(data.get("suggested_shots") or data.get("suggestedShots"))
    if not shots and fallback_shots:
        shots = list(fallback_shots)

    length = len(prompt)
    if length > PROMPT_SOFT_CEILING:
        logger.warning(f"⚠️ Optimized prompt is {length} chars, past the {PROMPT_SOFT_CEILING}-char soft ceiling")
    elif length > OPTIMAL_PROMPT_LENGTH:
        logger.info(f"📏 Optimized prompt is {length} chars (optimal is {OPTIMAL_PROMPT_LENGTH} or less)")

    return GenerationResult(
        optimized_prompt=prompt,
        detailed_breakdown=breakdown,
        hashtags=hashtags,
        suggested_shots=shots,
        discussion=discussion,
    )


# =========================================================================
# ORCHESTRATOR
# =========================================================================

class RoundtableOrchestrator:
    """
    Runs the roundtable for one GenerationRequest at a time.

    Holds no per-run state, so one instance serves concurrent requests.
    """

    def __init__(
        self,
        llm: LLMService,
        logger: Optional[ScenraLogger] = None,
        debate_plan: Sequence[DebateStep] = ROUND2_PLAN,
    ):
        validate_debate_plan(debate_plan)
        self.llm = llm
        self.logger = logger or get_logger()
        self.debate_plan: Tuple[DebateStep, ...] = tuple(debate_plan)

    async def run(self, request: GenerationRequest) -> GenerationResult:
        """Run both rounds and synthesis. Raises LLMError on any upstream failure."""
        return await self._run(request)

    async def run_streaming(
        self,
        request: GenerationRequest,
        on_turn: TurnCallback,
        on_status: Optional[StatusCallback] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> GenerationResult:
        """
        Same as run(), reporting progress as it happens.

        Args:
            on_turn: called with (turn, round_number) after each persona turn,
                     in transcript order
            on_status: called with (message, stage) between phases
            on_chunk: called with (agent, round_number, text_delta) while a
                      persona is speaking; turns are streamed when it is set

        Callbacks may be plain functions or coroutines.
        """
        return await self._run(request, on_turn=on_turn, on_status=on_status, on_chunk=on_chunk)

    async def _run(
        self,
        request: GenerationRequest,
        on_turn: Optional[TurnCallback] = None,
        on_status: Optional[StatusCallback] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> GenerationResult:
        run_id = uuid.uuid4().hex[:8]
        started = time.monotonic()
        brief = build_enhanced_brief(request)
        context = build_agent_context(request)

        self.logger.info(
            f"🎬 Roundtable {run_id} started: platform={request.platform.value}, "
            f"characters={len(request.series_characters)}, debate_steps={len(self.debate_plan)}"
        )
        await _notify(on_status, "Creative team assembling...", STAGE_INITIALIZATION)

        # ROUND 1
        await _notify(on_status, "Round 1: Creative team analyzing your brief...", STAGE_ROUND1_START)
        round1 = await self._run_round1(request, brief, context, run_id, on_turn, on_chunk)
        await _notify(
            on_status,
            "Round 1 complete. Team is now debating key creative decisions...",
            STAGE_ROUND1_COMPLETE,
        )

        # ROUND 2
        round2: List[DiscussionTurn] = []
        await _notify(on_status, "Round 2: Creative debate emerging...", STAGE_ROUND2_START)
        for step in self.debate_plan:
            turn = await self._debate_turn(step, request, brief, round1, round2, run_id, on_chunk)
            round2.append(turn)
            await _notify(on_turn, turn, 2)
        await _notify(on_status, "Creative debate concluded. Moving to synthesis...", STAGE_ROUND2_COMPLETE)

        discussion = AgentDiscussion(round1=round1, round2=round2)

        # SYNTHESIS
        await _notify(on_status, "Synthesizing team insights into final prompt...", STAGE_SYNTHESIS_START)
        result = await self._synthesize(request, brief, discussion, run_id)

        duration = time.monotonic() - started
        self.logger.info(
            f"✅ Roundtable {run_id} complete in {duration:.1f}s: "
            f"{result.character_count} chars, {len(result.suggested_shots)} shots"
        )
        return result

    # ----- Round 1 -----

    async def _run_round1(
        self,
        request: GenerationRequest,
        brief: str,
        context: str,
        run_id: str,
        on_turn: Optional[TurnCallback],
        on_chunk: Optional[ChunkCallback],
    ) -> List[DiscussionTurn]:
        # Only the persona whose turn is next streams live; the others are
        # held back so chunks never run ahead of an earlier persona's turn.
        live: Optional[AgentName] = PERSONA_ORDER[0]
        held: Dict[AgentName, List[Tuple[int, str]]] = {agent: [] for agent in PERSONA_ORDER}

        async def relay(agent: AgentName, round_number: int, delta: str):
            if agent == live:
                await _notify(on_chunk, agent, round_number, delta)
            else:
                held[agent].append((round_number, delta))

        async def hand_over(agent: AgentName):
            nonlocal live
            live = None
            while held[agent]:
                round_number, delta = held[agent].pop(0)
                await _notify(on_chunk, agent, round_number, delta)
            live = agent

        relay_chunk = relay if on_chunk is not None else None
        tasks = {
            agent: asyncio.create_task(
                self._initial_take(agent, request, brief, context, run_id, relay_chunk),
                name=f"roundtable-{run_id}-{agent.value}",
            )
            for agent in PERSONA_ORDER
        }
        round1: List[DiscussionTurn] = []
        pending = set(tasks.values())

        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    task.result()

                # Record finished turns, but never ahead of an earlier persona
                while len(round1) < len(PERSONA_ORDER):
                    task = tasks[PERSONA_ORDER[len(round1)]]
                    if not task.done():
                        break
                    turn = task.result()
                    round1.append(turn)
                    await _notify(on_turn, turn, 1)
                    if on_chunk is not None and len(round1) < len(PERSONA_ORDER):
                        await hand_over(PERSONA_ORDER[len(round1)])
        except BaseException:
            for task in tasks.values():
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        return round1

    async def _initial_take(
        self,
        agent: AgentName,
        request: GenerationRequest,
        brief: str,
        context: str,
        run_id: str,
        on_chunk: Optional[ChunkCallback],
    ) -> DiscussionTurn:
        persona = get_persona(agent)
        messages = [
            {"role": "system", "content": get_persona_system_prompt(persona, request.platform)},
            {"role": "user", "content": get_initial_take_prompt(persona, brief, request.platform, context)},
        ]
        response = await self._speak(agent, messages, 1, "initial take", run_id, on_chunk)
        return DiscussionTurn(agent=agent, response=response)

    # ----- Round 2 -----

    async def _debate_turn(
        self,
        step: DebateStep,
        request: GenerationRequest,
        brief: str,
        round1: Sequence[DiscussionTurn],
        round2: Sequence[DiscussionTurn],
        run_id: str,
        on_chunk: Optional[ChunkCallback],
    ) -> DiscussionTurn:
        persona = get_persona(step.agent)
        transcript = format_transcript(round1, round2)

        if step.action == CHALLENGE:
            prompt = get_challenge_prompt(persona, get_persona(step.target), brief, request.platform, transcript)
        elif step.action == RESPOND:
            prompt = get_response_prompt(persona, get_persona(step.target), brief, request.platform, transcript)
        else:
            prompt = get_build_on_prompt(
                persona, [get_persona(a) for a in step.building_on], brief, request.platform, transcript
            )

        messages = [
            {"role": "system", "content": get_persona_system_prompt(persona, request.platform)},
            {"role": "user", "content": prompt},
        ]
        response = await self._speak(step.agent, messages, 2, step.action, run_id, on_chunk)
        return DiscussionTurn(
            agent=step.agent,
            response=response,
            responding_to=step.target,
            is_challenge=step.action == CHALLENGE,
            building_on=list(step.building_on),
        )

    # ----- Shared -----

    async def _speak(
        self,
        agent: AgentName,
        messages: List[Dict[str, str]],
        round_number: int,
        task: str,
        run_id: str,
        on_chunk: Optional[ChunkCallback],
    ) -> str:
        """One persona call; streamed when a chunk callback is set."""
        name = agent.value
        self.logger.agent_working(name, f"round {round_number} {task}")
        self.logger.agent_input(name, messages[-1]["content"], {"round": round_number, "task": task}, request_id=run_id)
        started = time.monotonic()

        try:
            if on_chunk is not None:
                parts = []
                async for delta in self.llm.stream_completion(name, messages):
                    parts.append(delta)
                    await _notify(on_chunk, agent, round_number, delta)
                text = "".join(parts)
            else:
                response = await self.llm.chat_completion(name, messages)
                text = response["content"]

            text = clean_persona_response(text)
            if not text:
                raise LLMError(f"{name}: model returned an empty response", agent=name)
        except LLMError as e:
            self.logger.agent_output(name, str(e), status="error", duration=time.monotonic() - started, request_id=run_id)
            self.logger.error(name, f"round {round_number} {task} failed", e)
            raise

        duration = time.monotonic() - started
        self.logger.agent_output(name, text, duration=duration, request_id=run_id)
        self.logger.agent_completed(name, f"round {round_number} {task}", duration)
        return text

    async def _synthesize(
        self,
        request: GenerationRequest,
        brief: str,
        discussion: AgentDiscussion,
        run_id: str,
    ) -> GenerationResult:
        advanced = request.advanced
        prompt = get_synthesis_prompt(
            brief=brief,
            platform=request.platform,
            transcript=format_transcript(discussion.round1, discussion.round2),
            character_context=request.character_context or "",
            voice_profiles=build_voice_profile_context(request.series_characters),
            screenplay_context=request.screenplay_context or "",
            user_prompt_edits=advanced.user_prompt_edits if advanced else None,
            shot_list=advanced.shot_list if advanced else None,
        )
        messages = [
            {"role": "system", "content": SYNTHESIS_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

        self.logger.agent_working(SYNTHESIS_AGENT, "converging both rounds")
        self.logger.agent_input(SYNTHESIS_AGENT, prompt, {"round1": len(discussion.round1), "round2": len(discussion.round2)}, request_id=run_id)
        started = time.monotonic()

        response = await self.llm.chat_completion(SYNTHESIS_AGENT, messages)
        try:
            data = parse_json_object(response["content"])
        except ValueError as e:
            self.logger.error(SYNTHESIS_AGENT, "unparseable synthesis output", e)
            raise LLMError(f"synthesis: {e}", agent=SYNTHESIS_AGENT) from e

        result = normalize_synthesis(
            data,
            discussion,
            fallback_shots=advanced.shot_list if advanced else (),
        )

        duration = time.monotonic() - started
        self.logger.agent_output(SYNTHESIS_AGENT, result.optimized_prompt, duration=duration, request_id=run_id)
        self.logger.agent_completed(SYNTHESIS_AGENT, "converging both rounds", duration)
        return result
