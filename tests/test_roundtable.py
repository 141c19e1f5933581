"""
Tests for the roundtable orchestrator.

Runs the full two-round pipeline against a scripted LLM (see conftest.py):
round 1 ordering under concurrency, the round 2 plan and its references,
synthesis normalization, and failure propagation with cancellation.

Run with: python -m pytest tests/test_roundtable.py -v
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from scenra.agents import PERSONA_ORDER
from scenra.config.limits import DEFAULT_SHOT_DURATION
from scenra.crew.roundtable import (
    BUILD_ON,
    CHALLENGE,
    RESPOND,
    ROUND2_PLAN,
    DebateStep,
    RoundtableOrchestrator,
    build_enhanced_brief,
    check_turn_references,
    normalize_synthesis,
    validate_debate_plan,
)
from scenra.models import (
    AdvancedOptions,
    AgentDiscussion,
    AgentName,
    DiscussionTurn,
    GenerationRequest,
    Shot,
)
from scenra.services.events import (
    STAGE_INITIALIZATION,
    STAGE_ROUND1_COMPLETE,
    STAGE_ROUND1_START,
    STAGE_ROUND2_COMPLETE,
    STAGE_ROUND2_START,
    STAGE_SYNTHESIS_START,
)
from scenra.services.llm import LLMError, RateLimitError


def _request(**overrides) -> GenerationRequest:
    values = {"brief": "A nurse finds a stranger in the ER", "platform": "tiktok"}
    values.update(overrides)
    return GenerationRequest(**values)


def _turn(agent: AgentName, **kwargs) -> DiscussionTurn:
    return DiscussionTurn(agent=agent, response=f"{agent.value} says", **kwargs)


class TestRoundOne:
    """Concurrent calls, fixed transcript order."""

    async def test_transcript_in_persona_order_despite_finish_order(self, fake_llm_factory, quiet_logger):
        # Director finishes last, platform expert first
        llm = fake_llm_factory(delays={
            "director": 0.05,
            "cinematographer": 0.04,
            "editor": 0.03,
            "colorist": 0.02,
            "platform_expert": 0.01,
        })
        result = await RoundtableOrchestrator(llm, logger=quiet_logger).run(_request())

        assert [t.agent for t in result.discussion.round1] == PERSONA_ORDER
        assert llm.finished[:5] == list(reversed([a.value for a in PERSONA_ORDER]))

    async def test_round1_turns_are_independent(self, fake_llm, quiet_logger):
        await RoundtableOrchestrator(fake_llm, logger=quiet_logger).run(_request())

        for agent in PERSONA_ORDER:
            first = fake_llm.user_messages(agent.value)[0]
            assert first.startswith("ROUND 1 - INITIAL TAKE")
            assert "A nurse finds a stranger in the ER" in first
            # Nobody has heard anybody yet
            assert "take 1" not in first

    async def test_round1_gets_aggregated_context(self, fake_llm, quiet_logger):
        request = _request(character_context="\n\nCHARACTERS IN THIS VIDEO:\nMaya. hair: black.")
        await RoundtableOrchestrator(fake_llm, logger=quiet_logger).run(request)

        for agent in PERSONA_ORDER:
            assert "CHARACTERS IN THIS VIDEO:" in fake_llm.user_messages(agent.value)[0]

    async def test_round2_waits_for_round1(self, fake_llm_factory, quiet_logger):
        llm = fake_llm_factory(delays={"director": 0.05})
        await RoundtableOrchestrator(llm, logger=quiet_logger).run(_request())

        round1_agents = {c["agent"] for c in llm.calls[:5]}
        assert round1_agents == {a.value for a in PERSONA_ORDER}

        # The first round 2 prompt already carries every round 1 response
        challenge_prompt = llm.user_messages("platform_expert")[1]
        for agent in PERSONA_ORDER:
            assert f"{agent.value} take 1" in challenge_prompt


class TestRoundTwo:
    """Deterministic debate plan."""

    async def test_round2_follows_plan(self, fake_llm, quiet_logger):
        result = await RoundtableOrchestrator(fake_llm, logger=quiet_logger).run(_request())
        round2 = result.discussion.round2

        assert [t.agent for t in round2] == [step.agent for step in ROUND2_PLAN]
        challenge, response = round2[0], round2[1]
        assert challenge.is_challenge is True
        assert challenge.responding_to == AgentName.DIRECTOR
        assert response.is_challenge is False
        assert response.responding_to == AgentName.PLATFORM_EXPERT
        assert round2[4].building_on == [AgentName.DIRECTOR, AgentName.CINEMATOGRAPHER, AgentName.EDITOR]

    async def test_round2_references_only_earlier_speakers(self, fake_llm, quiet_logger):
        result = await RoundtableOrchestrator(fake_llm, logger=quiet_logger).run(_request())
        discussion = result.discussion

        assert check_turn_references(discussion) == []
        for index, turn in enumerate(discussion.round2):
            if turn.responding_to is not None:
                earlier = [t.agent for t in discussion.round1] + [t.agent for t in discussion.round2[:index]]
                assert turn.responding_to in earlier

    async def test_later_turns_see_earlier_round2_turns(self, fake_llm, quiet_logger):
        await RoundtableOrchestrator(fake_llm, logger=quiet_logger).run(_request())

        # The director's reply sees the platform expert's challenge (its second turn)
        reply_prompt = fake_llm.user_messages("director")[1]
        assert "platform_expert take 2" in reply_prompt

    def test_empty_plan_rejected(self, fake_llm, quiet_logger):
        with pytest.raises(ValueError, match="at least one step"):
            RoundtableOrchestrator(fake_llm, logger=quiet_logger, debate_plan=())


class TestDebatePlanValidation:
    """Bad plans are rejected when the orchestrator is built."""

    def test_shipped_plan_is_valid(self):
        validate_debate_plan(ROUND2_PLAN)

    def test_empty_plan(self):
        with pytest.raises(ValueError, match="at least one step"):
            validate_debate_plan([])

    def test_respond_without_challenge(self):
        plan = [DebateStep(AgentName.DIRECTOR, RESPOND, target=AgentName.EDITOR)]
        with pytest.raises(ValueError, match="never challenged"):
            validate_debate_plan(plan)

    def test_challenge_needs_target(self):
        with pytest.raises(ValueError, match="needs a target"):
            validate_debate_plan([DebateStep(AgentName.EDITOR, CHALLENGE)])

    def test_cannot_challenge_self(self):
        with pytest.raises(ValueError, match="cannot address itself"):
            validate_debate_plan([DebateStep(AgentName.EDITOR, CHALLENGE, target=AgentName.EDITOR)])

    def test_build_on_self(self):
        plan = [DebateStep(AgentName.COLORIST, BUILD_ON, building_on=(AgentName.COLORIST,))]
        with pytest.raises(ValueError, match="cannot build on"):
            validate_debate_plan(plan)

    def test_build_on_needs_agents(self):
        with pytest.raises(ValueError, match="at least one"):
            validate_debate_plan([DebateStep(AgentName.COLORIST, BUILD_ON)])

    def test_unknown_action(self):
        with pytest.raises(ValueError, match="unknown action"):
            validate_debate_plan([DebateStep(AgentName.COLORIST, "shrug")])

    def test_orchestrator_rejects_bad_plan(self, fake_llm, quiet_logger):
        with pytest.raises(ValueError):
            RoundtableOrchestrator(
                fake_llm,
                logger=quiet_logger,
                debate_plan=[DebateStep(AgentName.EDITOR, CHALLENGE)],
            )


class TestCheckTurnReferences:
    """Transcript-level reference check."""

    def test_forward_reference_reported(self):
        discussion = AgentDiscussion(
            round1=[_turn(AgentName.DIRECTOR)],
            round2=[_turn(AgentName.DIRECTOR, responding_to=AgentName.EDITOR)],
        )
        problems = check_turn_references(discussion)

        assert len(problems) == 1
        assert "editor" in problems[0]

    def test_earlier_round2_turn_counts(self):
        discussion = AgentDiscussion(
            round1=[_turn(AgentName.DIRECTOR)],
            round2=[
                _turn(AgentName.EDITOR, responding_to=AgentName.DIRECTOR, is_challenge=True),
                _turn(AgentName.DIRECTOR, responding_to=AgentName.EDITOR),
            ],
        )
        assert check_turn_references(discussion) == []

    def test_challenge_without_target(self):
        discussion = AgentDiscussion(
            round1=[_turn(AgentName.DIRECTOR)],
            round2=[_turn(AgentName.EDITOR, is_challenge=True)],
        )
        assert check_turn_references(discussion) == ["round2[0] editor: challenge without a target"]

    def test_build_on_unknown(self):
        discussion = AgentDiscussion(
            round1=[_turn(AgentName.DIRECTOR)],
            round2=[_turn(AgentName.EDITOR, building_on=[AgentName.COLORIST])],
        )
        assert "colorist" in check_turn_references(discussion)[0]


class TestSynthesis:
    """Synthesis output becomes the GenerationResult."""

    async def test_result_fields(self, fake_llm, quiet_logger):
        result = await RoundtableOrchestrator(fake_llm, logger=quiet_logger).run(_request())

        assert result.optimized_prompt.startswith("Handheld 35mm close-up")
        assert result.character_count == len(result.optimized_prompt)
        assert result.hashtags == ["#nightshift", "#filmmaking"]
        assert result.detailed_breakdown.sound == "Fluorescent hum, distant monitor beeps"
        assert [s.id for s in result.suggested_shots] == ["shot-1", "shot-2"]
        assert result.suggested_shots[0].duration == 3.0
        assert result.suggested_shots[1].timing == "4-8s"

    async def test_synthesis_sees_both_rounds(self, fake_llm, quiet_logger):
        await RoundtableOrchestrator(fake_llm, logger=quiet_logger).run(_request())
        prompt = fake_llm.user_messages("synthesis")[0]

        assert "TEAM DISCUSSION:" in prompt
        assert "DIRECTOR (round 1): director take 1" in prompt
        assert "director take 2" in prompt

    async def test_synthesis_uses_advanced_options(self, fake_llm, quiet_logger):
        advanced = AdvancedOptions(
            user_prompt_edits="Make it rain harder",
            shot_list=[Shot(description="Rain on the window", timing="0-2s")],
            additional_guidance="Keep it hopeful",
        )
        await RoundtableOrchestrator(fake_llm, logger=quiet_logger).run(_request(advanced=advanced))

        synthesis_prompt = fake_llm.user_messages("synthesis")[0]
        assert "USER'S DIRECT PROMPT EDITS:\nMake it rain harder" in synthesis_prompt
        assert "Rain on the window" in synthesis_prompt

        director_prompt = fake_llm.user_messages("director")[0]
        assert "ADDITIONAL CREATIVE GUIDANCE:\nKeep it hopeful" in director_prompt
        assert "REQUESTED SHOT LIST:" in director_prompt

    async def test_unparseable_synthesis_is_llm_error(self, fake_llm_factory, quiet_logger):
        llm = fake_llm_factory(synthesis="Sorry, I cannot help with that.")

        with pytest.raises(LLMError) as exc_info:
            await RoundtableOrchestrator(llm, logger=quiet_logger).run(_request())
        assert exc_info.value.agent == "synthesis"

    async def test_fenced_synthesis_json_accepted(self, fake_llm_factory, quiet_logger):
        llm = fake_llm_factory(synthesis='Here you go:\n```json\n{"optimized_prompt": "Rain."}\n```')
        result = await RoundtableOrchestrator(llm, logger=quiet_logger).run(_request())

        assert result.optimized_prompt == "Rain."
        assert result.character_count == 5


class TestNormalizeSynthesis:
    """JSON -> GenerationResult."""

    def test_missing_prompt(self):
        with pytest.raises(LLMError):
            normalize_synthesis({"detailed_breakdown": {}}, AgentDiscussion())

    def test_legacy_breakdown_with_hashtags(self):
        data = {
            "optimizedPrompt": "A quiet diner at dawn.",
            "breakdown": {"scene_structure": "one shot", "hashtags": "#diner #dawn"},
        }
        result = normalize_synthesis(data, AgentDiscussion())

        assert result.hashtags == ["#diner", "#dawn"]
        assert result.detailed_breakdown.scene_structure == "one shot"

    def test_long_prompt_not_truncated(self):
        prompt = "x" * 900
        result = normalize_synthesis({"optimized_prompt": prompt}, AgentDiscussion())

        assert result.optimized_prompt == prompt
        assert result.character_count == 900

    def test_fallback_shots(self):
        requested = [Shot(id="mine", description="Rain on the window")]
        result = normalize_synthesis({"optimized_prompt": "Rain."}, AgentDiscussion(), fallback_shots=requested)

        assert [s.id for s in result.suggested_shots] == ["mine"]

    def test_nested_sections_flattened(self):
        data = {
            "optimized_prompt": "Rain.",
            "detailed_breakdown": {"grade_palette": {"highlights": "warm", "blacks": "crushed"}},
        }
        result = normalize_synthesis(data, AgentDiscussion())

        assert result.detailed_breakdown.grade_palette == "highlights: warm; blacks: crushed"

    def test_shots_without_description_dropped(self):
        data = {"optimized_prompt": "Rain.", "suggested_shots": [{"timing": "0-2s"}, "Close-up"]}
        result = normalize_synthesis(data, AgentDiscussion())

        assert [s.description for s in result.suggested_shots] == ["Close-up"]
        assert result.suggested_shots[0].id == "shot-2"

    def test_text_durations_kept(self):
        data = {
            "optimized_prompt": "Rain.",
            "suggested_shots": [
                {"description": "Wide", "duration": "3s"},
                {"description": "Close", "duration": "4.5 seconds"},
                {"description": "Insert", "duration": 2},
                {"description": "Push in", "duration": "quick", "timing": "0-6s"},
            ],
        }
        result = normalize_synthesis(data, AgentDiscussion())

        assert [(s.description, s.duration) for s in result.suggested_shots] == [
            ("Wide", 3.0), ("Close", 4.5), ("Insert", 2.0), ("Push in", 6.0),
        ]

    def test_unreadable_duration_defaults(self):
        shot = Shot.model_validate({"description": "Beat", "duration": "a moment"})

        assert shot.duration == DEFAULT_SHOT_DURATION


class TestEnhancedBrief:

    def test_plain_brief(self):
        assert build_enhanced_brief(_request()) == "A nurse finds a stranger in the ER"

    def test_guidance_and_shots_appended(self):
        advanced = AdvancedOptions(
            additional_guidance="Keep it hopeful",
            shot_list=[Shot(description="Rain", order=1, timing="0-2s", camera="static")],
        )
        brief = build_enhanced_brief(_request(advanced=advanced))

        assert brief.endswith("REQUESTED SHOT LIST:\nShot 1 (0-2s): Rain | Camera: static")
        assert "\n\nADDITIONAL CREATIVE GUIDANCE:\nKeep it hopeful" in brief


class TestFailures:
    """Any LLM failure aborts the run."""

    async def test_round1_failure_cancels_pending_calls(self, fake_llm_factory, quiet_logger, llm_error):
        slow = {agent.value: 5.0 for agent in PERSONA_ORDER}
        slow["editor"] = 0
        llm = fake_llm_factory(delays=slow, fail={"editor": llm_error("editor")})

        with pytest.raises(LLMError) as exc_info:
            await RoundtableOrchestrator(llm, logger=quiet_logger).run(_request())

        assert exc_info.value.agent == "editor"
        assert sorted(llm.cancelled) == sorted(["director", "cinematographer", "colorist", "platform_expert"])
        assert not any(c["agent"] == "synthesis" for c in llm.calls)

    async def test_round2_failure_propagates(self, fake_llm_factory, quiet_logger):
        class FailOnSecondTurn(fake_llm_factory):
            async def chat_completion(self, agent, messages, **overrides):
                if agent == "director" and self.round_counts.get("director"):
                    raise RateLimitError("director: rate limited", agent="director")
                return await super().chat_completion(agent, messages, **overrides)

        llm = FailOnSecondTurn()
        with pytest.raises(RateLimitError):
            await RoundtableOrchestrator(llm, logger=quiet_logger).run(_request())

    async def test_empty_persona_response(self, fake_llm_factory, quiet_logger):
        llm = fake_llm_factory(responses={"colorist": '  ""  '})

        with pytest.raises(LLMError) as exc_info:
            await RoundtableOrchestrator(llm, logger=quiet_logger).run(_request())
        assert exc_info.value.agent == "colorist"

    async def test_no_retry(self, fake_llm_factory, quiet_logger, llm_error):
        llm = fake_llm_factory(fail={"synthesis": llm_error("synthesis")})

        with pytest.raises(LLMError):
            await RoundtableOrchestrator(llm, logger=quiet_logger).run(_request())
        assert sum(1 for c in llm.calls if c["agent"] == "synthesis") == 1


class TestStreamingCallbacks:
    """run_streaming reports progress in transcript order."""

    async def test_turns_and_statuses(self, fake_llm_factory, quiet_logger):
        llm = fake_llm_factory(delays={"director": 0.03, "platform_expert": 0.01})
        turns, statuses = [], []

        async def on_turn(turn, round_number):
            turns.append((round_number, turn.agent))

        result = await RoundtableOrchestrator(llm, logger=quiet_logger).run_streaming(
            _request(),
            on_turn=on_turn,
            on_status=lambda message, stage: statuses.append(stage),
        )

        expected = [(1, a) for a in PERSONA_ORDER] + [(2, step.agent) for step in ROUND2_PLAN]
        assert turns == expected
        assert [(1, t.agent) for t in result.discussion.round1] + [(2, t.agent) for t in result.discussion.round2] == expected
        assert statuses == [
            STAGE_INITIALIZATION,
            STAGE_ROUND1_START,
            STAGE_ROUND1_COMPLETE,
            STAGE_ROUND2_START,
            STAGE_ROUND2_COMPLETE,
            STAGE_SYNTHESIS_START,
        ]

    async def test_chunks_stream_persona_text(self, fake_llm, quiet_logger):
        chunks = []
        result = await RoundtableOrchestrator(fake_llm, logger=quiet_logger).run_streaming(
            _request(),
            on_turn=lambda turn, round_number: None,
            on_chunk=lambda agent, round_number, text: chunks.append((agent, round_number, text)),
        )

        director_round1 = "".join(t for a, r, t in chunks if a == AgentName.DIRECTOR and r == 1)
        assert director_round1.strip() == result.discussion.round1[0].response == "director take 1"
        # Synthesis is never chunk-streamed
        assert all(c["stream"] is False for c in fake_llm.calls if c["agent"] == "synthesis")
        assert all(c["stream"] is True for c in fake_llm.calls if c["agent"] != "synthesis")
