"""
Round 2 Prompts - Debate

Round 2 personas see the whole transcript so far and do one of three things:
challenge a colleague, respond to a colleague's challenge, or build on the
positions of one or more colleagues.
"""

from typing import Sequence

from scenra.agents import Persona, get_persona
from scenra.models import DiscussionTurn, Platform

from .initial_take import platform_label


def format_transcript(round1: Sequence[DiscussionTurn], round2: Sequence[DiscussionTurn] = ()) -> str:
    """Render the discussion so far, one speaker per paragraph."""
    lines = []
    for round_number, turns in ((1, round1), (2, round2)):
        for turn in turns:
            speaker = get_persona(turn.agent).name.upper()
            lines.append(f"{speaker} (round {round_number}): {turn.response}")
    return "\n\n".join(lines)


def _debate_header(brief: str, platform: Platform, transcript: str) -> str:
    return f"""ROUND 2 - CREATIVE DEBATE

Platform: {platform_label(platform)}
Brief: {brief}

The team has shared these perspectives:

{transcript}

"""


def get_challenge_prompt(
    persona: Persona,
    target: Persona,
    brief: str,
    platform: Platform,
    transcript: str,
) -> str:
    """Challenge one colleague's position from this persona's craft."""
    return _debate_header(brief, platform, transcript) + f"""You see a problem with the {target.name}'s approach.
Respectfully challenge it with one specific concern and the alternative your craft suggests.
Be constructive and professional. Keep it to 2-3 sentences.

Respond ONLY with your challenge, nothing else."""


def get_response_prompt(
    persona: Persona,
    challenger: Persona,
    brief: str,
    platform: Platform,
    transcript: str,
) -> str:
    """Answer a challenge addressed to this persona."""
    return _debate_header(brief, platform, transcript) + f"""The {challenger.name} has challenged your approach.
Respond to the challenge: agree, defend your position, or find a middle ground that keeps
the best of both. Be collaborative. Keep it to 2-3 sentences.

Respond ONLY with your response, nothing else."""


def get_build_on_prompt(
    persona: Persona,
    building_on: Sequence[Persona],
    brief: str,
    platform: Platform,
    transcript: str,
) -> str:
    """Adopt colleagues' positions and extend them with this persona's craft."""
    names = " and ".join(p.name for p in building_on)
    return _debate_header(brief, platform, transcript) + f"""Build on the ideas from the {names}.
Keep their positions as agreed and add what your craft contributes on top:
{persona.technical_focus}. Keep it to 2-3 sentences.

Respond ONLY with your contribution, nothing else."""
