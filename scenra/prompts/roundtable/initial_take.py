"""
Round 1 Prompt - Initial Take

Every persona gets the same brief and aggregated context and answers
independently. Nobody has heard anyone else yet, so the prompt never refers
to other speakers.
"""

from scenra.agents import Persona
from scenra.models import Platform


PLATFORM_LABELS = {
    Platform.TIKTOK: "TikTok",
    Platform.INSTAGRAM: "Instagram Reels",
    Platform.YOUTUBE: "YouTube",
    Platform.BOTH: "TikTok and Instagram Reels",
}


def platform_label(platform: Platform) -> str:
    return PLATFORM_LABELS.get(platform, platform.value)


def get_persona_system_prompt(persona: Persona, platform: Platform) -> str:
    """Who the persona is. Shared by both rounds."""
    title = persona.role
    if persona.agent.value == "platform_expert":
        title = f"{platform_label(platform)} {persona.role}"
    return f"""You are an experienced {title} in a collaborative video production meeting for a Sora video.

PERSONALITY: {persona.personality}

Speak like a real person in a meeting, not a textbook. Never use brand names,
celebrity names or copyrighted characters; describe generic equivalents instead."""


def get_initial_take_prompt(
    persona: Persona,
    brief: str,
    platform: Platform,
    context: str = "",
) -> str:
    """
    Round 1 task for one persona.

    Args:
        persona: The speaking persona
        brief: User brief (already enhanced with advanced guidance, if any)
        platform: Target platform
        context: Aggregated series context (characters, screenplay, settings...)

    Returns:
        User message for the persona's round 1 call
    """
    return f"""ROUND 1 - INITIAL TAKE

TASK: Analyze this video brief and share your approach CONVERSATIONALLY, as if speaking to your team.

- Speak in {persona.sentences} SHORT sentences (1-2 sentences per thought)
- Focus on {persona.focus}
- Commit to concrete specifics from your craft: {persona.technical_focus}
- If characters are described below, their descriptions are LOCKED; do not alter them
- Each sentence should be a complete thought

Platform: {platform_label(platform)}
Brief: {brief}{context}

Respond ONLY with your conversational thoughts, nothing else."""
