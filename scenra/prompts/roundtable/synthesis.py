"""
Synthesis Prompt - Convergence

Reduces both roundtable rounds into one optimized Sora prompt, a sectioned
technical breakdown, hashtags and a suggested shot list. The model answers
with a single JSON object.
"""

from typing import List, Optional

from scenra.config.limits import OPTIMAL_PROMPT_LENGTH, PROMPT_SOFT_CEILING
from scenra.models import Platform, Shot

from .initial_take import platform_label


SYNTHESIS_SYSTEM_PROMPT = """You are a creative cinematographer synthesizing a film crew roundtable into a Sora video prompt that balances technical precision with compelling storytelling.

CRITICAL COPYRIGHT SAFETY RULES:
- REMOVE all brand names, product names, celebrity names and copyrighted characters
- REMOVE references to specific movies, TV shows, songs, artists and albums
- REPLACE them with GENERIC descriptions: "luxury car" not a car brand, "action hero" not a franchise character

CHARACTER RULES:
If characters are provided, describe them EXACTLY as specified, including age and appearance.
Character descriptions are LOCKED and must be preserved word for word where possible.

You always answer with a single JSON object and nothing else."""


def duration_guidance(platform: Platform) -> str:
    return "4-8s for short-form" if platform.is_short_form else "8-12s for standard"


def format_shot_list(shots: List[Shot]) -> str:
    """Requested shots as "Shot 1 (0-4s): ... | Camera: ... | Lighting: ..." lines."""
    lines = []
    for index, shot in enumerate(sorted(shots, key=lambda s: s.order or 0), start=1):
        timing = shot.timing or f"{shot.duration:g}s"
        line = f"Shot {shot.order or index} ({timing}): {shot.description}"
        if shot.camera:
            line += f" | Camera: {shot.camera}"
        if shot.lighting:
            line += f" | Lighting: {shot.lighting}"
        if shot.notes:
            line += f" | Notes: {shot.notes}"
        lines.append(line)
    return "\n".join(lines)


def get_synthesis_prompt(
    brief: str,
    platform: Platform,
    transcript: str,
    character_context: str = "",
    voice_profiles: str = "",
    screenplay_context: str = "",
    user_prompt_edits: Optional[str] = None,
    shot_list: Optional[List[Shot]] = None,
) -> str:
    """
    Build the synthesis user message.

    Args:
        brief: User brief (enhanced when advanced options are set)
        platform: Target platform
        transcript: Both rounds, rendered by format_transcript()
        character_context: Locked character block
        voice_profiles: CHARACTER VOICE PROFILES block
        screenplay_context: EPISODE SCREENPLAY CONTEXT block
        user_prompt_edits: The user's direct edits to respect
        shot_list: Shots the user asked for; synthesis refines them

    Returns:
        User message for the synthesis call
    """
    user_edits = ""
    edit_instruction = ""
    if user_prompt_edits:
        edit_instruction = "- INCORPORATE the user's prompt edits while maintaining quality\n"
        user_edits = f"""
USER'S DIRECT PROMPT EDITS:
{user_prompt_edits}

IMPORTANT: Respect the user's edits while keeping the prompt copyright-safe.
"""

    requested_shots = ""
    shot_instruction = "- Generate a new shot list based on the discussion"
    if shot_list:
        requested_shots = f"""
USER'S REQUESTED SHOT LIST:
{format_shot_list(shot_list)}

IMPORTANT: Incorporate this shot structure into the final prompt.
"""
        shot_instruction = "- REFINE and improve the user-provided shot list"

    return f"""Original Brief: {brief}
Platform: {platform_label(platform)}
Duration: {duration_guidance(platform)}{character_context}{voice_profiles}{screenplay_context}
{user_edits}{requested_shots}
TEAM DISCUSSION:
{transcript}

Generate THREE outputs.

1. OPTIMIZED SORA PROMPT
- Plain text, concise and Sora-optimized; aim for under {OPTIMAL_PROMPT_LENGTH} characters, never beyond ~{PROMPT_SOFT_CEILING}
- Preserve the critical visual and narrative elements the team agreed on
- Use character descriptions EXACTLY as provided above

2. DETAILED BREAKDOWN, one entry per section:
- story_direction: narrative arc, emotional beats, scene purpose
- format_and_look: duration, shutter angle, capture format, grain, halation
- lenses_and_filtration: focal lengths, spherical/anamorphic, filtration
- grade_palette: highlights, mids and blacks, each with its color treatment
- lighting_atmosphere: sources, direction, quality, bounce/fill/negative, atmosphere
- location_framing: setting, foreground/midground/background, composition
- wardrobe_props: main subject WITH character details, extras, key props
- sound: diegetic/non-diegetic approach, foley, mix. If screenplay dialogue is provided
  (see "EPISODE SCREENPLAY CONTEXT" and "Dialogue:"), include the actual lines as
  - CHARACTER: "line" (voice characteristics from the voice profiles)
- shot_list: numbered shots with timecodes, lens, movement and purpose
- camera_notes: what to preserve and what to avoid
- finishing: grain overlay, color finishing, mix priorities, poster frame

3. SUGGESTED SHOT LIST (3-6 shots)
{shot_instruction}
- Each shot has timing, description, camera movement and lighting
- Order shots sequentially from 1 to N

Also recommend 5-10 generic hashtags (no branded hashtags).
{edit_instruction}
Return JSON:
{{
  "optimized_prompt": "...",
  "detailed_breakdown": {{
    "story_direction": "...",
    "format_and_look": "...",
    "lenses_and_filtration": "...",
    "grade_palette": "...",
    "lighting_atmosphere": "...",
    "location_framing": "...",
    "wardrobe_props": "...",
    "sound": "...",
    "shot_list": "...",
    "camera_notes": "...",
    "finishing": "..."
  }},
  "hashtags": ["#tag1", "#tag2"],
  "suggested_shots": [
    {{
      "order": 1,
      "timing": "0-3s",
      "description": "Wide establishing shot ...",
      "camera": "Slow dolly in, eye level, 35mm",
      "lighting": "Soft window light, warm tones",
      "notes": "Optional details"
    }}
  ]
}}"""
