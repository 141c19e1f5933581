"""
Roundtable Prompts

Prompts for the two roundtable rounds and the synthesis step:
- Round 1: each persona's independent initial take
- Round 2: challenge, response and build-on turns
- Synthesis: convergence into one optimized prompt (JSON output)

Each prompt is a function that accepts context and returns a formatted prompt string.
"""

from .initial_take import (
    get_initial_take_prompt,
    get_persona_system_prompt,
    platform_label,
)
from .debate import (
    format_transcript,
    get_build_on_prompt,
    get_challenge_prompt,
    get_response_prompt,
)
from .synthesis import (
    SYNTHESIS_SYSTEM_PROMPT,
    duration_guidance,
    format_shot_list,
    get_synthesis_prompt,
)

__all__ = [
    "get_initial_take_prompt",
    "get_persona_system_prompt",
    "platform_label",
    "format_transcript",
    "get_build_on_prompt",
    "get_challenge_prompt",
    "get_response_prompt",
    "SYNTHESIS_SYSTEM_PROMPT",
    "duration_guidance",
    "format_shot_list",
    "get_synthesis_prompt",
]
