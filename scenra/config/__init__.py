"""Configuration package for Scenra"""

from .settings import Settings, get_settings
from .limits import (
    BRIEF_MAX_LENGTH,
    GUIDANCE_MAX_LENGTH,
    PROMPT_MAX_LENGTH,
    OPTIMAL_PROMPT_LENGTH,
    PROMPT_SOFT_CEILING,
    MAX_SELECTED_CHARACTERS,
    MAX_SELECTED_SETTINGS,
)

__all__ = [
    "Settings",
    "get_settings",
    "BRIEF_MAX_LENGTH",
    "GUIDANCE_MAX_LENGTH",
    "PROMPT_MAX_LENGTH",
    "OPTIMAL_PROMPT_LENGTH",
    "PROMPT_SOFT_CEILING",
    "MAX_SELECTED_CHARACTERS",
    "MAX_SELECTED_SETTINGS",
]
