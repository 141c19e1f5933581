"""
Centralized Generation Limits

All length and count limits in one place for consistency.
Import these in both API routes and Pydantic models.
"""

# =============================================================================
# USER INPUT LIMITS
# =============================================================================

# Video brief (including pasted reference material)
BRIEF_MAX_LENGTH = 5000

# Free-text guidance on the advanced roundtable
GUIDANCE_MAX_LENGTH = 2000

# Prompt submitted for a standalone consistency check
PROMPT_MAX_LENGTH = 20000

# =============================================================================
# OPTIMIZED PROMPT LENGTH
# =============================================================================

# Target length for the synthesized prompt (characters)
OPTIMAL_PROMPT_LENGTH = 500

# Past this the prompt is logged as over-long; it is never truncated
PROMPT_SOFT_CEILING = 700

# =============================================================================
# COLLECTION LIMITS
# =============================================================================

# Characters that can be locked into one video
MAX_SELECTED_CHARACTERS = 10

# Settings that can be referenced by one video
MAX_SELECTED_SETTINGS = 10

# =============================================================================
# SHOT DEFAULTS
# =============================================================================

# Duration assumed for a suggested shot the model did not time (seconds)
DEFAULT_SHOT_DURATION = 4.0

# Hashtags kept from synthesis output
MAX_HASHTAGS = 15
