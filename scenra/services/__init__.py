"""Services package for Scenra"""

from .llm_router import LLMRouter, get_llm_router, init_llm_router, reset_llm_router
from .llm import (
    LLMError,
    LLMService,
    RateLimitError,
    get_llm_service,
    init_llm_service,
    reset_llm_service,
)
from .logger import ScenraLogger, get_logger, init_logger, reset_logger
from .text_processing import (
    clean_json_output,
    parse_json_object,
    normalize_hashtags,
    clean_persona_response,
)
from .character_service import (
    generate_character_block,
    resolve_character_block,
    build_character_context,
    build_relationship_context,
    build_voice_profile_context,
)
from .context_service import (
    RoundtableInputError,
    RawGenerationInputs,
    aggregate,
    build_agent_context,
    build_screenplay_context,
    collect_raw_inputs,
)
from .series_repository import (
    SeriesRepository,
    InMemorySeriesRepository,
    get_series_repository,
    init_series_repository,
    set_series_repository,
    reset_series_repository,
)
from .validation_service import (
    validate_character_consistency,
    get_quality_tier,
    get_quality_assessment,
)

__all__ = [
    "LLMRouter",
    "get_llm_router",
    "init_llm_router",
    "reset_llm_router",
    "LLMError",
    "LLMService",
    "RateLimitError",
    "get_llm_service",
    "init_llm_service",
    "reset_llm_service",
    "ScenraLogger",
    "get_logger",
    "init_logger",
    "reset_logger",
    "clean_json_output",
    "parse_json_object",
    "normalize_hashtags",
    "clean_persona_response",
    "generate_character_block",
    "resolve_character_block",
    "build_character_context",
    "build_relationship_context",
    "build_voice_profile_context",
    "RoundtableInputError",
    "RawGenerationInputs",
    "aggregate",
    "build_agent_context",
    "build_screenplay_context",
    "collect_raw_inputs",
    "SeriesRepository",
    "InMemorySeriesRepository",
    "get_series_repository",
    "init_series_repository",
    "set_series_repository",
    "reset_series_repository",
    "validate_character_consistency",
    "get_quality_tier",
    "get_quality_assessment",
]
