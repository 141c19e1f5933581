"""Data models for Scenra"""

from .models import (
    ScenraModel,
    Platform,
    AgentName,
    ConsistencyPriority,
    QualityTier,
    VisualFingerprint,
    VoiceProfile,
    Character,
    Setting,
    VisualAsset,
    CharacterRelationship,
    SoraSettings,
    DialogueLine,
    ScreenplayScene,
    StructuredScreenplay,
    Episode,
    SeriesSummary,
    EpisodeData,
    AdvancedOptions,
    GenerationRequest,
    Shot,
    DetailedBreakdown,
    DiscussionTurn,
    AgentDiscussion,
    GenerationResult,
    CharacterViolation,
    ValidationDetails,
    ValidationResult,
    RoundtableRequestBody,
    ConsistencyCheckRequest,
)

__all__ = [
    "ScenraModel",
    "Platform",
    "AgentName",
    "ConsistencyPriority",
    "QualityTier",
    "VisualFingerprint",
    "VoiceProfile",
    "Character",
    "Setting",
    "VisualAsset",
    "CharacterRelationship",
    "SoraSettings",
    "DialogueLine",
    "ScreenplayScene",
    "StructuredScreenplay",
    "Episode",
    "SeriesSummary",
    "EpisodeData",
    "AdvancedOptions",
    "GenerationRequest",
    "Shot",
    "DetailedBreakdown",
    "DiscussionTurn",
    "AgentDiscussion",
    "GenerationResult",
    "CharacterViolation",
    "ValidationDetails",
    "ValidationResult",
    "RoundtableRequestBody",
    "ConsistencyCheckRequest",
]
