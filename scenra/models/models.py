"""
Pydantic data models for Scenra

Typed records for everything the roundtable core touches. Database rows and
request bodies are validated once, at the aggregation boundary, and the
services downstream only ever see these models.

Field names are snake_case in Python. Every model also accepts and emits the
camelCase spelling (``optimizedPrompt``, ``qualityScore``) so API payloads and
database rows can be passed in as-is.

API LIMITS (user-facing)
========================
| Field                       | Max     | Model                  |
|-----------------------------|---------|------------------------|
| brief                       | 5,000   | RoundtableRequestBody  |
| additional_guidance         | 2,000   | RoundtableRequestBody  |
| prompt (consistency check)  | 20,000  | ConsistencyCheckRequest|
| selected characters         | 10      | RoundtableRequestBody  |
"""

from pydantic import BaseModel, ConfigDict, Field, ValidationError, validator, root_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional, Dict, Any, Union
from enum import Enum
import json
import re

from scenra.config.limits import (
    BRIEF_MAX_LENGTH,
    GUIDANCE_MAX_LENGTH,
    PROMPT_MAX_LENGTH,
    MAX_SELECTED_CHARACTERS,
    MAX_SELECTED_SETTINGS,
    DEFAULT_SHOT_DURATION,
)


class ScenraModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ============================================================================
# Enums
# ============================================================================

class Platform(str, Enum):
    """Target distribution platform"""
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"
    BOTH = "both"

    @classmethod
    def parse(cls, value: Any) -> "Platform":
        """Case-insensitive lookup ("YouTube" -> youtube). Raises ValueError."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValueError("platform is required")
        try:
            return cls(value.strip().lower())
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown platform '{value}' (expected one of: {allowed})")

    @property
    def is_short_form(self) -> bool:
        return self in (Platform.TIKTOK, Platform.INSTAGRAM)


class AgentName(str, Enum):
    """Roundtable personas, in their fixed speaking order"""
    DIRECTOR = "director"
    CINEMATOGRAPHER = "cinematographer"
    EDITOR = "editor"
    COLORIST = "colorist"
    PLATFORM_EXPERT = "platform_expert"


class ConsistencyPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class QualityTier(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


# ============================================================================
# Series data (read-only to the core)
# ============================================================================

class VisualFingerprint(BaseModel):
    """
    A character's locked visual attributes.

    The six validated attributes are hair, ethnicity, skin_tone, eyes,
    default_clothing and age. The remaining fields only feed the generated
    prompt block. Unknown keys are kept so nothing a user typed is lost.
    """
    model_config = ConfigDict(extra="allow")

    age: Optional[str] = None
    ethnicity: Optional[str] = None
    skin_tone: Optional[str] = None
    hair: Optional[str] = None
    eyes: Optional[str] = None
    face_shape: Optional[str] = None
    body_type: Optional[str] = None
    height: Optional[str] = None
    distinctive_features: Optional[str] = None
    default_clothing: Optional[str] = None

    @root_validator(pre=True)
    def normalize_values(cls, values):
        """Blank strings count as absent; lists are joined; numbers become text."""
        if not isinstance(values, dict):
            return values

        normalized = {}
        for key, value in values.items():
            if isinstance(value, (list, tuple)):
                value = ", ".join(str(v).strip() for v in value if str(v).strip())
            elif isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            normalized[key] = _blank_to_none(value)
        return normalized

    def present_attributes(self, keys: List[str]) -> Dict[str, str]:
        """Return {key: value} for the given keys that hold non-empty text, in key order."""
        present = {}
        for key in keys:
            value = getattr(self, key, None)
            if isinstance(value, str) and value.strip():
                present[key] = value.strip()
        return present


class VoiceProfile(BaseModel):
    """How a character sounds; used for dialogue direction in synthesis"""
    model_config = ConfigDict(extra="allow")

    age_sound: Optional[str] = None
    accent: Optional[str] = None
    pitch: Optional[str] = None
    tone: Optional[str] = None
    pace: Optional[str] = None
    energy: Optional[str] = None
    mannerisms: Optional[str] = None
    vocal_quirks: Optional[str] = None

    @root_validator(pre=True)
    def normalize_values(cls, values):
        if not isinstance(values, dict):
            return values
        normalized = {}
        for key, value in values.items():
            if isinstance(value, (list, tuple)):
                value = ", ".join(str(v) for v in value)
            normalized[key] = _blank_to_none(value)
        return normalized

    def is_empty(self) -> bool:
        return not any(
            isinstance(v, str) and v.strip()
            for v in self.model_dump().values()
        )


def _decode_json_text(value: Any) -> Any:
    """Rows sometimes store JSON columns as text."""
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        if stripped.startswith("{"):
            try:
                return json.loads(stripped)
            except json.JSONDecodeError:
                return None
        return None
    return value


class Character(ScenraModel):
    """Series character as stored; accepts DB column names and camelCase."""
    id: Optional[str] = None
    name: str
    visual_fingerprint: Optional[VisualFingerprint] = None
    consistency_priority: ConsistencyPriority = ConsistencyPriority.MEDIUM
    sora_prompt_template: Optional[str] = None
    voice_profile: Optional[VoiceProfile] = None
    performance_style: Optional[str] = None
    role: Optional[str] = None
    description: Optional[str] = None

    @validator('visual_fingerprint', 'voice_profile', pre=True)
    def decode_json_columns(cls, value):
        return _decode_json_text(value)

    @validator('consistency_priority', pre=True)
    def normalize_priority(cls, value):
        if isinstance(value, ConsistencyPriority):
            return value
        if isinstance(value, str) and value.strip().lower() in ConsistencyPriority._value2member_map_:
            return value.strip().lower()
        return ConsistencyPriority.MEDIUM

    @validator('sora_prompt_template', 'performance_style', 'role', 'description', pre=True)
    def blank_text_is_absent(cls, value):
        return _blank_to_none(value)

    @validator('id', pre=True)
    def id_as_text(cls, value):
        return str(value) if value is not None else None


class Setting(ScenraModel):
    """A recurring series location"""
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    visual_details: Optional[str] = None
    mood: Optional[str] = None

    @validator('id', pre=True)
    def id_as_text(cls, value):
        return str(value) if value is not None else None


class VisualAsset(ScenraModel):
    """Reference image or style asset attached to a series"""
    id: Optional[str] = None
    asset_type: str = "reference"
    description: Optional[str] = None
    reference_url: Optional[str] = None
    display_order: int = 0

    @validator('id', pre=True)
    def id_as_text(cls, value):
        return str(value) if value is not None else None


class CharacterRelationship(ScenraModel):
    """Directed relationship between two series characters"""
    character_a_id: str
    character_b_id: str
    relationship_type: str
    description: Optional[str] = None
    character_a_name: Optional[str] = None
    character_b_name: Optional[str] = None

    @validator('character_a_id', 'character_b_id', pre=True)
    def id_as_text(cls, value):
        return str(value) if value is not None else value


class SoraSettings(ScenraModel):
    """Series-wide style defaults. Accepts the ``sora_``-prefixed column names."""
    camera_style: Optional[str] = None
    lighting_mood: Optional[str] = None
    color_palette: Optional[str] = None
    overall_tone: Optional[str] = None
    narrative_prefix: Optional[str] = None

    @root_validator(pre=True)
    def strip_column_prefix(cls, values):
        if not isinstance(values, dict):
            return values
        stripped = {}
        for key, value in values.items():
            if key.startswith("sora_"):
                key = key[len("sora_"):]
            elif key.startswith("sora") and key[4:5].isupper():
                # soraCameraStyle -> cameraStyle
                key = key[4].lower() + key[5:]
            stripped[key] = _blank_to_none(value)
        return stripped

    def merged_with(self, overrides: Optional["SoraSettings"]) -> "SoraSettings":
        """Field-by-field merge; a present override wins, an absent one never erases."""
        if overrides is None:
            return self
        merged = self.model_dump()
        for key, value in overrides.model_dump().items():
            if value is not None:
                merged[key] = value
        return SoraSettings(**merged)

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())


# ============================================================================
# Screenplay data
# ============================================================================

class DialogueLine(ScenraModel):
    character: str
    lines: List[str] = Field(default_factory=list)
    parenthetical: Optional[str] = None

    @validator('lines', pre=True)
    def lines_as_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value if v is not None and str(v).strip()]


class ScreenplayScene(ScenraModel):
    scene_number: Optional[int] = None
    location: Optional[str] = None
    time_of_day: Optional[str] = None
    time_period: Optional[str] = None
    description: Optional[str] = None
    characters: List[str] = Field(default_factory=list)
    action: List[str] = Field(default_factory=list)
    dialogue: List[DialogueLine] = Field(default_factory=list)

    @validator('characters', 'action', pre=True)
    def text_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value if v is not None and str(v).strip()]

    @validator('dialogue', pre=True)
    def drop_malformed_dialogue(cls, value):
        if not value:
            return []
        return [d for d in value if isinstance(d, (dict, DialogueLine))]


class StructuredScreenplay(ScenraModel):
    scenes: List[ScreenplayScene] = Field(default_factory=list)

    @validator('scenes', pre=True)
    def drop_malformed_scenes(cls, value):
        """A bad scene entry is skipped rather than failing the whole episode."""
        if not value:
            return []
        scenes = []
        for entry in value:
            if isinstance(entry, ScreenplayScene):
                scenes.append(entry)
                continue
            if not isinstance(entry, dict):
                continue
            try:
                scenes.append(ScreenplayScene.model_validate(entry))
            except ValidationError:
                continue
        return scenes


class Episode(ScenraModel):
    title: Optional[str] = None
    season_number: Optional[int] = None
    episode_number: Optional[int] = None
    logline: Optional[str] = None
    synopsis: Optional[str] = None
    structured_screenplay: Optional[StructuredScreenplay] = None

    @validator('structured_screenplay', pre=True)
    def decode_screenplay(cls, value):
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return None
        return value


class SeriesSummary(ScenraModel):
    id: Optional[str] = None
    name: Optional[str] = None
    genre: Optional[str] = None
    tone: Optional[str] = None


class EpisodeData(ScenraModel):
    """Episode + series metadata supplied with a roundtable request"""
    episode: Optional[Episode] = None
    series: Optional[SeriesSummary] = None
    scene_number: Optional[int] = None  # Focus a single scene; None means all scenes


# ============================================================================
# Roundtable inputs
# ============================================================================

class AdvancedOptions(ScenraModel):
    """User steering for the advanced roundtable"""
    user_prompt_edits: Optional[str] = None
    shot_list: List["Shot"] = Field(default_factory=list)
    additional_guidance: Optional[str] = None

    @validator('user_prompt_edits', 'additional_guidance', pre=True)
    def blank_text_is_absent(cls, value):
        return _blank_to_none(value)

    def is_empty(self) -> bool:
        return not (self.user_prompt_edits or self.shot_list or self.additional_guidance)


class GenerationRequest(ScenraModel):
    """Everything one roundtable run needs. Immutable for the run."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    brief: str
    platform: Platform
    visual_template: Optional[Union[str, Dict[str, Any]]] = None
    series_characters: List[Character] = Field(default_factory=list)
    series_settings: List[Setting] = Field(default_factory=list)
    visual_assets: List[VisualAsset] = Field(default_factory=list)
    character_relationships: List[CharacterRelationship] = Field(default_factory=list)
    series_sora_settings: Optional[SoraSettings] = None
    character_context: Optional[str] = None
    screenplay_context: Optional[str] = None
    user_id: Optional[str] = None
    advanced: Optional[AdvancedOptions] = None

    @validator('platform', pre=True)
    def parse_platform(cls, value):
        return Platform.parse(value)

    @validator('brief')
    def brief_not_blank(cls, value):
        if not value or not value.strip():
            raise ValueError("brief is required")
        return value.strip()


# ============================================================================
# Roundtable outputs
# ============================================================================

_TIMING_RANGE = re.compile(r'(\d+(?:\.\d+)?)\s*s?\s*[-–—]+\s*(\d+(?:\.\d+)?)\s*s?')
_LEADING_NUMBER = re.compile(r'^\s*(\d+(?:\.\d+)?)')


class Shot(ScenraModel):
    """One suggested shot. ``duration`` is in seconds."""
    id: str = ""
    description: str
    duration: float = DEFAULT_SHOT_DURATION
    order: int = 0
    timing: Optional[str] = None
    camera: Optional[str] = None
    lighting: Optional[str] = None
    notes: Optional[str] = None

    @root_validator(pre=True)
    def derive_duration_from_timing(cls, values):
        """A shot timed "0-4s" but without a duration lasts 4 seconds."""
        if not isinstance(values, dict):
            return values
        duration = values.get("duration")
        if isinstance(duration, str):
            # "3s", "4 seconds"
            match = _LEADING_NUMBER.match(duration)
            values = {**values, "duration": float(match.group(1)) if match else None}
        if values.get("duration") is None and values.get("timing"):
            match = _TIMING_RANGE.search(str(values["timing"]))
            if match:
                start, end = float(match.group(1)), float(match.group(2))
                if end > start:
                    values = {**values, "duration": round(end - start, 2)}
        if values.get("duration") is None:
            values = {**values, "duration": DEFAULT_SHOT_DURATION}
        return values

    @validator('id', pre=True)
    def id_as_text(cls, value):
        return str(value) if value is not None else ""


class DetailedBreakdown(ScenraModel):
    """Technical breakdown of the final prompt. Unknown sections are kept."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    story_direction: Optional[str] = None
    format_and_look: Optional[str] = None
    lenses_and_filtration: Optional[str] = None
    grade_palette: Optional[str] = None
    lighting_atmosphere: Optional[str] = None
    location_framing: Optional[str] = None
    wardrobe_props: Optional[str] = None
    sound: Optional[str] = None
    shot_list: Optional[str] = None
    camera_notes: Optional[str] = None
    finishing: Optional[str] = None

    # Legacy section names, still produced by older synthesis prompts
    scene_structure: Optional[str] = None
    visual_specs: Optional[str] = None
    audio: Optional[str] = None
    platform_optimization: Optional[str] = None

    @root_validator(pre=True)
    def flatten_sections(cls, values):
        """Models sometimes nest a section as an object or list; keep it as text."""
        if not isinstance(values, dict):
            return values
        flattened = {}
        for key, value in values.items():
            if isinstance(value, dict):
                value = "; ".join(f"{k}: {v}" for k, v in value.items() if v not in (None, ""))
            elif isinstance(value, list) and key != "hashtags":
                value = "\n".join(str(v) for v in value)
            flattened[key] = _blank_to_none(value)
        return flattened


class DiscussionTurn(ScenraModel):
    """One persona contribution. Order in the transcript is significant."""
    agent: AgentName
    response: str
    responding_to: Optional[AgentName] = None
    is_challenge: bool = False
    building_on: List[AgentName] = Field(default_factory=list)

    @validator('building_on')
    def dedupe_building_on(cls, value):
        seen = []
        for agent in value:
            if agent not in seen:
                seen.append(agent)
        return seen


class AgentDiscussion(ScenraModel):
    round1: List[DiscussionTurn] = Field(default_factory=list)
    round2: List[DiscussionTurn] = Field(default_factory=list)


class GenerationResult(ScenraModel):
    """Terminal roundtable output. ``character_count`` always tracks the prompt."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    optimized_prompt: str
    character_count: int = 0
    detailed_breakdown: DetailedBreakdown = Field(default_factory=DetailedBreakdown)
    hashtags: List[str] = Field(default_factory=list)
    suggested_shots: List[Shot] = Field(default_factory=list)
    discussion: AgentDiscussion = Field(default_factory=AgentDiscussion)

    @root_validator(pre=True)
    def count_characters(cls, values):
        if not isinstance(values, dict):
            return values
        values = {k: v for k, v in values.items() if k not in ("character_count", "characterCount")}
        prompt = values.get("optimized_prompt", values.get("optimizedPrompt")) or ""
        values["character_count"] = len(prompt)
        return values


# ============================================================================
# Character consistency
# ============================================================================

class CharacterViolation(ScenraModel):
    character_name: str
    attribute: str
    expected: str
    issue: str
    soft: bool = False  # Reported, but the brief may legitimately override it


class ValidationDetails(ScenraModel):
    total_attributes: int = 0
    preserved_attributes: int = 0
    violated_attributes: int = 0


class ValidationResult(ScenraModel):
    valid: bool
    quality_score: int = Field(..., ge=0, le=100)
    violations: List[CharacterViolation] = Field(default_factory=list)
    details: ValidationDetails = Field(default_factory=ValidationDetails)


# ============================================================================
# API request bodies
# ============================================================================

class RoundtableRequestBody(ScenraModel):
    """
    POST /api/agent/roundtable (and /stream, /advanced).

    brief and platform are optional here so that a missing value is reported
    as a 400 input error by the aggregator rather than a 422 schema error.
    """
    brief: Optional[str] = Field(None, max_length=BRIEF_MAX_LENGTH)
    platform: Optional[str] = None
    series_id: Optional[str] = None
    project_id: Optional[str] = None
    selected_characters: List[str] = Field(default_factory=list, max_length=MAX_SELECTED_CHARACTERS)
    selected_settings: List[str] = Field(default_factory=list, max_length=MAX_SELECTED_SETTINGS)
    episode_data: Optional[EpisodeData] = None
    visual_template: Optional[Union[str, Dict[str, Any]]] = None
    sora_settings: Optional[SoraSettings] = None

    # Advanced roundtable
    user_prompt_edits: Optional[str] = None
    shot_list: List[Shot] = Field(default_factory=list)
    additional_guidance: Optional[str] = Field(None, max_length=GUIDANCE_MAX_LENGTH)

    def advanced_options(self) -> Optional[AdvancedOptions]:
        options = AdvancedOptions(
            user_prompt_edits=self.user_prompt_edits,
            shot_list=self.shot_list,
            additional_guidance=self.additional_guidance,
        )
        return None if options.is_empty() else options


class ConsistencyCheckRequest(ScenraModel):
    """POST /api/characters/validate-consistency"""
    prompt: str = Field(..., max_length=PROMPT_MAX_LENGTH)
    characters: List[Character] = Field(default_factory=list)


AdvancedOptions.model_rebuild()
