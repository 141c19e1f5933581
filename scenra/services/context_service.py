"""
Context Aggregation for Roundtable Runs

Turns a request body plus pre-fetched series rows into one immutable
GenerationRequest, and renders that request into the context text every
persona sees.

Rules:
- brief and platform are required. Anything else that is missing is left out
  of the context, never an error.
- Rows are validated here, once. A row that cannot be read is dropped with a
  warning and the run continues with less context.
- Per-request style overrides beat the series' stored Sora settings, field by
  field.

Architecture:
- collect_raw_inputs() does the point reads (through a SeriesRepository)
- aggregate() is pure: RawGenerationInputs -> GenerationRequest
- build_agent_context() is pure: GenerationRequest -> persona context text
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from scenra.models import (
    AdvancedOptions,
    Character,
    CharacterRelationship,
    EpisodeData,
    GenerationRequest,
    Platform,
    RoundtableRequestBody,
    Setting,
    SoraSettings,
    VisualAsset,
)
from scenra.services.character_service import (
    build_character_context,
    build_relationship_context,
)
from scenra.services.series_repository import SeriesRepository

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RoundtableInputError(ValueError):
    """Required input is missing or invalid. Raised before any LLM call."""


class RawGenerationInputs(BaseModel):
    """Request body values plus the rows fetched for it. Everything may be absent."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    brief: Optional[str] = None
    platform: Optional[str] = None
    user_id: Optional[str] = None
    visual_template: Optional[Union[str, Dict[str, Any]]] = None
    series: Optional[Dict[str, Any]] = None
    characters: Optional[List[Any]] = None
    settings: Optional[List[Any]] = None
    visual_assets: Optional[List[Any]] = None
    relationships: Optional[List[Any]] = None
    sora_overrides: Optional[Union[SoraSettings, Dict[str, Any]]] = None
    episode_data: Optional[Union[EpisodeData, Dict[str, Any]]] = None
    advanced: Optional[AdvancedOptions] = None


# =========================================================================
# FETCHING
# =========================================================================

def _involving(rows: List[Dict[str, Any]], character_ids: Optional[List[str]]) -> List[Dict[str, Any]]:
    selected = {str(c) for c in character_ids or []}
    return [
        row for row in rows
        if isinstance(row, dict)
        and (str(row.get("character_a_id")) in selected or str(row.get("character_b_id")) in selected)
    ]


async def collect_raw_inputs(
    repository: SeriesRepository,
    body: RoundtableRequestBody,
    user_id: Optional[str] = None,
) -> RawGenerationInputs:
    """
    Fetch the rows a run needs, concurrently, and bundle them with the body.

    No series id means no series context. Characters and settings are only
    fetched when the request selected some. Relationships are kept only when
    at least one side is a selected character.
    """
    series = None
    characters: List[Dict[str, Any]] = []
    settings: List[Dict[str, Any]] = []
    assets: List[Dict[str, Any]] = []
    relationships: List[Dict[str, Any]] = []

    if body.series_id:
        async def _none():
            return []

        series, characters, settings, assets, relationships = await asyncio.gather(
            repository.get_series(body.series_id),
            repository.get_characters(body.series_id, body.selected_characters) if body.selected_characters else _none(),
            repository.get_settings(body.series_id, body.selected_settings) if body.selected_settings else _none(),
            repository.get_visual_assets(body.series_id),
            repository.get_relationships(body.series_id) if body.selected_characters else _none(),
        )
        relationships = _involving(relationships, body.selected_characters)
        if series is None:
            logger.warning(f"⚠️ Series {body.series_id} not found, continuing without series context")

    return RawGenerationInputs(
        brief=body.brief,
        platform=body.platform,
        user_id=user_id,
        visual_template=body.visual_template,
        series=series,
        characters=characters,
        settings=settings,
        visual_assets=assets,
        relationships=relationships,
        sora_overrides=body.sora_settings,
        episode_data=body.episode_data,
        advanced=body.advanced_options(),
    )


# =========================================================================
# AGGREGATION
# =========================================================================

def _validate_rows(rows: Optional[Sequence[Any]], model: Type[ModelT], label: str) -> List[ModelT]:
    validated: List[ModelT] = []
    for row in rows or []:
        if isinstance(row, model):
            validated.append(row)
            continue
        try:
            validated.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(f"⚠️ Dropping unreadable {label} row: {e.error_count()} validation error(s)")
    return validated


def _merge_sora_settings(
    series: Optional[Dict[str, Any]],
    overrides: Optional[Union[SoraSettings, Dict[str, Any]]],
) -> Optional[SoraSettings]:
    base = SoraSettings.model_validate(series) if series else SoraSettings()
    if isinstance(overrides, dict):
        overrides = SoraSettings.model_validate(overrides)
    merged = base.merged_with(overrides)
    return None if merged.is_empty() else merged


def aggregate(raw: RawGenerationInputs) -> GenerationRequest:
    """
    Build the immutable request for one roundtable run.

    Raises:
        RoundtableInputError: brief or platform missing, or platform unknown
    """
    if not raw.brief or not raw.brief.strip():
        raise RoundtableInputError("Brief and platform are required")
    if not raw.platform or not str(raw.platform).strip():
        raise RoundtableInputError("Brief and platform are required")
    try:
        platform = Platform.parse(raw.platform)
    except ValueError as e:
        raise RoundtableInputError(str(e)) from e

    characters = _validate_rows(raw.characters, Character, "character")
    settings = _validate_rows(raw.settings, Setting, "setting")
    assets = _validate_rows(raw.visual_assets, VisualAsset, "visual asset")
    relationships = _validate_rows(raw.relationships, CharacterRelationship, "relationship")

    sora_settings = _merge_sora_settings(raw.series, raw.sora_overrides)

    visual_template = raw.visual_template
    if visual_template is None and raw.series:
        stored = raw.series.get("visual_template")
        if isinstance(stored, (str, dict)):
            visual_template = stored

    character_context = build_character_context(characters) or None

    screenplay_context = None
    if raw.episode_data:
        screenplay_context = build_screenplay_context(raw.episode_data) or None

    request = GenerationRequest(
        brief=raw.brief,
        platform=platform,
        visual_template=visual_template or None,
        series_characters=characters,
        series_settings=settings,
        visual_assets=assets,
        character_relationships=relationships,
        series_sora_settings=sora_settings,
        character_context=character_context,
        screenplay_context=screenplay_context,
        user_id=raw.user_id,
        advanced=raw.advanced if raw.advanced and not raw.advanced.is_empty() else None,
    )

    logger.info(
        f"🧩 Context aggregated: platform={platform.value}, characters={len(characters)}, "
        f"settings={len(settings)}, assets={len(assets)}, screenplay={'yes' if screenplay_context else 'no'}"
    )
    return request


# =========================================================================
# SCREENPLAY
# =========================================================================

def _scene_heading(scene) -> str:
    heading = f"SCENE {scene.scene_number}" if scene.scene_number is not None else "SCENE"
    place = " - ".join(part for part in (scene.location, scene.time_of_day) if part)
    if place:
        heading += f": {place}"
    if scene.time_period:
        heading += f" ({scene.time_period})"
    return heading


def build_screenplay_context(
    episode_data: Union[EpisodeData, Dict[str, Any], None],
    scene_number: Optional[int] = None,
) -> str:
    """
    Render episode metadata and screenplay scenes as a fixed-heading block.

    Args:
        episode_data: EpisodeData or the equivalent dict
        scene_number: Only include this scene. Falls back to
                      episode_data.scene_number; None includes every scene.

    Returns:
        "\\n\\nEPISODE SCREENPLAY CONTEXT:\\n..." or "" when there is no episode
    """
    if not episode_data:
        return ""
    if isinstance(episode_data, dict):
        try:
            episode_data = EpisodeData.model_validate(episode_data)
        except ValidationError as e:
            logger.warning(f"⚠️ Ignoring unreadable episode data: {e.error_count()} validation error(s)")
            return ""

    episode = episode_data.episode
    series = episode_data.series
    if episode is None and series is None:
        return ""

    lines = ["\n\nEPISODE SCREENPLAY CONTEXT:"]
    if series and series.name:
        lines.append(f"Series: {series.name}")
    if episode:
        label = ""
        if episode.season_number is not None and episode.episode_number is not None:
            label = f"S{episode.season_number}E{episode.episode_number}"
        elif episode.episode_number is not None:
            label = f"Episode {episode.episode_number}"
        title = " - ".join(part for part in (label, episode.title) if part)
        if title:
            lines.append(f"Episode: {title}")
        if episode.logline:
            lines.append(f"Logline: {episode.logline}")
        if episode.synopsis:
            lines.append(f"Synopsis: {episode.synopsis}")

    scenes = []
    if episode and episode.structured_screenplay:
        scenes = episode.structured_screenplay.scenes

    focus = scene_number if scene_number is not None else episode_data.scene_number
    if focus is not None:
        scenes = [s for s in scenes if s.scene_number == focus]
        if not scenes:
            logger.debug(f"Scene {focus} not in screenplay, rendering episode metadata only")

    for scene in scenes:
        lines.append("")
        lines.append(_scene_heading(scene))
        if scene.description:
            lines.append(f"Description: {scene.description}")
        if scene.characters:
            lines.append(f"Characters: {', '.join(scene.characters)}")
        if scene.action:
            lines.append("Action:")
            lines.extend(f"- {beat}" for beat in scene.action)
        if scene.dialogue:
            lines.append("Dialogue:")
            for entry in scene.dialogue:
                for line in entry.lines:
                    lines.append(f'- {entry.character.upper()}: "{line}"')

    return "\n".join(lines)


# =========================================================================
# PERSONA CONTEXT
# =========================================================================

def _render_visual_template(template: Union[str, Dict[str, Any]]) -> str:
    if isinstance(template, dict):
        return "\n".join(
            f"{key}: {value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)}"
            for key, value in template.items()
            if value not in (None, "", [], {})
        )
    return str(template)


def build_agent_context(request: GenerationRequest) -> str:
    """
    Context text appended to every persona prompt.

    Sections appear in a fixed order and are omitted when empty: visual
    template, characters, screenplay, settings, relationships, visual assets,
    Sora settings.
    """
    context = ""

    if request.visual_template:
        rendered = _render_visual_template(request.visual_template)
        if rendered:
            context += f"\n\nVISUAL TEMPLATE:\n{rendered}"

    if request.character_context:
        context += request.character_context

    if request.screenplay_context:
        context += request.screenplay_context

    if request.series_settings:
        setting_lines = []
        for setting in request.series_settings:
            line = f"- {setting.name}"
            if setting.description:
                line += f": {setting.description}"
            if setting.mood:
                line += f" (mood: {setting.mood})"
            setting_lines.append(line)
        context += "\n\nSETTINGS:\n" + "\n".join(setting_lines)

    context += build_relationship_context(request.character_relationships, request.series_characters)

    described_assets = [a for a in request.visual_assets if a.description]
    if described_assets:
        context += "\n\nVISUAL REFERENCES:\n" + "\n".join(
            f"- {asset.asset_type}: {asset.description}" for asset in described_assets
        )

    sora = request.series_sora_settings
    if sora is not None:
        parts = [
            f"Camera: {sora.camera_style}" if sora.camera_style else None,
            f"Lighting: {sora.lighting_mood}" if sora.lighting_mood else None,
            f"Colors: {sora.color_palette}" if sora.color_palette else None,
            f"Tone: {sora.overall_tone}" if sora.overall_tone else None,
        ]
        joined = ", ".join(p for p in parts if p)
        if joined:
            context += f"\n\nSORA SETTINGS: {joined}"
        if sora.narrative_prefix:
            context += f"\n\nNARRATIVE PREFIX: {sora.narrative_prefix}"

    return context
