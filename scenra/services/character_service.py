"""
Character Prompt Blocks

Builds the locked text blocks that describe series characters inside every
prompt the roundtable sees, plus the relationship and voice-profile blocks
used by synthesis.

Block resolution is an ordered list of strategies. The first one that
produces text wins:

    1. template   - the character's stored sora_prompt_template, verbatim
    2. generated  - generate_character_block() from the visual fingerprint
    3. name_only  - just the character's name

All functions are pure: no I/O, no LLM calls.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from scenra.models import Character, CharacterRelationship, VoiceProfile

logger = logging.getLogger(__name__)


# Fingerprint keys in the order they are written into a block, with labels
FINGERPRINT_LABELS: List[Tuple[str, str]] = [
    ("age", "age"),
    ("ethnicity", "ethnicity"),
    ("skin_tone", "skin tone"),
    ("hair", "hair"),
    ("eyes", "eyes"),
    ("face_shape", "face shape"),
    ("body_type", "build"),
    ("height", "height"),
    ("distinctive_features", "distinctive features"),
    ("default_clothing", "clothing"),
]

VOICE_FIELDS = ["age_sound", "tone", "pitch", "pace", "energy", "accent", "mannerisms", "vocal_quirks"]

CHARACTER_CONTEXT_HEADER = "\n\nCHARACTERS IN THIS VIDEO:\n"
CHARACTER_CONTEXT_FOOTER = (
    "\n\nIMPORTANT: The character descriptions above are LOCKED. "
    "Use them exactly as provided for consistency across videos.\n\n"
)


def _describe_voice(voice: Optional[VoiceProfile]) -> str:
    if voice is None:
        return ""
    parts = []
    for field in VOICE_FIELDS:
        value = getattr(voice, field, None)
        if isinstance(value, str) and value.strip():
            parts.append(value.strip())
    return ", ".join(parts)


def generate_character_block(character: Character) -> str:
    """
    Describe a character from its visual fingerprint.

    Writes the name, then every present attribute as "label: value" in a
    fixed order, then optional Voice and Performance clauses. Absent
    attributes are left out. Returns "" when there is nothing to describe
    beyond the name.

    Example:
        "Maya Chen. age: late twenties; ethnicity: East Asian; hair: long black hair
        with bangs; eyes: dark brown eyes; clothing: denim jacket over a white tee.
        Voice: warm, mid-range, unhurried. Performance: understated, wry."
    """
    fingerprint = character.visual_fingerprint
    attributes: List[str] = []

    if fingerprint is not None:
        known_keys = [key for key, _ in FINGERPRINT_LABELS]
        present = fingerprint.present_attributes(known_keys)
        for key, label in FINGERPRINT_LABELS:
            if key in present:
                attributes.append(f"{label}: {present[key]}")

        # Free-form extras a user added to the fingerprint
        for key, value in (fingerprint.model_extra or {}).items():
            if isinstance(value, str) and value.strip():
                attributes.append(f"{key.replace('_', ' ')}: {value.strip()}")

    voice = _describe_voice(character.voice_profile)
    performance = (character.performance_style or "").strip()

    if not attributes and not voice and not performance:
        return ""

    block = f"{character.name}."
    if attributes:
        block += " " + "; ".join(attributes) + "."
    if voice:
        block += f" Voice: {voice}."
    if performance:
        block += f" Performance: {performance}."
    return block


# =========================================================================
# BLOCK RESOLUTION
# =========================================================================

def _template_block(character: Character) -> Optional[str]:
    template = character.sora_prompt_template
    return template if template and template.strip() else None


def _generated_block(character: Character) -> Optional[str]:
    # Looked up at call time so the generator can be swapped in tests
    return generate_character_block(character) or None


def _name_only_block(character: Character) -> Optional[str]:
    return character.name


CHARACTER_BLOCK_STRATEGIES: List[Tuple[str, Callable[[Character], Optional[str]]]] = [
    ("template", _template_block),
    ("generated", _generated_block),
    ("name_only", _name_only_block),
]


def resolve_character_block(character: Character) -> str:
    """Return the first block any strategy produces for this character."""
    for strategy_name, strategy in CHARACTER_BLOCK_STRATEGIES:
        block = strategy(character)
        if block:
            logger.debug(f"Character block for {character.name} resolved via {strategy_name}")
            return block
    return character.name


def build_character_context(characters: Sequence[Character]) -> str:
    """
    Wrap every character's locked block in the fixed header and footer.

    Returns "" when there are no characters.
    """
    if not characters:
        return ""
    blocks = [resolve_character_block(char) for char in characters]
    return CHARACTER_CONTEXT_HEADER + "\n\n".join(blocks) + CHARACTER_CONTEXT_FOOTER


# =========================================================================
# RELATIONSHIPS & VOICES
# =========================================================================

def generate_relationship_context(name_a: str, name_b: str, relationship: CharacterRelationship) -> str:
    """One relationship line: "- Maya ↔ Theo: siblings (Theo is protective of Maya)"."""
    line = f"- {name_a} ↔ {name_b}: {relationship.relationship_type}"
    if relationship.description:
        line += f" ({relationship.description})"
    return line


def build_relationship_context(
    relationships: Sequence[CharacterRelationship],
    characters: Sequence[Character],
) -> str:
    """
    Relationship block for the persona context.

    Names come from the relationship row when present, otherwise from the
    character list. Relationships naming an unknown character are skipped.
    """
    if not relationships:
        return ""

    names_by_id: Dict[str, str] = {c.id: c.name for c in characters if c.id}
    lines = []
    for rel in relationships:
        name_a = rel.character_a_name or names_by_id.get(rel.character_a_id)
        name_b = rel.character_b_name or names_by_id.get(rel.character_b_id)
        if not name_a or not name_b:
            logger.debug(f"Skipping relationship {rel.character_a_id}→{rel.character_b_id}: character not loaded")
            continue
        lines.append(generate_relationship_context(name_a, name_b, rel))

    if not lines:
        return ""
    return "\n\nCHARACTER RELATIONSHIPS:\n" + "\n".join(lines)


def build_voice_profile_context(characters: Sequence[Character]) -> str:
    """Voice block for synthesis so dialogue keeps each character's sound."""
    profiles = []
    for char in characters or []:
        voice = _describe_voice(char.voice_profile)
        if voice:
            profiles.append(f"{char.name}: {voice}")
    if not profiles:
        return ""
    return "\n\nCHARACTER VOICE PROFILES:\n" + "\n".join(profiles)
