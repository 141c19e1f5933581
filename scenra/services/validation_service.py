"""
Character Consistency Validation

Checks whether each character's locked visual attributes survive into a
generated prompt. Matching is lexical and case-insensitive; no LLM call is
made and nothing here raises for a failed check. A failed check is a
normal ValidationResult with ``valid=False``.

Per-attribute behaviour lives in ATTRIBUTE_RULES. Adding an attribute means
adding a row there, not a new branch.

Architecture:
- Called by the roundtable routes after synthesis
- Called by the standalone consistency-check route
- Stateless functions (no class needed)
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Union

from pydantic import ValidationError

from scenra.models import (
    Character,
    CharacterViolation,
    QualityTier,
    ValidationDetails,
    ValidationResult,
)

logger = logging.getLogger(__name__)


# =========================================================================
# MATCHING STRATEGIES
# =========================================================================

MATCH_ANY_TERM = "any_term"
MATCH_PHRASE = "phrase"
MATCH_PHRASE_OR_KEYWORD = "phrase_or_keyword"

STOP_WORDS = frozenset({"with", "and", "the", "a", "an", "or"})


def extract_key_terms(text: str) -> List[str]:
    """
    Split an attribute value into the words worth looking for.

    Lowercases, splits on whitespace and drops words of two characters or
    fewer plus a handful of connectives.

    Example: "curly brown hair with highlights" -> ["curly", "brown", "hair", "highlights"]
    """
    return [
        word for word in text.lower().split()
        if len(word) > 2 and word not in STOP_WORDS
    ]


def _match_any_term(expected: str, prompt_lower: str, rule: Dict[str, Any]) -> bool:
    terms = extract_key_terms(expected)
    if not terms:
        # Nothing descriptive to look for ("25", "tan"): fall back to the phrase
        return expected.lower() in prompt_lower
    return any(term in prompt_lower for term in terms)


def _match_phrase(expected: str, prompt_lower: str, rule: Dict[str, Any]) -> bool:
    return expected.lower() in prompt_lower


def _match_phrase_or_keyword(expected: str, prompt_lower: str, rule: Dict[str, Any]) -> bool:
    return rule["keyword"] in prompt_lower or expected.lower() in prompt_lower


MATCHERS = {
    MATCH_ANY_TERM: _match_any_term,
    MATCH_PHRASE: _match_phrase,
    MATCH_PHRASE_OR_KEYWORD: _match_phrase_or_keyword,
}


# =========================================================================
# RULE TABLE
# =========================================================================

# Attribute -> how to match it and what to say when it is missing.
# Dict order is the order attributes are checked and violations reported.
ATTRIBUTE_RULES: Dict[str, Dict[str, Any]] = {
    "hair": {
        "strategy": MATCH_ANY_TERM,
        "issue": 'Hair specification "{expected}" not found in prompt',
    },
    "ethnicity": {
        "strategy": MATCH_PHRASE,
        "issue": 'Ethnicity "{expected}" not explicitly mentioned in prompt',
    },
    "skin_tone": {
        "strategy": MATCH_PHRASE_OR_KEYWORD,
        "keyword": "skin tone",
        "issue": "Skin tone not specified in prompt",
    },
    "eyes": {
        "strategy": MATCH_ANY_TERM,
        "issue": 'Eye description "{expected}" not found in prompt',
    },
    "default_clothing": {
        "strategy": MATCH_PHRASE_OR_KEYWORD,
        "keyword": "wearing",
        "soft": True,
        "issue": 'Default clothing "{expected}" may not be preserved (brief can override)',
    },
    "age": {
        "strategy": MATCH_ANY_TERM,
        "issue": 'Age "{expected}" not found in prompt',
    },
}


QUALITY_ASSESSMENTS = {
    QualityTier.EXCELLENT: "Character specifications excellently preserved",
    QualityTier.GOOD: "Character specifications well preserved with minor variations",
    QualityTier.FAIR: "Character specifications partially preserved - review recommended",
    QualityTier.POOR: "Character specifications poorly preserved - regeneration recommended",
}


# =========================================================================
# VALIDATION
# =========================================================================

def _coerce_characters(characters: Iterable[Union[Character, Dict[str, Any]]]) -> List[Character]:
    """Accept raw rows too; rows that cannot be read as a character are skipped."""
    coerced = []
    for char in characters or []:
        if isinstance(char, Character):
            coerced.append(char)
            continue
        try:
            coerced.append(Character.model_validate(char))
        except ValidationError as e:
            logger.warning(f"⚠️ Skipping unreadable character row in consistency check: {e.error_count()} errors")
    return coerced


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def validate_character_consistency(
    prompt: str,
    characters: Iterable[Union[Character, Dict[str, Any]]],
) -> ValidationResult:
    """
    Check that every character's locked attributes appear in the prompt.

    Args:
        prompt: Final optimized prompt
        characters: Characters locked into the video (models or raw rows)

    Returns:
        ValidationResult. ``quality_score`` is the rounded percentage of
        preserved attributes, 100 when there was nothing to check.
    """
    prompt_lower = (prompt or "").lower()
    violations: List[CharacterViolation] = []
    total = 0
    preserved = 0

    for char in _coerce_characters(characters):
        fingerprint = char.visual_fingerprint
        if fingerprint is None:
            continue

        for attribute, expected in fingerprint.present_attributes(list(ATTRIBUTE_RULES)).items():
            rule = ATTRIBUTE_RULES[attribute]
            total += 1

            if MATCHERS[rule["strategy"]](expected, prompt_lower, rule):
                preserved += 1
                continue

            violations.append(CharacterViolation(
                character_name=char.name,
                attribute=attribute,
                expected=expected,
                issue=rule["issue"].format(expected=expected),
                soft=rule.get("soft", False),
            ))

    score = _round_half_up(100 * preserved / total) if total > 0 else 100

    result = ValidationResult(
        valid=len(violations) == 0,
        quality_score=score,
        violations=violations,
        details=ValidationDetails(
            total_attributes=total,
            preserved_attributes=preserved,
            violated_attributes=len(violations),
        ),
    )

    if violations:
        summary = ", ".join(f"{v.character_name}.{v.attribute}" for v in violations[:5])
        logger.warning(
            f"⚠️ Character consistency {score}/100: {len(violations)} violation(s) ({summary})"
        )
    else:
        logger.info(f"✅ Character consistency {score}/100 ({preserved}/{total} attributes preserved)")

    return result


# Short alias used by the orchestration layer
validate = validate_character_consistency


def get_quality_tier(score: int) -> QualityTier:
    """Lower bounds are inclusive: 90 is excellent, 89 is good."""
    if score >= 90:
        return QualityTier.EXCELLENT
    if score >= 75:
        return QualityTier.GOOD
    if score >= 60:
        return QualityTier.FAIR
    return QualityTier.POOR


def get_quality_assessment(result: Union[ValidationResult, int]) -> str:
    """Fixed human-readable sentence for a result (or a bare score)."""
    score = result.quality_score if isinstance(result, ValidationResult) else result
    return QUALITY_ASSESSMENTS[get_quality_tier(score)]
