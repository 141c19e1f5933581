"""
Text Processing for LLM Output

Pure functions for turning raw model output into usable values:
- JSON extraction and repair (code fences, preamble text, trailing commas)
- Hashtag normalization
- Whitespace cleanup for persona responses

Architecture:
- Called by the roundtable orchestrator when parsing synthesis output
- No external dependencies, no I/O
"""

import json
import re
import logging
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


# =========================================================================
# JSON CLEANING
# =========================================================================

def clean_json_output(output: str) -> str:
    """
    Clean markdown code blocks from LLM output and repair common JSON issues.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Preamble text before JSON (e.g., "Here is the prompt:\n{...}")
    - Trailing commas before } or ]
    - Invalid control characters (0x00-0x1f except tab, newline, carriage return)

    Args:
        output: Raw LLM output possibly containing markdown

    Returns:
        Cleaned JSON string ready for parsing
    """
    result_str = (output or "").strip()

    # Keep \t, \n, \r; everything else below 0x20 breaks parsing
    result_str = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f]', '', result_str)

    # Strategy 1: JSON inside a markdown code block
    json_match = re.search(r'```(?:json)?\s*(\{[\s\S]*\})\s*```', result_str)
    if json_match:
        extracted = json_match.group(1).strip()
        if _parses(extracted):
            return extracted
        result_str = extracted

    # Strategy 2: first balanced JSON object anywhere in the text
    extracted = _extract_json_object(result_str)
    if extracted:
        if _parses(extracted):
            return extracted
        result_str = extracted

    if _parses(result_str):
        return result_str

    # Repair: trailing commas
    repaired = re.sub(r',(\s*[}\]])', r'\1', result_str)
    return repaired


def _parses(text: str) -> bool:
    try:
        json.loads(text, strict=False)
        return True
    except json.JSONDecodeError:
        return False


def _extract_json_object(text: str) -> Optional[str]:
    """
    Extract a JSON object from text by finding balanced braces.

    Args:
        text: Raw text that may contain JSON somewhere within it

    Returns:
        The extracted JSON string, or None if no balanced object found
    """
    start_idx = text.find('{')
    if start_idx == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i in range(start_idx, len(text)):
        char = text[i]

        if escape_next:
            escape_next = False
            continue

        if char == '\\' and in_string:
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            continue

        if in_string:
            continue

        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return text[start_idx:i + 1]

    return None


def parse_json_object(output: str) -> Dict[str, Any]:
    """
    Parse an LLM response that should be a JSON object.

    Raises:
        ValueError: if no JSON object can be recovered
    """
    cleaned = clean_json_output(output)
    try:
        parsed = json.loads(cleaned, strict=False)
    except json.JSONDecodeError as e:
        raise ValueError(f"Model output is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


# =========================================================================
# FIELD NORMALIZATION
# =========================================================================

def normalize_hashtags(raw: Any, limit: Optional[int] = None) -> List[str]:
    """
    Normalize hashtags to "#tag" form, de-duplicated case-insensitively.

    Accepts a list of strings or a single whitespace/comma separated string.
    Order is preserved.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        candidates: Iterable[Any] = re.split(r'[\s,]+', raw)
    elif isinstance(raw, (list, tuple)):
        candidates = raw
    else:
        return []

    tags: List[str] = []
    seen = set()
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        tag = re.sub(r'[^\w]', '', candidate.strip().lstrip('#'))
        if not tag:
            continue
        key = tag.lower()
        if key in seen:
            continue
        seen.add(key)
        tags.append(f"#{tag}")
        if limit and len(tags) >= limit:
            break
    return tags


def clean_persona_response(text: Optional[str]) -> str:
    """Strip surrounding whitespace and wrapping quotes from a persona turn."""
    if not text:
        return ""
    cleaned = text.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in ('"', "'"):
        cleaned = cleaned[1:-1].strip()
    return cleaned
