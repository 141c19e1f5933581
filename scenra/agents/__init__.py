"""Roundtable personas for Scenra"""

from .personas import (
    Persona,
    PERSONAS,
    PERSONA_ORDER,
    get_persona,
)

__all__ = [
    "Persona",
    "PERSONAS",
    "PERSONA_ORDER",
    "get_persona",
]
