"""
Series data access for the roundtable.

The core never issues its own SQL. Routes fetch the rows a generation run
needs through a SeriesRepository and hand them to the context aggregator.
Rows are returned raw (plain dicts) and validated by the aggregator.

Lookups are independent point reads with no transaction around them. A
series edited between two reads can yield a context assembled from two
snapshots; that is accepted. Unknown ids read as None / [].

InMemorySeriesRepository is the shipped implementation, optionally seeded
from a YAML or JSON file:

    series:
      - id: s-1
        name: Night Shift
        sora_camera_style: handheld, intimate
        characters:
          - id: c-1
            name: Maya
            visual_fingerprint: {hair: "long black hair", eyes: "dark brown eyes"}
        settings: [...]
        visual_assets: [...]
        relationships: [...]
"""

import logging
from abc import ABC, abstractmethod
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

logger = logging.getLogger(__name__)

_CHILD_COLLECTIONS = ("characters", "settings", "visual_assets", "relationships")


class SeriesRepository(ABC):
    """Read-only view of series data used to build a generation context"""

    @abstractmethod
    async def get_series(self, series_id: str) -> Optional[Dict[str, Any]]:
        """Series row (including sora_* style columns), or None."""

    @abstractmethod
    async def get_characters(self, series_id: str, character_ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """Character rows for the series, optionally restricted to ids (in the given order)."""

    @abstractmethod
    async def get_settings(self, series_id: str, setting_ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """Setting rows for the series, optionally restricted to ids (in the given order)."""

    @abstractmethod
    async def get_visual_assets(self, series_id: str) -> List[Dict[str, Any]]:
        """Visual asset rows, ordered by display_order."""

    @abstractmethod
    async def get_relationships(self, series_id: str) -> List[Dict[str, Any]]:
        """Character relationship rows for the series."""


def _select(rows: List[Dict[str, Any]], ids: Optional[Sequence[str]]) -> List[Dict[str, Any]]:
    if ids is None:
        return [deepcopy(r) for r in rows]
    by_id = {str(r.get("id")): r for r in rows}
    selected = []
    for row_id in ids:
        row = by_id.get(str(row_id))
        if row is None:
            logger.debug(f"Row {row_id} not found, treating as absent")
            continue
        selected.append(deepcopy(row))
    return selected


class InMemorySeriesRepository(SeriesRepository):
    """Dictionary-backed repository. Returned rows are copies."""

    def __init__(self, series: Optional[List[Dict[str, Any]]] = None):
        self._series: Dict[str, Dict[str, Any]] = {}
        self._children: Dict[str, Dict[str, List[Dict[str, Any]]]] = {}
        for entry in series or []:
            self.add_series(entry)

    @classmethod
    def from_file(cls, path: str) -> "InMemorySeriesRepository":
        """Load a YAML (or JSON, which is valid YAML) seed file."""
        with open(Path(path), 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        repository = cls(data.get("series", []))
        logger.info(f"📚 Loaded {len(repository._series)} series from {path}")
        return repository

    def add_series(self, entry: Dict[str, Any]):
        """Register one series together with its nested collections."""
        if "id" not in entry:
            raise ValueError("series entry requires an 'id'")
        series_id = str(entry["id"])
        row = {k: v for k, v in entry.items() if k not in _CHILD_COLLECTIONS}
        self._series[series_id] = row
        self._children[series_id] = {
            name: list(entry.get(name) or []) for name in _CHILD_COLLECTIONS
        }

    async def get_series(self, series_id: str) -> Optional[Dict[str, Any]]:
        row = self._series.get(str(series_id))
        return deepcopy(row) if row is not None else None

    async def get_characters(self, series_id: str, character_ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        rows = self._children.get(str(series_id), {}).get("characters", [])
        return _select(rows, character_ids)

    async def get_settings(self, series_id: str, setting_ids: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        rows = self._children.get(str(series_id), {}).get("settings", [])
        return _select(rows, setting_ids)

    async def get_visual_assets(self, series_id: str) -> List[Dict[str, Any]]:
        rows = self._children.get(str(series_id), {}).get("visual_assets", [])
        return sorted(_select(rows, None), key=lambda r: r.get("display_order") or 0)

    async def get_relationships(self, series_id: str) -> List[Dict[str, Any]]:
        rows = self._children.get(str(series_id), {}).get("relationships", [])
        return _select(rows, None)


# Singleton instance
_series_repository: Optional[SeriesRepository] = None


def get_series_repository() -> SeriesRepository:
    """Get the global repository (an empty in-memory one if never initialized)."""
    global _series_repository
    if _series_repository is None:
        _series_repository = InMemorySeriesRepository()
    return _series_repository


def init_series_repository(seed_path: Optional[str] = None) -> SeriesRepository:
    """Initialize the global repository (call at app startup)."""
    global _series_repository
    if seed_path:
        _series_repository = InMemorySeriesRepository.from_file(seed_path)
    else:
        _series_repository = InMemorySeriesRepository()
    return _series_repository


def set_series_repository(repository: SeriesRepository):
    """Swap in another repository implementation."""
    global _series_repository
    _series_repository = repository


def reset_series_repository():
    """Reset the singleton (useful for testing)."""
    global _series_repository
    _series_repository = None
