"""Spatial cell indexing for geo-keyed edges.

A point is mapped to its S2 leaf cell; the edge's source key is the list of
ancestor cell ids over a contiguous range of levels, so a query at any of
those resolutions finds the edge.
"""

from __future__ import annotations

import s2sphere

MIN_CELL_LEVEL = 0
MAX_CELL_LEVEL = 30
DEFAULT_MIN_CELL_LEVEL = 10
DEFAULT_MAX_CELL_LEVEL = 18

_INT64_SIGN = 1 << 63
_UINT64 = 1 << 64


def _to_signed(cell_id: int) -> int:
    # Graph stores keep vertex ids as signed 64-bit integers
    return cell_id - _UINT64 if cell_id >= _INT64_SIGN else cell_id


def index_cells(
    lat: float,
    lng: float,
    min_level: int = DEFAULT_MIN_CELL_LEVEL,
    max_level: int = DEFAULT_MAX_CELL_LEVEL,
) -> list[int]:
    """Cell ids enclosing a point, one per level from min_level to max_level.

    Args:
        lat: Latitude in degrees
        lng: Longitude in degrees
        min_level: Coarsest level, inclusive
        max_level: Finest level, inclusive

    Returns:
        Signed 64-bit cell ids ordered from coarsest to finest

    Raises:
        ValueError: If the level range is outside 0..30 or inverted
    """
    if not MIN_CELL_LEVEL <= min_level <= max_level <= MAX_CELL_LEVEL:
        raise ValueError(f"Invalid cell level range [{min_level}, {max_level}]")

    leaf = s2sphere.CellId.from_lat_lng(s2sphere.LatLng.from_degrees(lat, lng))
    return [_to_signed(leaf.parent(level).id()) for level in range(min_level, max_level + 1)]


def cell_key(cell_ids: list[int]) -> str:
    """Composite source key: decimal ids joined by commas."""
    return ",".join(str(cell_id) for cell_id in cell_ids)
