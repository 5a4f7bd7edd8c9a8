"""Guide offsets to row regions."""

from __future__ import annotations

import math
from typing import Iterable, List

from .errors import RegionCapacityError
from .models import Guide, Region

DEFAULT_MAX_REGIONS = 100

__all__ = [
    "DEFAULT_MAX_REGIONS",
    "check_capacity",
    "compute_regions",
    "default_region_name",
    "horizontal_offsets",
    "round_half_up",
]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up, as design hosts do."""

    return int(math.floor(value + 0.5))


def default_region_name(index: int, *, prefix: str = "slice", digits: int = 3) -> str:
    """Return the generated name for the region at zero-based *index*."""

    return f"{prefix}-{str(index + 1).zfill(digits)}"


def horizontal_offsets(guides: Iterable[Guide]) -> List[float]:
    """Return the offsets of the horizontal (``Y`` axis) guides."""

    return [guide.offset for guide in guides if guide.axis == "Y"]


def compute_regions(
    frame_height: float,
    offsets: Iterable[float],
    *,
    prefix: str = "slice",
    digits: int = 3,
) -> List[Region]:
    """
    Split a frame of *frame_height* into contiguous rows at the given guide *offsets*.

    Offsets are rounded to whole units; those at or outside the frame edges are
    discarded and duplicates collapse to one boundary. No offsets at all yields an
    empty list rather than a single full-height region.

    Returns:
        List[Region]: Rows ordered top to bottom covering ``[0, round(frame_height)]``.
    """

    raw = list(offsets)
    if not raw:
        return []

    height = round_half_up(frame_height)
    positions = sorted({y for y in (round_half_up(offset) for offset in raw) if 0 < y < height})
    boundaries = [0, *positions, height]

    regions: List[Region] = []
    for y0, y1 in zip(boundaries, boundaries[1:]):
        if y1 <= y0:
            continue
        index = len(regions)
        regions.append(
            Region(
                index=index,
                y0=y0,
                y1=y1,
                default_name=default_region_name(index, prefix=prefix, digits=digits),
            )
        )
    return regions


def check_capacity(regions: List[Region], limit: int = DEFAULT_MAX_REGIONS) -> None:
    """Raise :class:`RegionCapacityError` when *regions* exceeds *limit*."""

    if len(regions) > limit:
        raise RegionCapacityError(len(regions), limit)
