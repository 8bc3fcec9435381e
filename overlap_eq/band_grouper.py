"""
Band Grouper

Merges adjacent overlap points into contiguous frequency bands with a
single left-to-right sweep, then drops bands too narrow or too sparse to be
a genuine masking region.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from .config import AdvisorConfig
from .models import FrequencyBand, OverlapPoint

logger = logging.getLogger(__name__)


def _sweep(points: Iterable[OverlapPoint], adjacency_gap_hz: float) -> List[List[OverlapPoint]]:
    """Split frequency-sorted points into runs separated by gaps > adjacency_gap_hz."""
    runs: List[List[OverlapPoint]] = []
    for point in points:
        if runs and point.frequency - runs[-1][-1].frequency <= adjacency_gap_hz:
            runs[-1].append(point)
        else:
            runs.append([point])
    return runs


def group_into_bands(
    points: Iterable[OverlapPoint],
    adjacency_gap_hz: float = 100.0,
    min_band_width_hz: float = 50.0,
    min_points: int = 3
) -> Tuple[FrequencyBand, ...]:
    """
    Group overlap points into frequency bands.

    A new band starts whenever a point lies more than adjacency_gap_hz above
    the running band's high edge. Bands narrower than min_band_width_hz or
    holding fewer than min_points points are discarded.

    Args:
        points: Overlap points (any order; sorted stably by frequency)
        adjacency_gap_hz: Largest gap that still joins a point to a band
        min_band_width_hz: Minimum high - low of a surviving band
        min_points: Minimum point count of a surviving band

    Returns:
        Non-overlapping bands sorted ascending by low edge
    """
    ordered = sorted(points, key=lambda p: p.frequency)
    runs = _sweep(ordered, adjacency_gap_hz)

    bands = []
    for run in runs:
        band = FrequencyBand(low=run[0].frequency, high=run[-1].frequency, points=tuple(run))
        if band.width < min_band_width_hz or len(band.points) < min_points:
            continue
        bands.append(band)

    logger.debug(
        f"Grouped {len(ordered)} points into {len(runs)} runs, "
        f"{len(bands)} bands survived filtering"
    )
    return tuple(bands)


class BandGrouper:
    """Band grouping bound to the settings of an AdvisorConfig."""

    def __init__(self, config: Optional[AdvisorConfig] = None):
        self.config = config or AdvisorConfig()

    def group(self, points: Iterable[OverlapPoint]) -> Tuple[FrequencyBand, ...]:
        return group_into_bands(
            points,
            adjacency_gap_hz=self.config.adjacency_gap_hz,
            min_band_width_hz=self.config.min_band_width_hz,
            min_points=self.config.min_band_points,
        )
