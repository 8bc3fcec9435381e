"""
Interference summaries for presentation.

summarize_interference() buckets overlap points into fixed named regions
and reports whether each region is mainly constructive or destructive,
with a short mixing note. dominant_ranges() profiles where a single
track's energy sits.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple

import numpy as np

from .models import OverlapPoint, Spectrum
from .utils import DOMINANT_RANGES, denormalize_magnitude


@dataclass(frozen=True)
class InterferenceRegion:
    """
    Constructive/destructive balance of overlaps within one named region.

    Attributes:
        label: Region name ("Sub-Bass", "Bass", ...)
        low: Region low edge in Hz
        high: Region high edge in Hz
        constructive_count: In-phase overlap points in the region
        destructive_count: Anti-phase overlap points in the region
        description: Mixing note matching the dominant interference type
    """
    label: str
    low: float
    high: float
    constructive_count: int
    destructive_count: int
    description: str

    @property
    def point_count(self) -> int:
        return self.constructive_count + self.destructive_count

    @property
    def is_mainly_destructive(self) -> bool:
        return self.destructive_count > self.point_count / 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "low": self.low,
            "high": self.high,
            "constructive_count": self.constructive_count,
            "destructive_count": self.destructive_count,
            "is_mainly_destructive": self.is_mainly_destructive,
            "description": self.description,
        }


# (label, low, high, destructive note, constructive note)
# The first region includes its low edge; the rest are (low, high].
_REGIONS: List[Tuple[str, float, float, str, str]] = [
    (
        "Sub-Bass", 20.0, 60.0,
        "Destructive interference in this range can cause phase cancellation and weak bass. "
        "Consider high-pass filtering one track.",
        "Constructive interference here can reinforce the foundation of your mix, "
        "giving it weight and power.",
    ),
    (
        "Bass", 60.0, 250.0,
        "Destructive interference here creates muddy, undefined bass. "
        "Consider cutting some frequencies from one track.",
        "Constructive interference in this range adds warmth and fullness to your mix.",
    ),
    (
        "Low-Mid", 250.0, 500.0,
        "Destructive interference in low-mids often creates a boxy, confined sound. "
        "Consider using a bell EQ to create space.",
        "Constructive interference here adds body and thickness to your instruments.",
    ),
    (
        "Mid", 500.0, 2000.0,
        "Destructive interference in mids can make tracks fight for attention. "
        "Consider carving out space with complementary EQ.",
        "Constructive interference in this range enhances presence and clarity in your mix.",
    ),
    (
        "High-Mid", 2000.0, 5000.0,
        "Destructive interference here can cause harshness or loss of definition. "
        "Consider subtle shelving EQ to balance.",
        "Constructive interference in high-mids adds definition and presence to your mix.",
    ),
    (
        "High", 5000.0, 20000.0,
        "Destructive interference in highs can dull your mix. "
        "Consider boosting air frequencies in one track.",
        "Constructive interference here adds sparkle and air to your mix.",
    ),
]


def _in_region(frequency: float, index: int, low: float, high: float) -> bool:
    if index == 0:
        return low <= frequency <= high
    if index == len(_REGIONS) - 1:
        # Everything above the high-mid edge counts as "High"
        return frequency > low
    return low < frequency <= high


def summarize_interference(points: Iterable[OverlapPoint]) -> Tuple[InterferenceRegion, ...]:
    """
    Summarize overlap points per named frequency region.

    Regions without any overlap points are omitted.
    """
    points = list(points)
    regions = []
    for index, (label, low, high, destructive_note, constructive_note) in enumerate(_REGIONS):
        members = [p for p in points if _in_region(p.frequency, index, low, high)]
        if not members:
            continue
        constructive = sum(1 for p in members if p.is_constructive)
        destructive = len(members) - constructive
        mainly_destructive = destructive > len(members) / 2
        regions.append(InterferenceRegion(
            label=label,
            low=low,
            high=high,
            constructive_count=constructive,
            destructive_count=destructive,
            description=destructive_note if mainly_destructive else constructive_note,
        ))
    return tuple(regions)


@dataclass(frozen=True)
class DominantRange:
    """Relative energy of one named range of a track (strongest range = 1.0)."""
    label: str
    low: float
    high: float
    intensity: float

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "low": self.low, "high": self.high, "intensity": self.intensity}


def dominant_ranges(spectrum: Spectrum) -> Tuple[DominantRange, ...]:
    """
    Energy per named range for one spectrum, normalized to the strongest range.

    Bins with zero magnitude (at or below the -140 dB floor) contribute nothing.
    """
    power = np.where(
        spectrum.magnitudes > 0.0,
        10.0 ** (denormalize_magnitude(spectrum.magnitudes) / 10.0),
        0.0,
    )

    energies = []
    for label, low, high in DOMINANT_RANGES:
        mask = (spectrum.frequencies >= low) & (spectrum.frequencies < high)
        energies.append(float(np.sum(power[mask])))

    peak = max(energies) if energies else 0.0
    return tuple(
        DominantRange(label=label, low=low, high=high, intensity=energy / peak if peak > 0 else 0.0)
        for (label, low, high), energy in zip(DOMINANT_RANGES, energies)
    )
