"""
EQ Advisor

Turns grouped overlap bands into concrete parametric EQ suggestions.

Three passes run in order and their results are concatenated:

1. Band pass: every mainly destructive band yields a bell cut on the louder
   track, with Q from the band's width and a cut depth that grows with the
   band's mean overlap intensity and destructive ratio.
2. Low-end pass: heavy shared energy below the low-end cutoff yields one
   high-pass suggestion on the track with the weaker low end.
3. Fallback: if the band pass found nothing but destructive overlap exists,
   one gentle cut is centered on the strongest destructive point.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import AdvisorConfig
from .models import (
    EQSuggestion,
    FrequencyBand,
    FrequencyRange,
    OverlapPoint,
    SuggestionKind,
    TrackId,
)
from .parametric_eq import FilterType
from .utils import band_label, clamp

logger = logging.getLogger(__name__)

MIN_Q = 0.1
MAX_Q = 10.0


def derive_q(low: float, high: float) -> float:
    """Q = center / bandwidth, clamped to [0.1, 10] and rounded to 0.1."""
    width = high - low
    if width <= 0:
        return MAX_Q
    q = clamp(((low + high) / 2.0) / width, MIN_Q, MAX_Q)
    return clamp(round(q, 1), MIN_Q, MAX_Q)


def derive_gain_reduction(
    mean_intensity: float,
    destructive_ratio: float,
    config: Optional[AdvisorConfig] = None
) -> float:
    """
    Cut depth in dB for a band.

    base + intensity_coeff * mean_intensity + destructive_coeff * destructive_ratio,
    bounded to [max_cut_db, min_cut_db] and rounded to 0.1 dB. With the
    coefficients <= 0, more overlap and a higher destructive ratio never
    produce a gentler cut.
    """
    config = config or AdvisorConfig()
    raw = (
        config.gain_base_db
        + config.gain_intensity_coeff * mean_intensity
        + config.gain_destructive_coeff * destructive_ratio
    )
    gain = clamp(raw, config.max_cut_db, config.min_cut_db)
    return clamp(round(gain, 1), config.max_cut_db, config.min_cut_db)


def _louder_track(magnitude1: float, magnitude2: float) -> TrackId:
    # Ties go to track 2
    if magnitude1 > magnitude2:
        return TrackId.ONE
    return TrackId.TWO


def _weaker_track(magnitude1: float, magnitude2: float) -> TrackId:
    # Ties go to track 2
    if magnitude1 < magnitude2:
        return TrackId.ONE
    return TrackId.TWO


class EQAdvisor:
    """
    Synthesizes EQ suggestions from overlap bands.

    Usage:
        >>> advisor = EQAdvisor(AdvisorConfig())
        >>> suggestions = advisor.advise(bands, points)
    """

    def __init__(self, config: Optional[AdvisorConfig] = None):
        self.config = config or AdvisorConfig()

    def advise(
        self,
        bands: Iterable[FrequencyBand],
        points: Optional[Sequence[OverlapPoint]] = None
    ) -> Tuple[EQSuggestion, ...]:
        """
        Produce suggestions for a set of bands.

        Args:
            bands: Bands from the grouper
            points: Every overlap point from the detector, including those
                    the grouper discarded. Defaults to the bands' points.

        Returns:
            Band suggestions, then the low-end suggestion, then the fallback
        """
        bands = tuple(bands)
        if points is None:
            points = tuple(p for band in bands for p in band.points)
        else:
            points = tuple(sorted(points, key=lambda p: p.frequency))

        suggestions: List[EQSuggestion] = []
        for band in bands:
            suggestion = self._suggest_for_band(band)
            if suggestion is not None:
                suggestions.append(suggestion)
        band_suggestion_count = len(suggestions)

        low_end = self._low_end_suggestion(points, suggestions)
        if low_end is not None:
            suggestions.append(low_end)

        if band_suggestion_count == 0:
            fallback = self._fallback_suggestion(points)
            if fallback is not None:
                suggestions.append(fallback)

        logger.debug(
            f"Advised {len(suggestions)} suggestions from {len(bands)} bands "
            f"and {len(points)} overlap points"
        )
        return tuple(suggestions)

    def _suggest_for_band(self, band: FrequencyBand) -> Optional[EQSuggestion]:
        if not band.points or not band.is_mainly_destructive:
            return None

        track = _louder_track(band.mean_magnitude(TrackId.ONE), band.mean_magnitude(TrackId.TWO))
        center = band.center
        label = band_label(center)

        return EQSuggestion(
            track=track,
            frequency_range=FrequencyRange(band.low, band.high),
            gain_reduction_db=derive_gain_reduction(
                band.mean_intensity, band.destructive_ratio, self.config
            ),
            q=derive_q(band.low, band.high),
            reason=(
                f"Significant frequency masking in the {label} range around "
                f"{round(center)}Hz: {band.destructive_count} of {len(band.points)} "
                f"overlapping bins are out of phase"
            ),
            filter_type=FilterType.PEAK,
            kind=SuggestionKind.BAND,
        )

    def _low_end_suggestion(
        self,
        points: Sequence[OverlapPoint],
        existing: Sequence[EQSuggestion]
    ) -> Optional[EQSuggestion]:
        config = self.config
        low_points = [p for p in points if p.frequency < config.low_end_cutoff_hz]
        if len(low_points) <= config.low_end_point_threshold:
            return None

        mean1 = sum(p.magnitude1 for p in low_points) / len(low_points)
        mean2 = sum(p.magnitude2 for p in low_points) / len(low_points)
        track = _weaker_track(mean1, mean2)

        for suggestion in existing:
            if suggestion.track is track and suggestion.frequency_range.low < config.low_end_guard_hz:
                return None

        low, high = config.highpass_range
        return EQSuggestion(
            track=track,
            frequency_range=FrequencyRange(low, high),
            gain_reduction_db=config.highpass_gain_db,
            q=config.highpass_q,
            reason=(
                f"Low-frequency buildup: {len(low_points)} overlapping bins below "
                f"{round(config.low_end_cutoff_hz)}Hz. High-pass the track with the "
                f"weaker low end to leave room for the other"
            ),
            filter_type=FilterType.HIGHPASS,
            kind=SuggestionKind.LOW_END,
        )

    def _fallback_suggestion(self, points: Sequence[OverlapPoint]) -> Optional[EQSuggestion]:
        destructive = [p for p in points if not p.is_constructive]
        if not destructive:
            return None

        # max() keeps the first (lowest frequency) point on ties
        strongest = max(destructive, key=lambda p: p.overlap_intensity)
        config = self.config
        half_width = config.fallback_bandwidth_hz / 2.0

        return EQSuggestion(
            track=_louder_track(strongest.magnitude1, strongest.magnitude2),
            frequency_range=FrequencyRange(
                max(0.0, strongest.frequency - half_width),
                strongest.frequency + half_width,
            ),
            gain_reduction_db=config.fallback_gain_db,
            q=config.fallback_q,
            reason=(
                f"Destructive overlap around {round(strongest.frequency)}Hz in the "
                f"{band_label(strongest.frequency)} range. A gentle cut is a good "
                f"starting point"
            ),
            filter_type=FilterType.PEAK,
            kind=SuggestionKind.FALLBACK,
        )


def advise(
    bands: Iterable[FrequencyBand],
    points: Optional[Sequence[OverlapPoint]] = None,
    config: Optional[AdvisorConfig] = None
) -> Tuple[EQSuggestion, ...]:
    """
    Convenience function: advise EQ suggestions for a set of bands.

    See EQAdvisor.advise.
    """
    return EQAdvisor(config).advise(bands, points)
