"""
Overlap Detector

Compares two spectra bin by bin and reports where both tracks carry
significant energy. Each reported bin is classified as constructive
(in-phase) or destructive (anti-phase) from the phase of the
cross-spectrum sum(X1 * conj(X2)) over the STFT frames both tracks share,
so the classification reflects the actual transform output.
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from .config import AdvisorConfig
from .models import MismatchedSpectraError, OverlapPoint, Spectrum
from .utils import wrap_phase

logger = logging.getLogger(__name__)


def check_compatible(spectrum1: Spectrum, spectrum2: Spectrum) -> None:
    """
    Ensure two spectra share the same bin-to-frequency mapping.

    Raises:
        MismatchedSpectraError: If bin counts or sample rates differ
    """
    if spectrum1.bin_count != spectrum2.bin_count:
        raise MismatchedSpectraError(
            f"Cannot compare spectra with {spectrum1.bin_count} and "
            f"{spectrum2.bin_count} bins"
        )
    if not math.isclose(spectrum1.sample_rate, spectrum2.sample_rate):
        raise MismatchedSpectraError(
            f"Cannot compare spectra at {spectrum1.sample_rate:g} Hz and "
            f"{spectrum2.sample_rate:g} Hz; resample one track first"
        )


def phase_differences(spectrum1: Spectrum, spectrum2: Spectrum) -> np.ndarray:
    """
    Mean phase difference (track 1 minus track 2) per bin, in (-pi, pi].

    Only frames present in both spectra are used, so tracks of different
    length are compared from their common start point.
    """
    check_compatible(spectrum1, spectrum2)
    n_frames = min(spectrum1.frame_count, spectrum2.frame_count)
    cross = np.sum(
        spectrum1.frames[:n_frames] * np.conj(spectrum2.frames[:n_frames]),
        axis=0,
    )
    return wrap_phase(np.angle(cross))


def overlap_intensities(spectrum1: Spectrum, spectrum2: Spectrum, energy_threshold: float) -> np.ndarray:
    """
    min / max magnitude per bin; 0 where neither track exceeds energy_threshold.
    """
    louder = np.maximum(spectrum1.magnitudes, spectrum2.magnitudes)
    quieter = np.minimum(spectrum1.magnitudes, spectrum2.magnitudes)
    significant = louder > energy_threshold
    intensity = np.zeros_like(louder)
    np.divide(quieter, louder, out=intensity, where=significant)
    return intensity


def detect_overlaps(
    spectrum1: Spectrum,
    spectrum2: Spectrum,
    energy_threshold: float = 0.1,
    overlap_threshold: float = 0.3,
    phase_tolerance: float = math.pi / 2
) -> Tuple[OverlapPoint, ...]:
    """
    Find bins where both tracks compete for the same frequency.

    A bin is reported when max(m1, m2) > energy_threshold and
    min(m1, m2) / max(m1, m2) > overlap_threshold.

    Args:
        spectrum1: Track 1 spectrum
        spectrum2: Track 2 spectrum
        energy_threshold: Minimum magnitude of the louder track (0-1)
        overlap_threshold: Minimum overlap intensity (0-1)
        phase_tolerance: Largest |phase difference| (radians) still constructive

    Returns:
        Overlap points in ascending frequency order

    Raises:
        MismatchedSpectraError: If the spectra use different bin mappings
    """
    check_compatible(spectrum1, spectrum2)

    intensity = overlap_intensities(spectrum1, spectrum2, energy_threshold)
    louder = np.maximum(spectrum1.magnitudes, spectrum2.magnitudes)
    mask = (louder > energy_threshold) & (intensity > overlap_threshold)

    indices = np.flatnonzero(mask)
    if len(indices) == 0:
        logger.debug("No significant overlap between spectra")
        return ()

    phase = phase_differences(spectrum1, spectrum2)
    constructive = np.abs(phase) <= phase_tolerance

    points = tuple(
        OverlapPoint(
            frequency=float(spectrum1.frequencies[i]),
            magnitude1=float(spectrum1.magnitudes[i]),
            magnitude2=float(spectrum2.magnitudes[i]),
            overlap_intensity=float(intensity[i]),
            is_constructive=bool(constructive[i]),
            phase_difference=float(phase[i]),
        )
        for i in indices
    )

    destructive = sum(1 for p in points if not p.is_constructive)
    logger.debug(
        f"Detected {len(points)} overlap points "
        f"({len(points) - destructive} constructive, {destructive} destructive)"
    )
    return points


class OverlapDetector:
    """Overlap detection bound to the thresholds of an AdvisorConfig."""

    def __init__(self, config: Optional[AdvisorConfig] = None):
        self.config = config or AdvisorConfig()

    def detect(self, spectrum1: Spectrum, spectrum2: Spectrum) -> Tuple[OverlapPoint, ...]:
        return detect_overlaps(
            spectrum1,
            spectrum2,
            energy_threshold=self.config.energy_threshold,
            overlap_threshold=self.config.overlap_threshold,
            phase_tolerance=self.config.phase_tolerance,
        )
