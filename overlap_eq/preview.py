"""
After-EQ spectrum preview.

Applies a track's EQ suggestions to its spectrum using the magnitude
response of the corresponding RBJ biquads, so a presentation layer can show
the spectra before and after the recommended cuts.
"""

from typing import Iterable, Sequence, Tuple

import numpy as np

from .models import EQSuggestion, Spectrum, TrackId
from .overlap_detector import check_compatible
from .parametric_eq import FilterType, filter_response_db
from .utils import denormalize_magnitude, normalize_db


def suggestion_response_db(
    suggestions: Iterable[EQSuggestion],
    track: TrackId,
    frequencies: Sequence[float],
    sample_rate: float
) -> np.ndarray:
    """
    Summed magnitude response (dB) of every suggestion aimed at track.

    Bell cuts are centered on the suggested range; high-pass suggestions
    use the range's high edge as the corner frequency.
    """
    freqs = np.asarray(frequencies, dtype=np.float64)
    response = np.zeros_like(freqs)

    for suggestion in suggestions:
        if suggestion.track is not track:
            continue
        if suggestion.filter_type == FilterType.HIGHPASS:
            corner = suggestion.frequency_range.high
        else:
            corner = suggestion.center_frequency
        response += filter_response_db(
            suggestion.filter_type,
            corner,
            suggestion.gain_reduction_db,
            suggestion.q,
            freqs,
            sample_rate,
        )

    return response


def preview_spectrum(
    spectrum: Spectrum,
    suggestions: Iterable[EQSuggestion],
    track: TrackId
) -> Spectrum:
    """
    Return a new spectrum with the track's suggestions applied.

    Bins already at the -140 dB floor stay there.
    """
    response = suggestion_response_db(
        suggestions, track, spectrum.frequencies, spectrum.sample_rate
    )
    shaped = normalize_db(denormalize_magnitude(spectrum.magnitudes) + response)
    shaped = np.where(spectrum.magnitudes > 0.0, shaped, 0.0)
    return spectrum.with_magnitudes(shaped)


def preview_pair(
    spectrum1: Spectrum,
    spectrum2: Spectrum,
    suggestions: Sequence[EQSuggestion]
) -> Tuple[Spectrum, Spectrum]:
    """
    Preview both tracks after EQ.

    Raises:
        MismatchedSpectraError: If the spectra use different bin mappings
    """
    check_compatible(spectrum1, spectrum2)
    return (
        preview_spectrum(spectrum1, suggestions, TrackId.ONE),
        preview_spectrum(spectrum2, suggestions, TrackId.TWO),
    )
