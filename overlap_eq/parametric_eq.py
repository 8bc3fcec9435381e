"""
Parametric EQ Filter Math

Biquad design from the Robert Bristow-Johnson Audio EQ Cookbook and the
magnitude-response evaluation used to preview how a set of EQ suggestions
reshapes a spectrum.

References:
- W3C Audio EQ Cookbook: https://www.w3.org/TR/audio-eq-cookbook/
"""

import numpy as np
from enum import Enum
from typing import Sequence, Tuple
from scipy.signal import freqz

from .utils import SAMPLE_RATE, AMPLITUDE_EPSILON


# =============================================================================
# FILTER TYPES
# =============================================================================

class FilterType(Enum):
    """Filter shapes an EQ suggestion can describe."""
    PEAK = "peak"
    HIGHPASS = "highpass"


# =============================================================================
# BIQUAD DESIGN
# =============================================================================

def calculate_biquad_coefficients(
    filter_type: FilterType,
    frequency: float,
    sample_rate: float,
    gain_db: float = 0.0,
    q: float = 1.0
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Design one RBJ cookbook biquad.

    Args:
        filter_type: Filter shape
        frequency: Center (PEAK) or corner (HIGHPASS) in Hz
        sample_rate: Sample rate in Hz
        gain_db: Gain at the center frequency; only PEAK uses it
        q: Quality factor

    Returns:
        (b, a) with a[0] == 1

    Raises:
        ValueError: If filter_type is not a FilterType
    """
    # Keep w0 strictly inside (0, pi) so the design stays stable
    frequency = float(np.clip(frequency, 1.0, 0.99 * sample_rate / 2.0))
    w0 = 2.0 * np.pi * frequency / sample_rate
    cos_w0 = np.cos(w0)
    alpha = np.sin(w0) / (2.0 * max(q, 1e-3))

    # HIGHPASS uses the plain pole pair; PEAK scales alpha by A
    den = np.array([1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha])

    if filter_type == FilterType.PEAK:
        amp = 10.0 ** (gain_db / 40.0)
        num = np.array([1.0 + alpha * amp, -2.0 * cos_w0, 1.0 - alpha * amp])
        den = np.array([1.0 + alpha / amp, -2.0 * cos_w0, 1.0 - alpha / amp])
    elif filter_type == FilterType.HIGHPASS:
        num = np.array([1.0, -2.0, 1.0]) * (1.0 + cos_w0) / 2.0
    else:
        raise ValueError(f"Unknown filter type: {filter_type}")

    return num / den[0], den / den[0]


# =============================================================================
# MAGNITUDE RESPONSE
# =============================================================================

def biquad_response_db(
    b: np.ndarray,
    a: np.ndarray,
    frequencies: Sequence[float],
    sample_rate: float = SAMPLE_RATE
) -> np.ndarray:
    """
    Magnitude response in dB of a biquad, evaluated at arbitrary frequencies.

    Args:
        b, a: Coefficients from calculate_biquad_coefficients
        frequencies: Frequencies in Hz
        sample_rate: Sample rate the coefficients were designed for

    Returns:
        One dB value per frequency
    """
    _, h = freqz(b, a, worN=np.asarray(frequencies, dtype=np.float64), fs=sample_rate)
    return 20.0 * np.log10(np.maximum(np.abs(h), AMPLITUDE_EPSILON))


def filter_response_db(
    filter_type: FilterType,
    frequency: float,
    gain_db: float,
    q: float,
    frequencies: Sequence[float],
    sample_rate: float = SAMPLE_RATE
) -> np.ndarray:
    """Design a single band and return its magnitude response in dB."""
    b, a = calculate_biquad_coefficients(filter_type, frequency, sample_rate, gain_db, q)
    return biquad_response_db(b, a, frequencies, sample_rate)
