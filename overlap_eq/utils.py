"""
Utility functions and constants for the overlap engine.

Provides:
- Audio constants (default sample rate, analysis window cap)
- The analyser dB normalization
- Named frequency ranges and the band label lookup
- Phase helpers
"""

from typing import List, Tuple

import numpy as np


# =============================================================================
# AUDIO CONSTANTS
# =============================================================================

SAMPLE_RATE = 44100  # Hz - CD quality

DEFAULT_FFT_SIZE = 4096  # ~10.8 Hz bins at 44.1 kHz
MIN_FFT_SIZE = 32
MAX_FFT_SIZE = 32768

ANALYSIS_WINDOW_SECONDS = 30.0  # Only the leading window is compared

# Analyser dB range: magnitudes are normalized with (dB + 140) / 140
DB_FLOOR = -140.0
DB_RANGE = 140.0

AMPLITUDE_EPSILON = 1e-12


# =============================================================================
# FREQUENCY RANGES
# =============================================================================

# Upper edges (exclusive) for the band labels used in suggestion reasons
BAND_LABEL_EDGES: List[Tuple[float, str]] = [
    (60.0, "sub-bass"),
    (250.0, "bass"),
    (500.0, "low-mid"),
    (2000.0, "mid"),
    (4000.0, "upper-mid"),
    (10000.0, "high"),
]
TOP_BAND_LABEL = "very-high"

# Named ranges for per-track dominant energy profiles
DOMINANT_RANGES: List[Tuple[str, float, float]] = [
    ("Sub Bass", 20.0, 60.0),
    ("Bass", 60.0, 250.0),
    ("Low Midrange", 250.0, 500.0),
    ("Midrange", 500.0, 2000.0),
    ("Upper Midrange", 2000.0, 4000.0),
    ("Presence", 4000.0, 6000.0),
    ("Brilliance", 6000.0, 20000.0),
]


def band_label(frequency: float) -> str:
    """Return the human-readable band label for a frequency in Hz."""
    for edge, label in BAND_LABEL_EDGES:
        if frequency < edge:
            return label
    return TOP_BAND_LABEL


# =============================================================================
# DECIBEL HELPERS
# =============================================================================

def normalize_db(db: np.ndarray) -> np.ndarray:
    """
    Map analyser decibels onto the normalized [0, 1] magnitude scale.

    Values at or below -140 dB floor to 0; values above 0 dB clamp to 1.
    """
    return np.clip((np.asarray(db, dtype=np.float64) - DB_FLOOR) / DB_RANGE, 0.0, 1.0)


def denormalize_magnitude(magnitude: np.ndarray) -> np.ndarray:
    """Inverse of normalize_db for magnitudes inside (0, 1]."""
    return np.asarray(magnitude, dtype=np.float64) * DB_RANGE + DB_FLOOR


# =============================================================================
# MISC
# =============================================================================

def is_power_of_two(value: int) -> bool:
    """True for positive integral powers of two."""
    return bool(isinstance(value, (int, np.integer)) and value > 0 and (value & (value - 1)) == 0)


def wrap_phase(phase: np.ndarray) -> np.ndarray:
    """Wrap radians into (-pi, pi]."""
    wrapped = np.angle(np.exp(1j * np.asarray(phase, dtype=np.float64)))
    # np.angle returns -pi for exactly anti-phase input; fold it to +pi
    return np.where(np.isclose(wrapped, -np.pi), np.pi, wrapped)


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value to [low, high]."""
    return max(low, min(high, value))
