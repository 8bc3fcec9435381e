"""
Data model for the overlap engine.

Every stage of the pipeline produces one of these value types and never
mutates another stage's output. Array-valued fields are stored as read-only
numpy arrays so a Spectrum handed to two consumers cannot be altered by
either of them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple

import numpy as np

from .parametric_eq import FilterType
from .utils import SAMPLE_RATE


# =============================================================================
# ERRORS
# =============================================================================

class OverlapAnalysisError(Exception):
    """Base class for analysis failures propagated to the caller."""
    pass


class InvalidBufferError(OverlapAnalysisError):
    """Raised when a sample buffer is empty or carries an unusable sample rate."""
    pass


class UnsupportedTransformSizeError(OverlapAnalysisError):
    """Raised when fft_size is not a supported power of two."""
    pass


class MismatchedSpectraError(OverlapAnalysisError):
    """Raised when two spectra do not share the same bin mapping."""
    pass


# =============================================================================
# TRACKS
# =============================================================================

class TrackId(Enum):
    """Identifies one of the two tracks being compared."""
    ONE = 1
    TWO = 2

    @property
    def other(self) -> "TrackId":
        if self is TrackId.ONE:
            return TrackId.TWO
        return TrackId.ONE


def _readonly(values: Any, dtype) -> np.ndarray:
    array = np.array(values, dtype=dtype, copy=True)
    array.setflags(write=False)
    return array


# =============================================================================
# SAMPLE BUFFER
# =============================================================================

@dataclass(frozen=True, eq=False)
class SampleBuffer:
    """
    Decoded audio handed over by the signal source.

    Attributes:
        channels: Samples as (n_channels, n_samples)
        sample_rate: Sample rate in Hz
        name: Optional display name (file name, stem name)
    """
    channels: np.ndarray
    sample_rate: float = SAMPLE_RATE
    name: Optional[str] = None

    def __post_init__(self):
        data = np.asarray(self.channels, dtype=np.float64)
        if data.ndim == 1:
            data = data.reshape(1, -1)
        if data.ndim != 2:
            raise InvalidBufferError(
                f"Expected channel data with 1 or 2 dimensions, got shape {data.shape}"
            )
        if data.shape[0] == 0:
            raise InvalidBufferError("Buffer contains no channels")
        if data.shape[1] == 0:
            raise InvalidBufferError("Buffer contains no samples")
        if not np.all(np.isfinite(data)):
            raise InvalidBufferError("Buffer contains NaN or infinite samples")

        try:
            rate = float(self.sample_rate)
        except (TypeError, ValueError):
            raise InvalidBufferError(f"Unsupported sample rate: {self.sample_rate!r}")
        if not math.isfinite(rate) or rate <= 0:
            raise InvalidBufferError(f"Unsupported sample rate: {self.sample_rate!r}")

        object.__setattr__(self, "channels", _readonly(data, np.float64))
        object.__setattr__(self, "sample_rate", rate)

    @classmethod
    def from_array(
        cls,
        data: Any,
        sample_rate: float = SAMPLE_RATE,
        name: Optional[str] = None
    ) -> "SampleBuffer":
        """
        Build a buffer from mono or multi-channel array data.

        2-D input may be (channels, samples) or the soundfile-style
        (samples, channels); the shorter axis is taken as the channel axis.
        """
        array = np.asarray(data, dtype=np.float64)
        if array.ndim == 2 and array.shape[0] > array.shape[1]:
            array = array.T
        return cls(channels=array, sample_rate=sample_rate, name=name)

    @property
    def channel_count(self) -> int:
        return int(self.channels.shape[0])

    @property
    def sample_count(self) -> int:
        return int(self.channels.shape[1])

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.sample_count / self.sample_rate

    def channel(self, index: int = 0) -> np.ndarray:
        return self.channels[index]


# =============================================================================
# SPECTRUM
# =============================================================================

@dataclass(frozen=True, eq=False)
class Spectrum:
    """
    Frequency-magnitude spectrum of one track.

    Bins are ascending by frequency with spacing sample_rate / 2 / bin_count.
    Magnitudes are normalized analyser loudness in [0, 1]. The complex STFT
    frames are kept so phase relationships between two tracks can be
    measured from the actual transform.

    Attributes:
        frequencies: Bin center frequencies in Hz
        magnitudes: Normalized magnitude per bin, 0-1
        frames: Complex STFT frames, shape (n_frames, bin_count)
        sample_rate: Sample rate of the analyzed audio
        fft_size: Transform size (bin_count * 2)
    """
    frequencies: np.ndarray
    magnitudes: np.ndarray
    frames: np.ndarray
    sample_rate: float
    fft_size: int

    def __post_init__(self):
        frequencies = _readonly(self.frequencies, np.float64)
        magnitudes = _readonly(self.magnitudes, np.float64)
        frames = np.array(self.frames, dtype=np.complex128, copy=True)
        if frames.ndim == 1:
            frames = frames.reshape(1, -1)
        frames.setflags(write=False)

        bin_count = self.fft_size // 2
        if frequencies.shape != (bin_count,) or magnitudes.shape != (bin_count,):
            raise ValueError(
                f"Spectrum expects {bin_count} bins for fft_size={self.fft_size}, "
                f"got {frequencies.shape[0]} frequencies and {magnitudes.shape[0]} magnitudes"
            )
        if frames.shape[1] != bin_count or frames.shape[0] < 1:
            raise ValueError(f"Spectrum frames must have shape (n, {bin_count}), got {frames.shape}")
        if bin_count > 1 and np.any(np.diff(frequencies) <= 0):
            raise ValueError("Spectrum frequencies must be strictly increasing")
        if not np.all(np.isfinite(magnitudes)) or np.any(magnitudes < 0.0) or np.any(magnitudes > 1.0):
            raise ValueError("Spectrum magnitudes must lie in [0, 1]")

        object.__setattr__(self, "frequencies", frequencies)
        object.__setattr__(self, "magnitudes", magnitudes)
        object.__setattr__(self, "frames", frames)
        object.__setattr__(self, "sample_rate", float(self.sample_rate))
        object.__setattr__(self, "fft_size", int(self.fft_size))

    @classmethod
    def from_components(
        cls,
        magnitudes: Sequence[float],
        phases: Optional[Sequence[float]] = None,
        sample_rate: float = SAMPLE_RATE,
        fft_size: Optional[int] = None
    ) -> "Spectrum":
        """
        Build a single-frame spectrum from per-bin magnitudes and phases.

        Args:
            magnitudes: Normalized magnitudes, one per bin
            phases: Phase per bin in radians (zeros when omitted)
            sample_rate: Sample rate the bins refer to
            fft_size: Transform size; defaults to 2 * len(magnitudes)
        """
        mags = np.asarray(magnitudes, dtype=np.float64)
        bin_count = mags.shape[0]
        if fft_size is None:
            fft_size = bin_count * 2
        if phases is None:
            phases = np.zeros(bin_count)
        frame = np.exp(1j * np.asarray(phases, dtype=np.float64))
        frequencies = np.arange(bin_count) * float(sample_rate) / fft_size
        return cls(
            frequencies=frequencies,
            magnitudes=mags,
            frames=frame.reshape(1, -1),
            sample_rate=sample_rate,
            fft_size=fft_size,
        )

    def with_magnitudes(self, magnitudes: Sequence[float]) -> "Spectrum":
        """Return a copy carrying new magnitudes and the same bins and frames."""
        return Spectrum(
            frequencies=self.frequencies,
            magnitudes=np.clip(np.asarray(magnitudes, dtype=np.float64), 0.0, 1.0),
            frames=self.frames,
            sample_rate=self.sample_rate,
            fft_size=self.fft_size,
        )

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2

    @property
    def nyquist(self) -> float:
        return self.sample_rate / 2.0

    @property
    def bin_spacing(self) -> float:
        return self.nyquist / self.bin_count

    @property
    def frame_count(self) -> int:
        return int(self.frames.shape[0])

    def __len__(self) -> int:
        return self.bin_count

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        for frequency, magnitude in zip(self.frequencies, self.magnitudes):
            yield float(frequency), float(magnitude)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sample_rate": self.sample_rate,
            "fft_size": self.fft_size,
            "frequencies": self.frequencies.tolist(),
            "magnitudes": self.magnitudes.tolist(),
        }


# =============================================================================
# OVERLAP POINTS AND BANDS
# =============================================================================

@dataclass(frozen=True)
class OverlapPoint:
    """
    One bin where both tracks carry significant energy.

    Attributes:
        frequency: Bin frequency in Hz
        magnitude1: Track 1 normalized magnitude
        magnitude2: Track 2 normalized magnitude
        overlap_intensity: min / max of the two magnitudes, in (0, 1]
        is_constructive: True when the tracks are within +-90 deg of in-phase
        phase_difference: Track 1 phase minus track 2 phase, radians in (-pi, pi]
    """
    frequency: float
    magnitude1: float
    magnitude2: float
    overlap_intensity: float
    is_constructive: bool
    phase_difference: float = 0.0

    def magnitude_for(self, track: TrackId) -> float:
        if track is TrackId.ONE:
            return self.magnitude1
        return self.magnitude2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frequency": self.frequency,
            "magnitude1": self.magnitude1,
            "magnitude2": self.magnitude2,
            "overlap_intensity": self.overlap_intensity,
            "is_constructive": self.is_constructive,
            "phase_difference": self.phase_difference,
        }


@dataclass(frozen=True)
class FrequencyRange:
    """Closed frequency interval in Hz."""
    low: float
    high: float

    def __post_init__(self):
        if self.low > self.high:
            raise ValueError(f"FrequencyRange low ({self.low}) exceeds high ({self.high})")

    @property
    def center(self) -> float:
        return (self.low + self.high) / 2.0

    @property
    def width(self) -> float:
        return self.high - self.low

    def to_dict(self) -> Dict[str, float]:
        return {"low": self.low, "high": self.high}


@dataclass(frozen=True)
class FrequencyBand:
    """
    Contiguous run of overlap points.

    Attributes:
        low: Frequency of the first point (Hz)
        high: Frequency of the last point (Hz)
        points: Overlap points in ascending frequency order
    """
    low: float
    high: float
    points: Tuple[OverlapPoint, ...] = field(default_factory=tuple)

    def __post_init__(self):
        points = tuple(self.points)
        if self.low > self.high:
            raise ValueError(f"FrequencyBand low ({self.low}) exceeds high ({self.high})")
        for point in points:
            if point.frequency < self.low or point.frequency > self.high:
                raise ValueError(
                    f"Point at {point.frequency} Hz lies outside band [{self.low}, {self.high}]"
                )
        object.__setattr__(self, "points", points)

    @property
    def width(self) -> float:
        return self.high - self.low

    @property
    def center(self) -> float:
        return (self.low + self.high) / 2.0

    @property
    def frequency_range(self) -> FrequencyRange:
        return FrequencyRange(self.low, self.high)

    @property
    def constructive_count(self) -> int:
        return sum(1 for p in self.points if p.is_constructive)

    @property
    def destructive_count(self) -> int:
        return len(self.points) - self.constructive_count

    @property
    def destructive_ratio(self) -> float:
        if not self.points:
            return 0.0
        return self.destructive_count / len(self.points)

    @property
    def is_mainly_destructive(self) -> bool:
        """Strict majority vote; ties are not destructive."""
        return self.destructive_count > len(self.points) / 2

    @property
    def mean_intensity(self) -> float:
        if not self.points:
            return 0.0
        return sum(p.overlap_intensity for p in self.points) / len(self.points)

    def mean_magnitude(self, track: TrackId) -> float:
        if not self.points:
            return 0.0
        return sum(p.magnitude_for(track) for p in self.points) / len(self.points)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "low": self.low,
            "high": self.high,
            "points": [p.to_dict() for p in self.points],
        }


# =============================================================================
# EQ SUGGESTIONS
# =============================================================================

class SuggestionKind(Enum):
    """Which advisor pass produced a suggestion."""
    BAND = "band"
    LOW_END = "low_end"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class EQSuggestion:
    """
    A single EQ move recommended for one track.

    Attributes:
        track: Track the move applies to
        frequency_range: Affected range in Hz
        gain_reduction_db: Cut in dB (always <= 0)
        q: Filter Q, 0.1-10
        reason: Human-readable explanation
        filter_type: PEAK for bell cuts, HIGHPASS for low-end cleanup
        kind: Advisor pass that produced the suggestion
    """
    track: TrackId
    frequency_range: FrequencyRange
    gain_reduction_db: float
    q: float
    reason: str
    filter_type: FilterType = FilterType.PEAK
    kind: SuggestionKind = SuggestionKind.BAND

    def __post_init__(self):
        if self.gain_reduction_db > 0:
            raise ValueError(f"gain_reduction_db must be <= 0, got {self.gain_reduction_db}")
        if not 0.1 <= self.q <= 10.0:
            raise ValueError(f"q must lie in [0.1, 10], got {self.q}")

    @property
    def center_frequency(self) -> float:
        return self.frequency_range.center

    def to_dict(self) -> Dict[str, Any]:
        return {
            "track": self.track.value,
            "frequency_range": self.frequency_range.to_dict(),
            "gain_reduction_db": self.gain_reduction_db,
            "q": self.q,
            "reason": self.reason,
            "filter_type": self.filter_type.value,
            "kind": self.kind.value,
        }
