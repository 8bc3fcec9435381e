"""
Spectral Analyzer

Converts a decoded sample buffer into a normalized frequency-magnitude
spectrum. The first channel of the leading analysis window is split into
Blackman-windowed STFT frames; per-bin power is averaged across frames,
converted to dB and mapped onto [0, 1] with (dB + 140) / 140.

The complex frames are carried on the resulting Spectrum so the overlap
detector can measure real phase relationships between two tracks.
"""

import logging
from typing import Optional

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy import signal
from scipy.fft import rfft

from .config import AdvisorConfig
from .models import (
    InvalidBufferError,
    SampleBuffer,
    Spectrum,
    UnsupportedTransformSizeError,
)
from .utils import (
    AMPLITUDE_EPSILON,
    ANALYSIS_WINDOW_SECONDS,
    DEFAULT_FFT_SIZE,
    MAX_FFT_SIZE,
    MIN_FFT_SIZE,
    is_power_of_two,
    normalize_db,
)

logger = logging.getLogger(__name__)


def validate_fft_size(fft_size: int) -> int:
    """
    Check fft_size is a supported transform size.

    Raises:
        UnsupportedTransformSizeError: If not a power of two in [32, 32768]
    """
    if isinstance(fft_size, bool) or not is_power_of_two(fft_size):
        raise UnsupportedTransformSizeError(
            f"fft_size={fft_size!r} is not a power of two"
        )
    if not MIN_FFT_SIZE <= fft_size <= MAX_FFT_SIZE:
        raise UnsupportedTransformSizeError(
            f"fft_size={fft_size} is outside the supported range "
            f"[{MIN_FFT_SIZE}, {MAX_FFT_SIZE}]"
        )
    return int(fft_size)


class SpectralAnalyzer:
    """
    Averaged STFT magnitude analysis of one track.

    Attributes:
        fft_size: Transform size; yields fft_size // 2 bins
        hop_size: Hop between frames (fft_size // 2)
        analysis_window_seconds: Leading duration that is analyzed
        window: Analysis window samples

    Usage:
        >>> analyzer = SpectralAnalyzer(fft_size=4096)
        >>> spectrum = analyzer.analyze(buffer)
        >>> spectrum.bin_count
        2048
    """

    def __init__(
        self,
        fft_size: int = DEFAULT_FFT_SIZE,
        analysis_window_seconds: float = ANALYSIS_WINDOW_SECONDS,
        window: str = 'blackman'
    ):
        self.fft_size = validate_fft_size(fft_size)
        self.hop_size = self.fft_size // 2
        if analysis_window_seconds <= 0:
            raise ValueError("analysis_window_seconds must be positive")
        self.analysis_window_seconds = float(analysis_window_seconds)
        self.window = signal.get_window(window, self.fft_size)
        # Scales |X| so a full-scale sine reads 1.0 (0 dBFS)
        self._amplitude_scale = 2.0 / np.sum(self.window)

    @classmethod
    def from_config(cls, config: AdvisorConfig, fft_size: Optional[int] = None) -> "SpectralAnalyzer":
        return cls(
            fft_size=config.fft_size if fft_size is None else fft_size,
            analysis_window_seconds=config.analysis_window_seconds,
        )

    def analyze(self, buffer: SampleBuffer) -> Spectrum:
        """
        Analyze the first channel of a buffer.

        Args:
            buffer: Decoded audio

        Returns:
            Spectrum with fft_size // 2 bins

        Raises:
            InvalidBufferError: If buffer is not a usable SampleBuffer
        """
        if not isinstance(buffer, SampleBuffer):
            raise InvalidBufferError(
                f"Expected a SampleBuffer, got {type(buffer).__name__}"
            )
        if buffer.channel_count > 1:
            logger.debug(
                f"Analyzing channel 0 of {buffer.channel_count} "
                f"({buffer.name or 'unnamed buffer'})"
            )

        mono = self._leading_window(buffer)
        frames = self._stft(mono)

        bin_count = self.fft_size // 2
        # Drop the Nyquist bin so exactly fft_size / 2 bins remain
        frames = frames[:, :bin_count] * self._amplitude_scale

        power = np.mean(np.abs(frames) ** 2, axis=0)
        magnitude_db = 10.0 * np.log10(np.maximum(power, AMPLITUDE_EPSILON ** 2))
        magnitudes = normalize_db(magnitude_db)

        frequencies = np.arange(bin_count) * buffer.sample_rate / self.fft_size

        logger.debug(
            f"Analyzed {len(mono)} samples into {frames.shape[0]} frames x {bin_count} bins "
            f"(fft_size={self.fft_size}, sr={buffer.sample_rate:g})"
        )

        return Spectrum(
            frequencies=frequencies,
            magnitudes=magnitudes,
            frames=frames,
            sample_rate=buffer.sample_rate,
            fft_size=self.fft_size,
        )

    def _leading_window(self, buffer: SampleBuffer) -> np.ndarray:
        mono = buffer.channel(0)
        max_samples = int(round(self.analysis_window_seconds * buffer.sample_rate))
        if max_samples == 0:
            raise InvalidBufferError(
                f"Analysis window of {self.analysis_window_seconds:g}s holds no samples "
                f"at {buffer.sample_rate:g} Hz"
            )
        if len(mono) > max_samples:
            logger.debug(
                f"Truncating {buffer.duration:.1f}s buffer to the leading "
                f"{self.analysis_window_seconds:.1f}s analysis window"
            )
            mono = mono[:max_samples]
        return mono

    def _stft(self, audio: np.ndarray) -> np.ndarray:
        """
        Windowed STFT frames, shape (n_frames, fft_size // 2 + 1).

        Audio shorter than one frame is zero-padded into a single frame.
        """
        if len(audio) < self.fft_size:
            padded = np.zeros(self.fft_size)
            padded[:len(audio)] = audio
            audio = padded

        frames = sliding_window_view(audio, self.fft_size)[::self.hop_size]
        return rfft(frames * self.window, axis=-1)


def analyze(
    buffer: SampleBuffer,
    fft_size: Optional[int] = None,
    config: Optional[AdvisorConfig] = None
) -> Spectrum:
    """
    Convenience function: analyze a buffer into a Spectrum.

    Args:
        buffer: Decoded audio
        fft_size: Transform size (defaults to config.fft_size, then 4096)
        config: Optional AdvisorConfig for the analysis window cap

    Returns:
        Normalized Spectrum of the first channel

    Raises:
        InvalidBufferError: If buffer is invalid
        UnsupportedTransformSizeError: If fft_size is unsupported
    """
    config = config or AdvisorConfig()
    return SpectralAnalyzer.from_config(config, fft_size=fft_size).analyze(buffer)
