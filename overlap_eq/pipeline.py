"""
Overlap Analysis Pipeline

Wires the stages together for one track pair:

    SampleBuffer x2 -> SpectralAnalyzer (parallel) -> OverlapDetector
                    -> BandGrouper -> EQAdvisor -> MixAnalysisResult

The two spectral analyses run on a ThreadPoolExecutor; the detector waits on
both. Each stage returns a complete result or raises, so a caller never sees
a partial result. An optional SpectrumCache shares spectra between requests
and guarantees at most one computation in flight per buffer.
"""

from __future__ import annotations

import logging
import math
import threading
import weakref
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Deque, Dict, Optional, Tuple

import numpy as np
from scipy.signal import resample_poly

from .band_grouper import BandGrouper
from .config import AdvisorConfig
from .eq_advisor import EQAdvisor
from .interference import InterferenceRegion, summarize_interference
from .models import (
    EQSuggestion,
    FrequencyBand,
    InvalidBufferError,
    OverlapPoint,
    SampleBuffer,
    Spectrum,
)
from .overlap_detector import OverlapDetector
from .spectral_analyzer import SpectralAnalyzer

logger = logging.getLogger(__name__)

# Audio kept past the analysis window so the resampling filter settles
RESAMPLE_TAIL_SECONDS = 0.05


# =============================================================================
# RESULT
# =============================================================================

@dataclass(frozen=True, eq=False)
class MixAnalysisResult:
    """
    Everything the presentation layer needs for one track pair.

    Attributes:
        spectrum1: Track 1 spectrum
        spectrum2: Track 2 spectrum (resampled to track 1's rate if needed)
        overlaps: Every overlap point, ascending by frequency
        bands: Surviving bands, ascending by low edge
        suggestions: EQ suggestions in advisor order
        regions: Per-region interference summary
        analysis_duration: Seconds compared from the common start point
        has_different_lengths: True when the tracks differ in duration
    """
    spectrum1: Spectrum
    spectrum2: Spectrum
    overlaps: Tuple[OverlapPoint, ...]
    bands: Tuple[FrequencyBand, ...]
    suggestions: Tuple[EQSuggestion, ...]
    regions: Tuple[InterferenceRegion, ...]
    analysis_duration: float
    has_different_lengths: bool = False

    @property
    def has_significant_overlap(self) -> bool:
        """False means "no significant overlap found", a valid empty result."""
        return len(self.overlaps) > 0

    @property
    def constructive_count(self) -> int:
        return sum(1 for p in self.overlaps if p.is_constructive)

    @property
    def destructive_count(self) -> int:
        return len(self.overlaps) - self.constructive_count

    def to_dict(self, include_spectra: bool = False) -> Dict[str, Any]:
        """Convert to plain Python data for rendering or JSON."""
        data = {
            "analysis_duration": self.analysis_duration,
            "has_different_lengths": self.has_different_lengths,
            "has_significant_overlap": self.has_significant_overlap,
            "constructive_count": self.constructive_count,
            "destructive_count": self.destructive_count,
            "overlaps": [p.to_dict() for p in self.overlaps],
            "bands": [b.to_dict() for b in self.bands],
            "suggestions": [s.to_dict() for s in self.suggestions],
            "regions": [r.to_dict() for r in self.regions],
        }
        if include_spectra:
            data["spectrum1"] = self.spectrum1.to_dict()
            data["spectrum2"] = self.spectrum2.to_dict()
        return data


# =============================================================================
# SPECTRUM CACHE
# =============================================================================

class SpectrumCache:
    """
    Spectra keyed by buffer identity and analysis settings.

    Thread-safe: a lock guards the entry table, and each entry is a Future,
    so concurrent requests for the same buffer wait on the one computation
    already in flight. Failed computations are evicted so a later request
    can retry.

    The cache holds no reference to its buffers. An entry is evicted when
    its buffer is garbage-collected, before the identity key can be reused.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[int, int, float], Future] = {}
        # Keys of collected buffers. Finalizers only append here, since they
        # can run on a thread that already holds the lock.
        self._collected: Deque[Tuple[int, int, float]] = deque()

    def get_or_compute(self, buffer: SampleBuffer, analyzer: SpectralAnalyzer) -> Spectrum:
        key = (id(buffer), analyzer.fft_size, analyzer.analysis_window_seconds)

        with self._lock:
            self._purge_collected()
            future = self._entries.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._entries[key] = future

        if owner:
            weakref.finalize(buffer, self._collected.append, key)
            try:
                future.set_result(analyzer.analyze(buffer))
            except Exception as e:
                with self._lock:
                    self._entries.pop(key, None)
                future.set_exception(e)
                raise
        else:
            logger.debug(f"Spectrum cache hit for {buffer.name or hex(id(buffer))}")

        return future.result()

    def _purge_collected(self) -> None:
        """Drop entries whose buffers were collected. Caller holds the lock."""
        while self._collected:
            self._entries.pop(self._collected.popleft(), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._purge_collected()
            return len(self._entries)


# =============================================================================
# SAMPLE RATE ALIGNMENT
# =============================================================================

def resample_buffer(
    buffer: SampleBuffer,
    target_rate: float,
    max_seconds: Optional[float] = None
) -> SampleBuffer:
    """
    Resample the first channel of a buffer to target_rate (polyphase).

    Only the first channel is carried over since only it is analyzed.

    Args:
        buffer: Source buffer
        target_rate: Output sample rate in Hz
        max_seconds: If given, only the leading max_seconds (plus a short
            settling tail for the polyphase filter) are resampled
    """
    ratio = Fraction(int(round(target_rate)), int(round(buffer.sample_rate))).limit_denominator(1000)
    mono = buffer.channel(0)
    if max_seconds is not None:
        tail = int(math.ceil(RESAMPLE_TAIL_SECONDS * buffer.sample_rate))
        keep = int(math.ceil(max_seconds * buffer.sample_rate)) + tail
        if len(mono) > keep:
            logger.debug(
                f"Resampling the leading {keep} of {len(mono)} samples of "
                f"{buffer.name or 'track'}"
            )
            mono = mono[:keep]
    resampled = resample_poly(mono, ratio.numerator, ratio.denominator)
    return SampleBuffer(
        channels=np.asarray(resampled).reshape(1, -1),
        sample_rate=target_rate,
        name=buffer.name,
    )


# =============================================================================
# ANALYZER
# =============================================================================

class MixOverlapAnalyzer:
    """
    Runs the full overlap pipeline for track pairs.

    Usage:
        >>> with MixOverlapAnalyzer(AdvisorConfig()) as analyzer:
        ...     result = analyzer.analyze(vocal, beat)
        >>> for suggestion in result.suggestions:
        ...     print(suggestion.reason)
    """

    def __init__(
        self,
        config: Optional[AdvisorConfig] = None,
        max_workers: int = 2,
        cache: Optional[SpectrumCache] = None
    ):
        """
        Initialize the analyzer.

        Args:
            config: Tunable thresholds and coefficients
            max_workers: Threads used for the two spectral analyses
            cache: Optional shared SpectrumCache
        """
        self.config = config or AdvisorConfig()
        self.cache = cache

        self._spectral_analyzer = SpectralAnalyzer.from_config(self.config)
        self._detector = OverlapDetector(self.config)
        self._grouper = BandGrouper(self.config)
        self._advisor = EQAdvisor(self.config)

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="OverlapEQ-"
        )

    def analyze(self, buffer1: SampleBuffer, buffer2: SampleBuffer) -> MixAnalysisResult:
        """
        Analyze a track pair end to end.

        Raises:
            InvalidBufferError: If either buffer is invalid
            MismatchedSpectraError: If sample rates differ and resampling is disabled
        """
        for index, buffer in enumerate((buffer1, buffer2), start=1):
            if not isinstance(buffer, SampleBuffer):
                raise InvalidBufferError(
                    f"Track {index}: expected a SampleBuffer, got {type(buffer).__name__}"
                )

        # Measured before resampling, which trims track 2 to the analysis window
        window = self.config.analysis_window_seconds
        duration1, duration2 = buffer1.duration, buffer2.duration
        analysis_duration = min(duration1, duration2, window)
        different_lengths = not math.isclose(duration1, duration2)

        use_cache_for_2 = True
        if (
            not math.isclose(buffer1.sample_rate, buffer2.sample_rate)
            and self.config.resample_mismatched_rates
        ):
            logger.warning(
                f"Resampling track 2 from {buffer2.sample_rate:g} Hz to "
                f"{buffer1.sample_rate:g} Hz before comparison"
            )
            buffer2 = resample_buffer(buffer2, buffer1.sample_rate, max_seconds=window)
            use_cache_for_2 = False

        future1 = self._executor.submit(self._spectrum_for, buffer1, True)
        future2 = self._executor.submit(self._spectrum_for, buffer2, use_cache_for_2)
        # result() re-raises a worker's exception here in the caller
        spectrum1 = future1.result()
        spectrum2 = future2.result()

        if different_lengths:
            logger.info(
                f"Tracks differ in length ({duration1:.1f}s vs "
                f"{duration2:.1f}s); comparing the first {analysis_duration:.1f}s"
            )

        return self.compare_spectra(
            spectrum1,
            spectrum2,
            analysis_duration=analysis_duration,
            has_different_lengths=different_lengths,
        )

    def compare_spectra(
        self,
        spectrum1: Spectrum,
        spectrum2: Spectrum,
        analysis_duration: float = 0.0,
        has_different_lengths: bool = False
    ) -> MixAnalysisResult:
        """
        Run detection, grouping and advice on two precomputed spectra.

        Raises:
            MismatchedSpectraError: If the spectra use different bin mappings
        """
        overlaps = self._detector.detect(spectrum1, spectrum2)
        bands = self._grouper.group(overlaps)
        suggestions = self._advisor.advise(bands, overlaps)
        regions = summarize_interference(overlaps)

        logger.info(
            f"Overlap analysis: {len(overlaps)} points, {len(bands)} bands, "
            f"{len(suggestions)} suggestions"
        )

        return MixAnalysisResult(
            spectrum1=spectrum1,
            spectrum2=spectrum2,
            overlaps=overlaps,
            bands=bands,
            suggestions=suggestions,
            regions=regions,
            analysis_duration=analysis_duration,
            has_different_lengths=has_different_lengths,
        )

    def _spectrum_for(self, buffer: SampleBuffer, use_cache: bool) -> Spectrum:
        if self.cache is not None and use_cache:
            return self.cache.get_or_compute(buffer, self._spectral_analyzer)
        return self._spectral_analyzer.analyze(buffer)

    def shutdown(self, wait: bool = True) -> None:
        """Release the worker threads."""
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "MixOverlapAnalyzer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


def analyze_pair(
    buffer1: SampleBuffer,
    buffer2: SampleBuffer,
    config: Optional[AdvisorConfig] = None,
    cache: Optional[SpectrumCache] = None
) -> MixAnalysisResult:
    """
    Convenience function: run the full pipeline for one track pair.

    Returns:
        MixAnalysisResult; an empty overlaps/suggestions result means no
        significant overlap was found

    Raises:
        OverlapAnalysisError: On invalid input (never an empty result)
    """
    with MixOverlapAnalyzer(config, cache=cache) as analyzer:
        return analyzer.analyze(buffer1, buffer2)
