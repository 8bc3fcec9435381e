"""
Unit tests for the overlap_eq data model.

Tests buffer validation, spectrum invariants, band and suggestion value types.
"""

import pytest
import sys
import numpy as np
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from overlap_eq.models import (
    EQSuggestion,
    FrequencyBand,
    FrequencyRange,
    InvalidBufferError,
    OverlapAnalysisError,
    OverlapPoint,
    SampleBuffer,
    Spectrum,
    SuggestionKind,
    TrackId,
)
from overlap_eq.parametric_eq import FilterType


def _point(frequency, m1=0.8, m2=0.6, constructive=False):
    return OverlapPoint(
        frequency=frequency,
        magnitude1=m1,
        magnitude2=m2,
        overlap_intensity=min(m1, m2) / max(m1, m2),
        is_constructive=constructive,
    )


class TestTrackId:
    """Tests for TrackId."""

    def test_other(self):
        assert TrackId.ONE.other is TrackId.TWO
        assert TrackId.TWO.other is TrackId.ONE

    def test_values(self):
        assert TrackId(1) is TrackId.ONE
        assert TrackId(2) is TrackId.TWO


class TestSampleBuffer:
    """Tests for SampleBuffer validation and layout handling."""

    def test_mono_from_array(self):
        buffer = SampleBuffer.from_array(np.zeros(44100), sample_rate=44100)
        assert buffer.channel_count == 1
        assert buffer.sample_count == 44100
        assert buffer.duration == pytest.approx(1.0)

    def test_soundfile_layout_is_transposed(self):
        """(samples, channels) input becomes (channels, samples)."""
        data = np.zeros((1000, 2))
        data[:, 1] = 1.0
        buffer = SampleBuffer.from_array(data, sample_rate=8000)
        assert buffer.channel_count == 2
        assert buffer.sample_count == 1000
        assert np.all(buffer.channel(1) == 1.0)

    def test_channels_first_layout_kept(self):
        buffer = SampleBuffer.from_array(np.zeros((2, 1000)), sample_rate=8000)
        assert buffer.channel_count == 2
        assert buffer.sample_count == 1000

    def test_channels_are_read_only(self):
        buffer = SampleBuffer.from_array(np.zeros(100), sample_rate=8000)
        with pytest.raises(ValueError):
            buffer.channels[0, 0] = 1.0

    def test_source_array_is_copied(self):
        data = np.zeros(100)
        buffer = SampleBuffer.from_array(data, sample_rate=8000)
        data[0] = 5.0
        assert buffer.channel(0)[0] == 0.0

    def test_empty_samples_rejected(self):
        with pytest.raises(InvalidBufferError):
            SampleBuffer.from_array(np.array([]), sample_rate=44100)

    def test_no_channels_rejected(self):
        with pytest.raises(InvalidBufferError):
            SampleBuffer(channels=np.zeros((0, 100)), sample_rate=44100)

    def test_non_finite_samples_rejected(self):
        data = np.zeros(100)
        data[10] = np.nan
        with pytest.raises(InvalidBufferError):
            SampleBuffer.from_array(data, sample_rate=44100)

    @pytest.mark.parametrize("rate", [0, -44100, float("nan"), float("inf"), "fast"])
    def test_bad_sample_rate_rejected(self, rate):
        with pytest.raises(InvalidBufferError):
            SampleBuffer.from_array(np.zeros(100), sample_rate=rate)

    def test_three_dimensional_rejected(self):
        with pytest.raises(InvalidBufferError):
            SampleBuffer(channels=np.zeros((2, 2, 2)), sample_rate=44100)

    def test_errors_share_base_class(self):
        assert issubclass(InvalidBufferError, OverlapAnalysisError)


class TestSpectrum:
    """Tests for Spectrum construction and invariants."""

    def test_from_components_bins(self):
        spectrum = Spectrum.from_components(np.zeros(512), sample_rate=10240, fft_size=1024)
        assert spectrum.bin_count == 512
        assert len(spectrum) == 512
        assert spectrum.bin_spacing == pytest.approx(10.0)
        assert spectrum.frequencies[0] == 0.0
        assert spectrum.frequencies[1] == pytest.approx(10.0)
        assert spectrum.frame_count == 1

    def test_default_fft_size(self):
        spectrum = Spectrum.from_components(np.zeros(64), sample_rate=1280)
        assert spectrum.fft_size == 128

    def test_iteration_yields_pairs(self):
        magnitudes = np.linspace(0.0, 1.0, 8)
        spectrum = Spectrum.from_components(magnitudes, sample_rate=1600, fft_size=16)
        pairs = list(spectrum)
        assert len(pairs) == 8
        assert pairs[1] == (pytest.approx(100.0), pytest.approx(magnitudes[1]))
        freqs = [f for f, _ in pairs]
        assert freqs == sorted(freqs)

    @pytest.mark.parametrize("bad", [-0.1, 1.5, np.nan])
    def test_magnitude_range_enforced(self, bad):
        magnitudes = np.zeros(8)
        magnitudes[3] = bad
        with pytest.raises(ValueError):
            Spectrum.from_components(magnitudes, sample_rate=1600, fft_size=16)

    def test_bin_count_must_match_fft_size(self):
        with pytest.raises(ValueError):
            Spectrum.from_components(np.zeros(8), sample_rate=1600, fft_size=32)

    def test_with_magnitudes_returns_copy(self):
        spectrum = Spectrum.from_components(np.full(8, 0.5), sample_rate=1600, fft_size=16)
        louder = spectrum.with_magnitudes(np.full(8, 2.0))
        assert np.all(louder.magnitudes == 1.0)
        assert np.all(spectrum.magnitudes == 0.5)
        assert np.array_equal(louder.frames, spectrum.frames)

    def test_magnitudes_read_only(self):
        spectrum = Spectrum.from_components(np.full(8, 0.5), sample_rate=1600, fft_size=16)
        with pytest.raises(ValueError):
            spectrum.magnitudes[0] = 0.1


class TestFrequencyBand:
    """Tests for FrequencyBand derived values."""

    def test_counts_and_ratio(self):
        points = (
            _point(300, constructive=True),
            _point(310),
            _point(320),
            _point(330),
        )
        band = FrequencyBand(low=300, high=330, points=points)
        assert band.constructive_count == 1
        assert band.destructive_count == 3
        assert band.destructive_ratio == pytest.approx(0.75)
        assert band.is_mainly_destructive
        assert band.width == 30
        assert band.center == 315

    def test_tie_is_not_mainly_destructive(self):
        points = (_point(300, constructive=True), _point(310))
        band = FrequencyBand(low=300, high=310, points=points)
        assert not band.is_mainly_destructive

    def test_mean_magnitude_per_track(self):
        points = (_point(300, m1=0.9, m2=0.5), _point(310, m1=0.7, m2=0.3))
        band = FrequencyBand(low=300, high=310, points=points)
        assert band.mean_magnitude(TrackId.ONE) == pytest.approx(0.8)
        assert band.mean_magnitude(TrackId.TWO) == pytest.approx(0.4)

    def test_point_outside_band_rejected(self):
        with pytest.raises(ValueError):
            FrequencyBand(low=300, high=310, points=(_point(400),))

    def test_inverted_band_rejected(self):
        with pytest.raises(ValueError):
            FrequencyBand(low=400, high=300)


class TestEQSuggestion:
    """Tests for EQSuggestion validation and serialization."""

    def test_positive_gain_rejected(self):
        with pytest.raises(ValueError):
            EQSuggestion(TrackId.ONE, FrequencyRange(100, 200), 1.0, 1.0, "boost")

    @pytest.mark.parametrize("q", [0.05, 10.5])
    def test_q_range_enforced(self, q):
        with pytest.raises(ValueError):
            EQSuggestion(TrackId.ONE, FrequencyRange(100, 200), -3.0, q, "cut")

    def test_to_dict(self):
        suggestion = EQSuggestion(
            track=TrackId.TWO,
            frequency_range=FrequencyRange(300, 400),
            gain_reduction_db=-4.5,
            q=3.5,
            reason="masking",
            filter_type=FilterType.PEAK,
            kind=SuggestionKind.BAND,
        )
        data = suggestion.to_dict()
        assert data["track"] == 2
        assert data["frequency_range"] == {"low": 300, "high": 400}
        assert data["filter_type"] == "peak"
        assert data["kind"] == "band"
        assert suggestion.center_frequency == 350

    def test_inverted_range_rejected(self):
        with pytest.raises(ValueError):
            FrequencyRange(500, 400)
