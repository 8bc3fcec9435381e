"""
Unit tests for the Spectral Analyzer.

Tests transform size validation, bin layout, dB normalization, the analysis
window cap and determinism.
"""

import pytest
import sys
import numpy as np
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from overlap_eq.config import AdvisorConfig
from overlap_eq.models import (
    InvalidBufferError,
    SampleBuffer,
    UnsupportedTransformSizeError,
)
from overlap_eq.spectral_analyzer import SpectralAnalyzer, analyze, validate_fft_size


class TestTransformSize:
    """Tests for fft_size validation."""

    @pytest.mark.parametrize("size", [32, 1024, 4096, 32768])
    def test_supported_sizes(self, size):
        assert validate_fft_size(size) == size

    @pytest.mark.parametrize("size", [0, -4096, 1000, 16, 65536, True, 4096.0])
    def test_unsupported_sizes(self, size):
        with pytest.raises(UnsupportedTransformSizeError):
            validate_fft_size(size)

    def test_analyze_rejects_bad_size(self, sine_buffer):
        with pytest.raises(UnsupportedTransformSizeError):
            analyze(sine_buffer(1000), fft_size=3000)


class TestBinLayout:
    """Tests for the frequency grid of an analyzed spectrum."""

    def test_bin_count_is_half_fft_size(self, sine_buffer):
        spectrum = analyze(sine_buffer(1000), fft_size=4096)
        assert spectrum.bin_count == 2048
        assert len(spectrum.magnitudes) == 2048
        assert spectrum.fft_size == 4096

    def test_bin_spacing_is_nyquist_derived(self, sine_buffer, sample_rate):
        spectrum = analyze(sine_buffer(1000, sample_rate=sample_rate), fft_size=2048)
        expected = sample_rate / 2 / 1024
        assert spectrum.bin_spacing == pytest.approx(expected)
        assert np.allclose(np.diff(spectrum.frequencies), expected)
        assert spectrum.frequencies[0] == 0.0
        assert spectrum.frequencies[-1] < sample_rate / 2

    def test_frame_count(self, sine_buffer):
        """1 s at 44.1 kHz with 4096/2048 framing gives 20 frames."""
        spectrum = analyze(sine_buffer(1000, duration=1.0), fft_size=4096)
        assert spectrum.frame_count == 1 + (44100 - 4096) // 2048

    def test_short_buffer_zero_padded(self):
        buffer = SampleBuffer.from_array(np.ones(100) * 0.1, sample_rate=44100)
        spectrum = analyze(buffer, fft_size=4096)
        assert spectrum.frame_count == 1
        assert spectrum.bin_count == 2048


class TestMagnitudes:
    """Tests for dB normalization of magnitudes."""

    def test_magnitudes_in_unit_range(self, noise_buffer):
        spectrum = analyze(noise_buffer(amplitude=0.9))
        assert np.all(spectrum.magnitudes >= 0.0)
        assert np.all(spectrum.magnitudes <= 1.0)

    def test_sine_peak_at_its_frequency(self, sine_buffer):
        spectrum = analyze(sine_buffer(1000), fft_size=4096)
        peak_frequency = spectrum.frequencies[np.argmax(spectrum.magnitudes)]
        assert abs(peak_frequency - 1000) < spectrum.bin_spacing

    def test_full_scale_sine_near_zero_db(self, sine_buffer):
        """A full-scale sine normalizes close to 1.0 (0 dBFS)."""
        spectrum = analyze(sine_buffer(1000, amplitude=1.0), fft_size=4096)
        assert spectrum.magnitudes.max() > 0.98
        assert spectrum.magnitudes.max() <= 1.0

    def test_quieter_sine_lower_magnitude(self, sine_buffer):
        loud = analyze(sine_buffer(1000, amplitude=1.0)).magnitudes.max()
        quiet = analyze(sine_buffer(1000, amplitude=0.1)).magnitudes.max()
        # 20 dB quieter -> 20/140 lower on the normalized scale
        assert loud - quiet == pytest.approx(20.0 / 140.0, abs=0.01)

    def test_silence_floors_to_zero(self):
        buffer = SampleBuffer.from_array(np.zeros(8192), sample_rate=44100)
        spectrum = analyze(buffer, fft_size=1024)
        assert np.all(spectrum.magnitudes == 0.0)

    def test_far_bins_below_floor(self, sine_buffer):
        """Blackman leakage from a 1 kHz sine does not reach 8 kHz."""
        spectrum = analyze(sine_buffer(1000), fft_size=4096)
        far = spectrum.frequencies > 8000
        assert np.all(spectrum.magnitudes[far] < 0.1)


class TestAnalysisScope:
    """Tests for channel selection and the leading analysis window."""

    def test_only_first_channel_analyzed(self, sample_rate):
        t = np.arange(sample_rate) / sample_rate
        data = np.vstack([
            0.5 * np.sin(2 * np.pi * 500 * t),
            0.5 * np.sin(2 * np.pi * 5000 * t),
        ])
        spectrum = analyze(SampleBuffer.from_array(data, sample_rate=sample_rate))
        idx_500 = np.argmin(np.abs(spectrum.frequencies - 500))
        idx_5000 = np.argmin(np.abs(spectrum.frequencies - 5000))
        assert spectrum.magnitudes[idx_500] > 0.9
        assert spectrum.magnitudes[idx_5000] < 0.1

    def test_analysis_window_cap(self, sample_rate):
        """Content after the window cap is ignored."""
        t = np.arange(3 * sample_rate) / sample_rate
        samples = np.where(
            t < 1.0,
            0.5 * np.sin(2 * np.pi * 500 * t),
            0.5 * np.sin(2 * np.pi * 5000 * t),
        )
        buffer = SampleBuffer.from_array(samples, sample_rate=sample_rate)
        capped = SpectralAnalyzer(fft_size=4096, analysis_window_seconds=1.0).analyze(buffer)
        full = SpectralAnalyzer(fft_size=4096).analyze(buffer)
        idx_5000 = np.argmin(np.abs(capped.frequencies - 5000))

        assert capped.magnitudes[idx_5000] < 0.1
        assert full.magnitudes[idx_5000] > 0.9

    def test_window_shorter_than_one_sample(self, sine_buffer):
        """A window that rounds to zero samples is rejected, not analyzed as silence."""
        analyzer = SpectralAnalyzer(analysis_window_seconds=1e-6)
        with pytest.raises(InvalidBufferError, match="no samples"):
            analyzer.analyze(sine_buffer(1000))

    def test_config_window_used(self, sample_rate):
        config = AdvisorConfig(analysis_window_seconds=0.5)
        buffer = SampleBuffer.from_array(np.zeros(2 * sample_rate), sample_rate=sample_rate)
        spectrum = analyze(buffer, config=config, fft_size=4096)
        expected_frames = 1 + (int(0.5 * sample_rate) - 4096) // 2048
        assert spectrum.frame_count == expected_frames

    def test_invalid_buffer_type(self):
        with pytest.raises(InvalidBufferError):
            SpectralAnalyzer().analyze([0.0, 0.1, 0.2])


class TestDeterminism:
    """Identical input gives bit-identical output."""

    def test_repeatable(self, noise_buffer):
        buffer = noise_buffer(seed=42)
        first = analyze(buffer)
        second = analyze(buffer)
        assert np.array_equal(first.magnitudes, second.magnitudes)
        assert np.array_equal(first.frames, second.frames)
