"""
Pytest fixtures for overlap_eq tests.
"""
import pytest
import sys
import shutil
import tempfile
from pathlib import Path

import numpy as np

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from overlap_eq.models import SampleBuffer, Spectrum  # noqa: E402

# 512 bins exactly 10 Hz apart: bin i sits at i * 10 Hz
GRID_SAMPLE_RATE = 10240
GRID_FFT_SIZE = 1024


@pytest.fixture
def sample_rate():
    """Standard sample rate for tests."""
    return 44100


@pytest.fixture
def temp_dir():
    """Create temporary directory for test outputs."""
    tmp = tempfile.mkdtemp()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def project_config_dir():
    """The shipped configs directory."""
    return PROJECT_ROOT / 'configs'


@pytest.fixture
def grid_spectrum():
    """
    Factory for hand-built spectra on a 10 Hz grid.

    Usage: grid_spectrum([(low_hz, high_hz, magnitude, phase), ...])
    Bins outside every region get magnitude 0.
    """
    def make(regions=(), floor=0.0):
        bin_count = GRID_FFT_SIZE // 2
        frequencies = np.arange(bin_count) * GRID_SAMPLE_RATE / GRID_FFT_SIZE
        magnitudes = np.full(bin_count, floor)
        phases = np.zeros(bin_count)
        for low, high, magnitude, phase in regions:
            mask = (frequencies >= low) & (frequencies <= high)
            magnitudes[mask] = magnitude
            phases[mask] = phase
        return Spectrum.from_components(
            magnitudes, phases, sample_rate=GRID_SAMPLE_RATE, fft_size=GRID_FFT_SIZE
        )
    return make


@pytest.fixture
def sine_buffer():
    """
    Factory for sine-wave SampleBuffers.

    Usage: sine_buffer(frequency, duration=1.0, amplitude=0.5, phase=0.0, sample_rate=44100)
    """
    def make(frequency, duration=1.0, amplitude=0.5, phase=0.0, sample_rate=44100, name=None):
        t = np.arange(int(duration * sample_rate)) / sample_rate
        samples = amplitude * np.sin(2 * np.pi * frequency * t + phase)
        return SampleBuffer.from_array(samples, sample_rate=sample_rate, name=name)
    return make


@pytest.fixture
def noise_buffer():
    """Factory for seeded white-noise SampleBuffers."""
    def make(duration=1.0, amplitude=0.3, seed=0, sample_rate=44100, name=None):
        rng = np.random.default_rng(seed)
        samples = amplitude * rng.standard_normal(int(duration * sample_rate))
        return SampleBuffer.from_array(samples, sample_rate=sample_rate, name=name)
    return make
