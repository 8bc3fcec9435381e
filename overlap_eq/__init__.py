"""
Spectral Overlap & EQ Advisory Engine

Compares the spectra of two decoded audio tracks, finds where they compete
for the same frequencies, classifies each competing region as constructive
or destructive from the real phase relationship, and suggests parametric EQ
cuts that reduce destructive masking.
"""

__version__ = "0.1.0"

from .models import (
    TrackId,
    SampleBuffer,
    Spectrum,
    OverlapPoint,
    FrequencyRange,
    FrequencyBand,
    EQSuggestion,
    SuggestionKind,
    OverlapAnalysisError,
    InvalidBufferError,
    UnsupportedTransformSizeError,
    MismatchedSpectraError,
)
from .config import (
    AdvisorConfig,
    ConfigLoader,
    ConfigLoadError,
    load_config,
    get_config_loader,
)
from .parametric_eq import FilterType
from .spectral_analyzer import SpectralAnalyzer, analyze
from .overlap_detector import OverlapDetector, detect_overlaps
from .band_grouper import BandGrouper, group_into_bands
from .eq_advisor import EQAdvisor, advise
from .interference import (
    InterferenceRegion,
    DominantRange,
    summarize_interference,
    dominant_ranges,
)
from .preview import preview_spectrum, preview_pair, suggestion_response_db
from .pipeline import (
    MixOverlapAnalyzer,
    MixAnalysisResult,
    SpectrumCache,
    analyze_pair,
)

__all__ = [
    # Data model
    'TrackId',
    'SampleBuffer',
    'Spectrum',
    'OverlapPoint',
    'FrequencyRange',
    'FrequencyBand',
    'EQSuggestion',
    'SuggestionKind',
    'FilterType',
    # Errors
    'OverlapAnalysisError',
    'InvalidBufferError',
    'UnsupportedTransformSizeError',
    'MismatchedSpectraError',
    'ConfigLoadError',
    # Configuration
    'AdvisorConfig',
    'ConfigLoader',
    'load_config',
    'get_config_loader',
    # Stages
    'SpectralAnalyzer',
    'analyze',
    'OverlapDetector',
    'detect_overlaps',
    'BandGrouper',
    'group_into_bands',
    'EQAdvisor',
    'advise',
    # Presentation helpers
    'InterferenceRegion',
    'DominantRange',
    'summarize_interference',
    'dominant_ranges',
    'preview_spectrum',
    'preview_pair',
    'suggestion_response_db',
    # Pipeline
    'MixOverlapAnalyzer',
    'MixAnalysisResult',
    'SpectrumCache',
    'analyze_pair',
]
