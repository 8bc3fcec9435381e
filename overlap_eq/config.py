"""
Advisor Configuration Module

Centralized, tunable configuration for the overlap engine. Every threshold
and coefficient used by the analyzer, detector, grouper and advisor lives
here with its default. Configs can be built from keyword arguments, a dict,
a YAML file, or OEQ_* environment variables.
"""

from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import logging
import math
import os

import yaml

from .utils import (
    ANALYSIS_WINDOW_SECONDS,
    DEFAULT_FFT_SIZE,
    MAX_FFT_SIZE,
    MIN_FFT_SIZE,
    is_power_of_two,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "OEQ_"


class ConfigLoadError(Exception):
    """Raised when configuration loading or validation fails."""
    pass


@dataclass
class AdvisorConfig:
    """
    Configuration for the overlap analysis pipeline.

    Attributes:
        fft_size: Transform size (power of two, 32-32768)
        analysis_window_seconds: Only this many leading seconds are analyzed
        energy_threshold: Minimum louder-track magnitude for an overlap (0-1)
        overlap_threshold: Minimum min/max magnitude ratio for an overlap (0-1)
        phase_tolerance_degrees: Max |phase difference| still counted as constructive
        adjacency_gap_hz: Gap that starts a new band
        min_band_width_hz: Bands narrower than this are discarded
        min_band_points: Bands with fewer points are discarded
        gain_base_db: Base offset of the band cut
        gain_intensity_coeff: dB per unit of mean overlap intensity (<= 0)
        gain_destructive_coeff: dB per unit of destructive ratio (<= 0)
        min_cut_db: Gentlest allowed band cut
        max_cut_db: Deepest allowed band cut
        low_end_cutoff_hz: Points below this count toward low-end buildup
        low_end_point_threshold: More low-end points than this triggers a high-pass
        low_end_guard_hz: Existing cuts starting below this suppress the high-pass
        highpass_range: Range of the supplemental high-pass suggestion
        highpass_gain_db: Gain reported for the high-pass suggestion
        highpass_q: Q of the high-pass suggestion
        fallback_bandwidth_hz: Width of the fallback cut
        fallback_gain_db: Gain of the fallback cut
        fallback_q: Q of the fallback cut
        resample_mismatched_rates: Resample track 2 to track 1's rate in the pipeline
    """
    # Spectral analysis
    fft_size: int = DEFAULT_FFT_SIZE
    analysis_window_seconds: float = ANALYSIS_WINDOW_SECONDS

    # Overlap detection
    energy_threshold: float = 0.1
    overlap_threshold: float = 0.3
    phase_tolerance_degrees: float = 90.0

    # Band grouping
    adjacency_gap_hz: float = 100.0
    min_band_width_hz: float = 50.0
    min_band_points: int = 3

    # Band cut derivation
    gain_base_db: float = -1.0
    gain_intensity_coeff: float = -4.0
    gain_destructive_coeff: float = -4.0
    min_cut_db: float = -2.0
    max_cut_db: float = -9.0

    # Low-end buildup heuristic
    low_end_cutoff_hz: float = 150.0
    low_end_point_threshold: int = 5
    low_end_guard_hz: float = 200.0
    highpass_range: Tuple[float, float] = (20.0, 120.0)
    highpass_gain_db: float = -6.0
    highpass_q: float = 0.7

    # Fallback suggestion
    fallback_bandwidth_hz: float = 100.0
    fallback_gain_db: float = -3.0
    fallback_q: float = 2.0

    # Pipeline
    resample_mismatched_rates: bool = True

    def __post_init__(self):
        self.highpass_range = tuple(float(v) for v in self.highpass_range)
        self.validate()

    @property
    def phase_tolerance(self) -> float:
        """Phase tolerance in radians."""
        return math.radians(self.phase_tolerance_degrees)

    def validate(self) -> None:
        """
        Check every value is inside its meaningful range.

        Raises:
            ConfigLoadError: On the first invalid value
        """
        errors: List[str] = []

        if not (is_power_of_two(self.fft_size) and MIN_FFT_SIZE <= self.fft_size <= MAX_FFT_SIZE):
            errors.append(f"fft_size must be a power of two in [{MIN_FFT_SIZE}, {MAX_FFT_SIZE}]")
        if self.analysis_window_seconds <= 0:
            errors.append("analysis_window_seconds must be positive")
        for name in ("energy_threshold", "overlap_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value < 1.0:
                errors.append(f"{name} must lie in [0, 1)")
        if not 0.0 <= self.phase_tolerance_degrees <= 180.0:
            errors.append("phase_tolerance_degrees must lie in [0, 180]")
        if self.adjacency_gap_hz < 0 or self.min_band_width_hz < 0:
            errors.append("adjacency_gap_hz and min_band_width_hz must be >= 0")
        if self.min_band_points < 1:
            errors.append("min_band_points must be >= 1")
        for name in ("gain_base_db", "gain_intensity_coeff", "gain_destructive_coeff"):
            if getattr(self, name) > 0:
                errors.append(f"{name} must be <= 0 so more overlap always cuts more")
        if not self.max_cut_db <= self.min_cut_db <= 0:
            errors.append("cut bounds must satisfy max_cut_db <= min_cut_db <= 0")
        if self.low_end_point_threshold < 0:
            errors.append("low_end_point_threshold must be >= 0")
        if len(self.highpass_range) != 2 or self.highpass_range[0] > self.highpass_range[1]:
            errors.append("highpass_range must be a (low, high) pair with low <= high")
        for name in ("highpass_gain_db", "fallback_gain_db"):
            if getattr(self, name) > 0:
                errors.append(f"{name} must be <= 0")
        for name in ("highpass_q", "fallback_q"):
            if not 0.1 <= getattr(self, name) <= 10.0:
                errors.append(f"{name} must lie in [0.1, 10]")
        if self.fallback_bandwidth_hz <= 0:
            errors.append("fallback_bandwidth_hz must be positive")

        if errors:
            raise ConfigLoadError("Invalid advisor config: " + "; ".join(errors))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dict (YAML/JSON friendly)."""
        data = asdict(self)
        data["highpass_range"] = list(self.highpass_range)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdvisorConfig":
        """
        Create config from a dict, rejecting unknown keys.

        Raises:
            ConfigLoadError: If a key is unknown or a value is invalid
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigLoadError(f"Unknown config keys: {', '.join(unknown)}")
        try:
            return cls(**data)
        except (TypeError, ValueError) as e:
            raise ConfigLoadError(f"Invalid advisor config: {e}") from e

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "AdvisorConfig":
        """
        Create config from environment variables.

        Every field can be overridden with OEQ_<FIELD_NAME>, e.g.
        OEQ_FFT_SIZE=8192 or OEQ_HIGHPASS_RANGE=30,100. OEQ_CONFIG may name
        a YAML file that is loaded first; individual variables win over it.
        """
        env = os.environ if environ is None else environ

        base: Dict[str, Any] = {}
        config_path = env.get(f"{ENV_PREFIX}CONFIG")
        if config_path:
            base = load_config(config_path).to_dict()

        defaults = cls()
        for f in fields(cls):
            raw = env.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None or raw == "":
                continue
            base[f.name] = _parse_env_value(f.name, raw, getattr(defaults, f.name))

        return cls.from_dict(base)


def _parse_env_value(name: str, raw: str, default: Any) -> Any:
    try:
        if isinstance(default, bool):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
        if isinstance(default, tuple):
            return tuple(float(part) for part in raw.split(","))
    except ValueError as e:
        raise ConfigLoadError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from e
    return raw


def load_config(path: Union[str, Path]) -> AdvisorConfig:
    """
    Load an AdvisorConfig from a YAML file.

    Missing keys keep their defaults.

    Raises:
        ConfigLoadError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigLoadError(f"Configuration file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse YAML file {path}: {e}") from e
    except OSError as e:
        raise ConfigLoadError(f"Failed to load configuration file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigLoadError(f"Configuration file {path} must contain a mapping")

    # Allow the settings to sit under a top-level "advisor" key
    if "advisor" in data and isinstance(data["advisor"], dict):
        data = data["advisor"]

    config = AdvisorConfig.from_dict(data)
    logger.debug(f"Loaded advisor config from {path}")
    return config


class ConfigLoader:
    """
    Loads named advisor profiles from a directory of YAML files, with caching.

    Attributes:
        config_dir: Directory containing <profile>.yaml files
    """

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory with profile files.
                       Defaults to ../configs relative to this module.
        """
        if config_dir is None:
            self.config_dir = Path(__file__).parent.parent / "configs"
        else:
            self.config_dir = Path(config_dir)

        self._cache: Dict[str, AdvisorConfig] = {}

    def load_profile(self, name: str = "default") -> AdvisorConfig:
        """
        Load a profile by name (file stem).

        Raises:
            ConfigLoadError: If the profile cannot be loaded
        """
        if name in self._cache:
            return self._cache[name]

        config = load_config(self.config_dir / f"{name}.yaml")
        self._cache[name] = config
        return config

    def get_available_profiles(self) -> List[str]:
        """List profile names found in the config directory."""
        if not self.config_dir.exists():
            return []
        return sorted(path.stem for path in self.config_dir.glob("*.yaml"))

    def has_profile(self, name: str) -> bool:
        return (self.config_dir / f"{name}.yaml").exists()

    def reload(self) -> None:
        """Clear the cache so profiles are re-read on next access."""
        self._cache.clear()
        logger.info("Configuration cache cleared")


# Module-level singleton for convenience
_default_loader: Optional[ConfigLoader] = None


def get_config_loader(config_dir: Optional[Path] = None) -> ConfigLoader:
    """
    Get the default ConfigLoader instance.

    A custom config_dir always returns a fresh loader.
    """
    global _default_loader

    if config_dir is not None:
        return ConfigLoader(config_dir)

    if _default_loader is None:
        _default_loader = ConfigLoader()

    return _default_loader
