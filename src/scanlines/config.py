"""
Configuration management for scanlines.

Each extraction algorithm has its own dataclass enumerating every option and
its default. Sections are validated once at the algorithm's entry point.
YAML files are merged over the defaults.
"""

import math
import os
from dataclasses import asdict, dataclass, field

import yaml


METHODS = ("max_likelihood", "visvalingam", "split_and_merge", "iterative_endpoint_fit")
VISVALINGAM_METRICS = ("area", "alt", "length")
DISPLAY_MODES = ("none", "text")


def _check_number(name, value, minimum=None, allow_inf=True):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if math.isnan(value):
        raise ValueError(f"{name} must not be NaN")
    if not allow_inf and math.isinf(value):
        raise ValueError(f"{name} must be finite, got {value}")
    if minimum is not None and value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")


def _check_int(name, value, minimum):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")


@dataclass
class IntersectionConfig:
    """Tolerances of the ray/map intersection."""
    angle_tolerance: float = 1e-3  # rad, admits boundary rays
    collinear_tolerance: float = 1e-12

    def validate(self):
        _check_number("angle_tolerance", self.angle_tolerance, minimum=0.0, allow_inf=False)
        _check_number("collinear_tolerance", self.collinear_tolerance, minimum=0.0, allow_inf=False)


@dataclass
class VisvalingamConfig:
    """Configuration for Visvalingam simplification."""
    lmax: float = math.inf
    metric: str = "area"  # "area", "alt" or "length"
    emax: float = math.inf
    n: int = 10

    def validate(self):
        _check_number("lmax", self.lmax, minimum=0.0)
        _check_number("emax", self.emax, minimum=0.0)
        _check_int("n", self.n, minimum=0)
        if self.metric not in VISVALINGAM_METRICS:
            raise ValueError(f"metric must be one of {VISVALINGAM_METRICS}, got {self.metric!r}")


@dataclass
class SplitMergeConfig:
    """Configuration for split-and-merge and iterative endpoint fit."""
    n: int = 0  # target vertex count, 0 disables
    dth: float = 0.1
    nmin: int = 4

    def validate(self):
        _check_int("n", self.n, minimum=0)
        _check_number("dth", self.dth, minimum=0.0)
        _check_int("nmin", self.nmin, minimum=0)


@dataclass
class MaxLikelihoodConfig:
    """Configuration for maximum-likelihood extraction."""
    lmax: float = math.inf
    emax: float = math.inf
    n: int = 10
    dr: float = 1.0  # per-ray penalty of an unreflected ray
    optimize: bool = True
    display: str = "none"  # "none" or "text"
    xatol: float = 1e-2
    fatol: float = 1e-2
    max_iterations: int = None

    def validate(self):
        _check_number("lmax", self.lmax, minimum=0.0)
        _check_number("emax", self.emax, minimum=0.0)
        _check_int("n", self.n, minimum=2)
        _check_number("dr", self.dr, allow_inf=False)
        if not isinstance(self.optimize, bool):
            raise ValueError(f"optimize must be a bool, got {self.optimize!r}")
        if self.display not in DISPLAY_MODES:
            raise ValueError(f"display must be one of {DISPLAY_MODES}, got {self.display!r}")
        _check_number("xatol", self.xatol, minimum=0.0, allow_inf=False)
        _check_number("fatol", self.fatol, minimum=0.0, allow_inf=False)
        if self.max_iterations is not None:
            _check_int("max_iterations", self.max_iterations, minimum=1)


@dataclass
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: str = None
    json_output: bool = False


@dataclass
class ExtractionConfig:
    """Complete configuration of an extraction run."""
    method: str = "max_likelihood"
    intersection: IntersectionConfig = field(default_factory=IntersectionConfig)
    visvalingam: VisvalingamConfig = field(default_factory=VisvalingamConfig)
    split_merge: SplitMergeConfig = field(default_factory=SplitMergeConfig)
    max_likelihood: MaxLikelihoodConfig = field(default_factory=MaxLikelihoodConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)

    def validate(self):
        """Validate the method name and every algorithm section."""
        if self.method not in METHODS:
            raise ValueError(f"method must be one of {METHODS}, got {self.method!r}")
        self.intersection.validate()
        self.visvalingam.validate()
        self.split_merge.validate()
        self.max_likelihood.validate()


SECTIONS = ("intersection", "visvalingam", "split_merge", "max_likelihood", "tracing")


def load_config(config_path=None):
    """
    Load configuration from a YAML file.

    Falls back to defaults for any missing values; unknown keys are ignored.
    """
    config = ExtractionConfig()

    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        config = _merge_config(config, yaml_data)

    return config


def _coerce(current, value):
    """Convert YAML scalars to the type of the default they replace."""
    if isinstance(current, float) and isinstance(value, (int, str)) and not isinstance(value, bool):
        return float(value)
    return value


def _merge_config(config, yaml_data):
    """Merge YAML data into config dataclass."""
    for section in SECTIONS:
        if section not in yaml_data:
            continue
        target = getattr(config, section)
        for key, value in (yaml_data[section] or {}).items():
            if hasattr(target, key):
                setattr(target, key, _coerce(getattr(target, key), value))

    if "method" in yaml_data:
        config.method = yaml_data["method"]

    return config


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    config = ExtractionConfig()

    yaml_data = {"method": config.method}
    for section in SECTIONS:
        yaml_data[section] = asdict(getattr(config, section))

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)
