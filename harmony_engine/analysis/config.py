"""
Analysis configuration: canonical defaults, resolution of partial overrides,
and clamping to the ranges the settings UI exposes.
"""
import enum
import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict

logger = logging.getLogger(__name__)


class Algorithm(str, enum.Enum):
    FOURIER = "fourier"
    GOERTZEL_BANK = "goertzel_bank"


# log10(magnitude) / dynamic_range -> 0..1. 3.0 spans three decades of magnitude
# (60 dB) for the absolute display; smaller values brighten quiet material.
ABSOLUTE_DYNAMIC_RANGE = 3.0
# Divisor suited to magnitudes normalized by window energy (see rows.FourierRows)
RELATIVE_DYNAMIC_RANGE = 2.0

# Highest piano key, C8
MAX_AUDIBLE_FREQ = 4186.01

MAX_DURATION_SEC = int(os.environ.get("HARMONY_MAX_DURATION_SEC", "120"))

RESOLUTION_RANGE_HZ = (1.0, 50.0)
DURATION_RANGE_SEC = (1, 120)

DEFAULT_CONFIG: Dict[str, Any] = {
    "resolution_hz": 50.0,
    "duration_sec": 90,
    "algorithm": Algorithm.FOURIER.value,
    "dynamic_range": ABSOLUTE_DYNAMIC_RANGE,
    "relative": False,
    "apply_window": False,
    "max_duration_sec": MAX_DURATION_SEC,
}


@dataclass(frozen=True)
class SpectrogramConfig:
    resolution_hz: float = DEFAULT_CONFIG["resolution_hz"]
    duration_sec: int = DEFAULT_CONFIG["duration_sec"]
    algorithm: Algorithm = Algorithm.FOURIER
    dynamic_range: float = ABSOLUTE_DYNAMIC_RANGE
    relative: bool = False
    apply_window: bool = False
    max_duration_sec: int = MAX_DURATION_SEC

    def __post_init__(self):
        if not self.resolution_hz > 0:
            raise ValueError(f"resolution_hz must be > 0, got {self.resolution_hz}")
        if self.duration_sec < 1:
            raise ValueError(f"duration_sec must be >= 1, got {self.duration_sec}")
        if not self.dynamic_range > 0:
            raise ValueError(f"dynamic_range must be > 0, got {self.dynamic_range}")
        if self.max_duration_sec < 1:
            raise ValueError(f"max_duration_sec must be >= 1, got {self.max_duration_sec}")
        # accept plain strings from JSON
        object.__setattr__(self, "algorithm", Algorithm(self.algorithm))

    def window_size(self, sample_rate: int) -> int:
        """Samples per analysis window: round(sample_rate / resolution_hz)."""
        return int(round(sample_rate / self.resolution_hz))

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["algorithm"] = self.algorithm.value
        return d


def _clamp_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """Cap resolution and duration in a raw value dict to the settings UI ranges."""
    lo_hz, hi_hz = RESOLUTION_RANGE_HZ
    lo_s, hi_s = DURATION_RANGE_SEC
    clamped = dict(values)
    clamped["resolution_hz"] = min(max(float(values["resolution_hz"]), lo_hz), hi_hz)
    clamped["duration_sec"] = min(max(int(values["duration_sec"]), lo_s), hi_s)
    return clamped


def resolve_config(
    overrides: Dict[str, Any] = None,
    base: Dict[str, Any] = None,
    clamp: bool = False,
) -> SpectrogramConfig:
    """
    Resolve a config by laying overrides over base (DEFAULT_CONFIG if omitted).

    Unknown keys are dropped with a warning. Switching relative on or off
    without an explicit dynamic_range also switches the divisor to the
    matching display constant. With clamp=True, resolution and duration are
    capped to the UI ranges before validation; otherwise invalid values
    raise ValueError.
    """
    overrides = overrides or {}
    merged = {**(base if base is not None else DEFAULT_CONFIG), **overrides}
    unknown = sorted(k for k in merged if k not in DEFAULT_CONFIG)
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", unknown)
        for key in unknown:
            merged.pop(key)

    if "relative" in overrides and "dynamic_range" not in overrides:
        merged["dynamic_range"] = RELATIVE_DYNAMIC_RANGE if merged["relative"] else ABSOLUTE_DYNAMIC_RANGE
    if clamp:
        merged = _clamp_values(merged)

    return SpectrogramConfig(
        resolution_hz=float(merged["resolution_hz"]),
        duration_sec=int(merged["duration_sec"]),
        algorithm=Algorithm(merged["algorithm"]),
        dynamic_range=float(merged["dynamic_range"]),
        relative=bool(merged["relative"]),
        apply_window=bool(merged["apply_window"]),
        max_duration_sec=int(merged["max_duration_sec"]),
    )


def clamp_config(config: SpectrogramConfig) -> SpectrogramConfig:
    """
    Cap resolution and duration to the settings UI ranges.
    Returns a new config (does not mutate input).
    """
    return resolve_config(config.to_dict(), base=DEFAULT_CONFIG, clamp=True)
