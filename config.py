# Hemi-Sync engine configuration
# All default values, domains and enums

from dataclasses import dataclass, field, is_dataclass
from enum import Enum, IntEnum
from typing import List

from logging_utils import log_event


CURRENT_CONFIG_VERSION = 1

# Documented value domains
TONE_HZ_MIN = 1.0
TONE_HZ_MAX = 999.0
CARRIER_HZ_MIN = 0.0
CARRIER_HZ_MAX = 200.0
VOLUME_MIN = 0.0
VOLUME_MAX = 1.0
SPLIT_X_LIMIT = 10.0            # |x| limit per channel in split mode
POSITION_LIMIT = 100.0          # |axis| limit otherwise
RAMP_MS_MIN = 50.0
RAMP_MS_MAX = 100.0
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
# Fixed master trim: two equal-power tones, the carrier and the noise peak
# summed in one ear stay under full scale at volume 1
MIX_HEADROOM = 0.35


class Waveform(IntEnum):
    """Oscillator shapes. Switching between them is never smoothed."""
    SINE = 1
    TRIANGLE = 2
    SQUARE = 3


class Channel(Enum):
    LEFT = "left"
    RIGHT = "right"


class Axis(Enum):
    X = "x"
    Y = "y"
    Z = "z"


@dataclass
class AudioConfig:
    """Output device settings"""
    sample_rate: int = 44100          # Used when the device does not report a native rate
    block_size: int = 512             # Frames per render callback
    channels: int = 2
    device_index: int | None = None   # None = system default output
    latency: str = "low"


@dataclass
class ToneConfig:
    """Persistent channel targets (survive stop/start)"""
    left_hz: float = 440.0
    right_hz: float = 440.0
    carrier_hz: float = 0.0           # 0 = carrier disabled
    waveform: Waveform = Waveform.SINE
    volume: float = 0.5
    pink_noise: bool = False
    preset_name: str = "Custom"


@dataclass
class SmoothingConfig:
    """Parameter ramp behaviour, anchored to the synthesis clock"""
    ramp_ms: float = 60.0             # Linear ramp horizon (50-100)
    debounce_ms: float = 50.0         # Coalescing window for rapid updates
    pump_ms: float = 10.0             # How often pending targets are checked


@dataclass
class NoiseConfig:
    """Background pink noise"""
    duration_s: float = 2.0           # Loop length
    leak: float = 0.02                # Leaky integrator coefficient k
    attenuation: float = 0.1          # Fixed background level
    seed: int | None = None           # None = fresh entropy per enable


@dataclass
class SpatialConfig:
    """Panner settings"""
    split_mode: bool = True
    panning_model: str = "HRTF"       # "HRTF" or "equalpower"
    distance_model: str = "linear"    # "linear", "inverse", "exponential"
    ref_distance: float = 1.0
    max_distance: float = 10000.0
    rolloff_factor: float = 1.0
    left_position: List[float] = field(default_factory=lambda: [-1.0, 0.0, 0.0])
    right_position: List[float] = field(default_factory=lambda: [1.0, 0.0, 0.0])


@dataclass
class AutomationConfig:
    """Spatial reversal automation"""
    enabled: bool = False
    interval_ms: int = 1000           # Tick cadence is interval_ms / 10
    reversal_extent: float = 1.0      # -1 (mirrored) .. 1 (normal)
    step: float = 0.1                 # Extent change per tick
    blend: float = 0.1                # Lerp factor current -> target per tick


@dataclass
class VisualConfig:
    """Visual consumer feed"""
    particle_count: int = 1000
    frame_rate_hz: float = 60.0


@dataclass
class Config:
    """Master configuration"""
    version: int = 1                  # Schema version for persisted configs
    audio: AudioConfig = field(default_factory=AudioConfig)
    tone: ToneConfig = field(default_factory=ToneConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    noise: NoiseConfig = field(default_factory=NoiseConfig)
    spatial: SpatialConfig = field(default_factory=SpatialConfig)
    automation: AutomationConfig = field(default_factory=AutomationConfig)
    visual: VisualConfig = field(default_factory=VisualConfig)

    # Global
    dark_theme: bool = False          # Theme flag, read once at start
    log_level: str = "INFO"           # Logging level (DEBUG/INFO/WARNING/ERROR)
    report_generation_enabled: bool = True


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored; IntEnum fields are coerced when possible."""
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if not hasattr(target, key):
            continue

        current = getattr(target, key)

        if is_dataclass(current):
            if isinstance(value, dict):
                apply_dict_to_dataclass(current, value)
            else:
                log_event("WARNING", "Config", "Section is not an object, keeping defaults",
                          key=key, value_type=type(value).__name__)
            continue

        if isinstance(current, IntEnum):
            try:
                setattr(target, key, current.__class__(value))
            except (ValueError, TypeError):
                log_event("WARNING", "Config", "Could not convert value, keeping default",
                          key=key, enum=current.__class__.__name__)
            continue

        setattr(target, key, value)


def _float_or(value, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _position_or(value, default: List[float]) -> List[float]:
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        return list(default)
    return [clamp(_float_or(v, d), -POSITION_LIMIT, POSITION_LIMIT) for v, d in zip(value, default)]


def migrate_config(config: Config, loaded_version) -> None:
    """Upgrade older config structures to the current schema.
    Replaces None values with defaults and clamps every value to its domain."""
    try:
        version = int(loaded_version) if loaded_version is not None else 0
    except (TypeError, ValueError):
        version = 0
    if version < CURRENT_CONFIG_VERSION:
        log_event("INFO", "Config", "Migrating config", from_version=version, to_version=CURRENT_CONFIG_VERSION)

    defaults = Config()
    tone = config.tone
    tone.left_hz = clamp(_float_or(tone.left_hz, defaults.tone.left_hz), TONE_HZ_MIN, TONE_HZ_MAX)
    tone.right_hz = clamp(_float_or(tone.right_hz, defaults.tone.right_hz), TONE_HZ_MIN, TONE_HZ_MAX)
    tone.carrier_hz = clamp(_float_or(tone.carrier_hz, 0.0), CARRIER_HZ_MIN, CARRIER_HZ_MAX)
    tone.volume = clamp(_float_or(tone.volume, defaults.tone.volume), VOLUME_MIN, VOLUME_MAX)
    if not isinstance(tone.waveform, Waveform):
        tone.waveform = Waveform.SINE
    if tone.pink_noise is None:
        tone.pink_noise = False
    if not isinstance(tone.preset_name, str) or not tone.preset_name:
        tone.preset_name = "Custom"

    smoothing = config.smoothing
    smoothing.ramp_ms = clamp(_float_or(smoothing.ramp_ms, defaults.smoothing.ramp_ms), RAMP_MS_MIN, RAMP_MS_MAX)
    smoothing.debounce_ms = max(0.0, _float_or(smoothing.debounce_ms, defaults.smoothing.debounce_ms))
    smoothing.pump_ms = max(1.0, _float_or(smoothing.pump_ms, defaults.smoothing.pump_ms))

    noise = config.noise
    noise.duration_s = max(0.1, _float_or(noise.duration_s, defaults.noise.duration_s))
    noise.leak = max(0.0, _float_or(noise.leak, defaults.noise.leak))
    noise.attenuation = clamp(_float_or(noise.attenuation, defaults.noise.attenuation), 0.0, 1.0)

    spatial = config.spatial
    if spatial.split_mode is None:
        spatial.split_mode = True
    if spatial.panning_model not in ("HRTF", "equalpower"):
        spatial.panning_model = defaults.spatial.panning_model
    if spatial.distance_model not in ("linear", "inverse", "exponential"):
        spatial.distance_model = defaults.spatial.distance_model
    spatial.left_position = _position_or(spatial.left_position, defaults.spatial.left_position)
    spatial.right_position = _position_or(spatial.right_position, defaults.spatial.right_position)

    automation = config.automation
    if automation.enabled is None:
        automation.enabled = False
    try:
        automation.interval_ms = max(10, int(automation.interval_ms))
    except (TypeError, ValueError):
        automation.interval_ms = defaults.automation.interval_ms
    automation.reversal_extent = clamp(
        _float_or(automation.reversal_extent, defaults.automation.reversal_extent), -1.0, 1.0)
    automation.step = clamp(_float_or(automation.step, defaults.automation.step), 0.001, 1.0)
    automation.blend = clamp(_float_or(automation.blend, defaults.automation.blend), 0.0, 1.0)

    try:
        config.visual.particle_count = max(0, int(config.visual.particle_count))
    except (TypeError, ValueError):
        config.visual.particle_count = defaults.visual.particle_count

    if config.dark_theme is None:
        config.dark_theme = False
    if config.report_generation_enabled is None:
        config.report_generation_enabled = True
    level = config.log_level.upper() if isinstance(config.log_level, str) else ""
    level = "WARNING" if level == "WARN" else level
    config.log_level = level if level in LOG_LEVELS else "INFO"

    config.version = CURRENT_CONFIG_VERSION


# Default config instance
DEFAULT_CONFIG = Config()
