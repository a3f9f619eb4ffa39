"""Configuration for the shot detection pipeline.

This module centralizes all tunable parameters: the detection thresholds
used by the classifier, the DSP constants, the haptic pulse table, audio
capture settings and system (logging) settings. Everything can be loaded
from a single YAML file via `GlobalConfig.load`.
"""

import logging
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Type, TypeVar, Union

import yaml

from .models import CaptureSource

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

T = TypeVar("T")


class ConfigError(ValueError):
    """Raised when a configuration file is structurally invalid."""


@dataclass(frozen=True)
class DetectionParams:
    """Thresholds, timers and DSP constants of the detection pipeline.

    Immutable for the lifetime of a pipeline. Threshold combinations that
    can never trigger are not rejected; that is the caller's business.

    Attributes:
        min_shot_db: Absolute dBFS level above which a block may be a shot
        min_medium_db: Absolute dBFS level for medium impacts; blocks below
            it also feed the noise floor
        shot_offset_db: Shot threshold relative to the noise floor
        medium_offset_db: Medium threshold relative to the noise floor
        min_derivative_shot: Minimum RMS attack slope for a shot
        min_derivative_medium: Minimum RMS attack slope for a medium impact
        refractory_shot_ms: Minimum gap before another shot
        refractory_medium_ms: Minimum gap before a medium impact
        ultra_excess_db: dB above the shot threshold graded ULTRA
        ultra_derivative_mul: Derivative multiplier graded ULTRA
        shorten_threshold_ms: Shot intervals below this shorten the pulse
        min_pulse_ms: Floor for shortened pulses
        shorten_factor: Pulse scale factor at high cadence
        micro_shot_db_delta: How far below the shot threshold a micro-shot may be
        micro_shot_derivative: Minimum derivative for a micro-shot
        micro_shot_min_gap_ms: Minimum gap before a micro-shot
        rapid_interval_fast_ms: Shot intervals below this count as very fast fire
        fast_refractory_ms: Shot refractory used during very fast fire
    """

    min_shot_db: float = -22.0
    min_medium_db: float = -32.0
    shot_offset_db: float = 11.0
    medium_offset_db: float = 5.0
    min_derivative_shot: float = 0.48
    min_derivative_medium: float = 0.26
    refractory_shot_ms: float = 18.0
    refractory_medium_ms: float = 140.0
    ultra_excess_db: float = 11.0
    ultra_derivative_mul: float = 3.0
    shorten_threshold_ms: float = 55.0
    min_pulse_ms: int = 12
    shorten_factor: float = 0.55
    micro_shot_db_delta: float = 2.0
    micro_shot_derivative: float = 0.15
    micro_shot_min_gap_ms: float = 10.0
    rapid_interval_fast_ms: float = 50.0
    fast_refractory_ms: float = 10.0

    # Grading
    strong_excess_db: float = 6.0
    strong_derivative_mul: float = 2.2

    # Rapid-sequence counter (diagnostics only)
    rapid_sequence_ms: float = 160.0
    rapid_sequence_cap: int = 1000

    # DSP
    highpass_rc: float = 0.05  # seconds
    ring_capacity: int = 4410  # ~100ms at 44.1kHz
    fft_size: int = 512
    fft_interval_blocks: int = 4
    low_freq_cutoff_hz: float = 300.0
    noise_floor_initial_db: float = -45.0
    noise_floor_batch: int = 25
    noise_floor_blend: float = 0.2

    # Timers reset when the clock jumps by more than this between blocks
    max_clock_gap_ms: float = 1000.0

    @classmethod
    def default(cls) -> "DetectionParams":
        return cls()

    @classmethod
    def high_cadence(cls) -> "DetectionParams":
        """Preset for very fast automatic weapons (SMGs, miniguns).

        Arms the fast refractory sooner and lets micro-shots through with a
        slightly smaller attack.
        """
        return cls(
            rapid_interval_fast_ms=70.0,
            fast_refractory_ms=8.0,
            micro_shot_derivative=0.12,
            micro_shot_min_gap_ms=8.0,
        )


@dataclass(frozen=True)
class HapticParams:
    """Nominal haptic pulse table.

    Attributes:
        shot_soft_ms / shot_strong_ms / shot_ultra_ms: Pulse length per grade
        medium_tap_ms: Pulse length of a medium impact tap
        amp_soft / amp_strong / amp_ultra: Amplitude hints per grade (1-255)
    """

    shot_soft_ms: int = 20
    shot_strong_ms: int = 42
    shot_ultra_ms: int = 65
    medium_tap_ms: int = 14
    amp_soft: int = 200
    amp_strong: int = 235
    amp_ultra: int = 255


@dataclass
class SystemConfig:
    """System-level configuration settings.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        stats_interval_s: Period of the diagnostics log line (0 disables it).
    """

    log_level: str = "INFO"
    log_file: Optional[str] = None
    stats_interval_s: float = 5.0


@dataclass
class AudioConfig:
    """Audio capture configuration.

    Attributes:
        sample_rate: Sample rate in Hz (default 44100)
        chunk_size: Samples per block (default 2048, ~46ms)
        channels: Number of captured channels; blocks are down-mixed to mono
        device_index: Specific audio device index, or None for default
        source: MIC or LOOPBACK (system audio)
        clock: "stream" derives time from samples consumed, "monotonic"
            uses time.monotonic()
    """

    sample_rate: int = 44100
    chunk_size: int = 2048
    channels: int = 1
    device_index: Optional[int] = None
    source: CaptureSource = CaptureSource.MIC
    clock: Literal["stream", "monotonic"] = "stream"


def _build(cls: Type[T], data: Any, section: str) -> T:
    """Build a dataclass from a mapping, warning about unknown keys."""
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{section}' must be a mapping, got {type(data).__name__}")

    known = {f.name: f for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown key '{section}.{key}'")
            continue
        kwargs[key] = value

    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigError(f"Invalid '{section}' section: {e}") from e


def _coerce_numbers(params: T) -> T:
    """Coerce YAML ints/floats to the declared field type."""
    changes = {}
    for f in fields(params):
        value = getattr(params, f.name)
        if f.type in (float, "float") and isinstance(value, int) and not isinstance(value, bool):
            changes[f.name] = float(value)
        elif f.type in (int, "int") and isinstance(value, float):
            changes[f.name] = int(value)
        elif f.type in (float, "float", int, "int") and not isinstance(value, (int, float)):
            raise ConfigError(f"'{f.name}' must be a number, got {value!r}")
    return replace(params, **changes) if changes else params


@dataclass
class GlobalConfig:
    """Unified configuration for the entire application.

    Loaded from a YAML file with optional `system`, `audio`, `detection`
    and `haptics` sections:

    ```yaml
    system:
      log_level: INFO
    audio:
      sample_rate: 44100
      chunk_size: 1024
      source: loopback
    detection:
      min_shot_db: -24
      refractory_shot_ms: 15
    haptics:
      shot_ultra_ms: 70
    ```
    """

    system: SystemConfig = field(default_factory=SystemConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    detection: DetectionParams = field(default_factory=DetectionParams.default)
    haptics: HapticParams = field(default_factory=HapticParams)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GlobalConfig":
        """Build a configuration from a plain mapping (e.g. parsed YAML)."""
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration root must be a mapping")

        for key in data:
            if key not in ("system", "audio", "detection", "haptics"):
                logger.warning(f"Ignoring unknown configuration section '{key}'")

        system = _build(SystemConfig, data.get("system"), "system")
        audio = _build(AudioConfig, data.get("audio"), "audio")
        try:
            if not isinstance(audio.source, CaptureSource):
                audio.source = CaptureSource(str(audio.source).lower())
        except ValueError as e:
            raise ConfigError(f"Unknown audio source: {audio.source!r}") from e
        if audio.clock not in ("stream", "monotonic"):
            raise ConfigError(f"Unknown clock: {audio.clock!r}")
        for name in ("sample_rate", "chunk_size", "channels"):
            value = getattr(audio, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"'audio.{name}' must be a positive integer, got {value!r}")

        detection = _coerce_numbers(_build(DetectionParams, data.get("detection"), "detection"))
        haptics = _coerce_numbers(_build(HapticParams, data.get("haptics"), "haptics"))

        return cls(system=system, audio=audio, detection=detection, haptics=haptics)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "GlobalConfig":
        """Load the global configuration from a YAML file.

        Args:
            path: Path to the configuration YAML file.

        Returns:
            A GlobalConfig object populated with the settings.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Could not parse {path}: {e}") from e

        config = cls.from_dict(data)
        logger.debug(f"Loaded configuration from {path}")
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data representation, suitable for `yaml.safe_dump`."""
        audio = asdict(self.audio)
        audio["source"] = self.audio.source.value
        return {
            "system": asdict(self.system),
            "audio": audio,
            "detection": asdict(self.detection),
            "haptics": asdict(self.haptics),
        }


def configure_logging(system: Optional[SystemConfig] = None) -> None:
    """Configure root logging from the system settings."""
    system = system or SystemConfig()
    level = getattr(logging, str(system.log_level).upper(), logging.INFO)

    handlers = [logging.StreamHandler()]
    if system.log_file:
        handlers.append(logging.FileHandler(system.log_file))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
