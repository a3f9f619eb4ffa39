"""Shot Haptics - real-time shot and impact detection for haptic feedback.

Analyzes a mono PCM stream block by block (high-pass filter, envelope and
noise floor tracking, FFT low-frequency ratio) and emits graded SHOT /
MEDIUM_IMPACT events fast enough to follow automatic fire.

Usage:
    from shot_haptics import DetectionPipeline

    pipeline = DetectionPipeline(on_event=print)
    for block in blocks:  # int16 mono @ 44.1kHz
        pipeline.push_block(block)
"""

__version__ = "1.0.0"

# Core exports
from shot_haptics.models import CaptureSource, Diagnostics, Event, EventKind, Strength
from shot_haptics.config import (
    AudioConfig,
    ConfigError,
    DetectionParams,
    GlobalConfig,
    HapticParams,
    SystemConfig,
    configure_logging,
)
from shot_haptics.classifier import EventClassifier, Transition, classify_strength, decide
from shot_haptics.pipeline import DetectionPipeline, monotonic_ms
from shot_haptics.haptics import CallbackActuator, LoggingActuator, RecordingActuator
from shot_haptics.engine import Engine
from shot_haptics.offline import AnalysisResult, analyze_file, analyze_samples, load_wav

__all__ = [
    # Version
    "__version__",
    # Core classes
    "DetectionPipeline",
    "EventClassifier",
    "Engine",
    "monotonic_ms",
    # Configuration
    "AudioConfig",
    "ConfigError",
    "DetectionParams",
    "GlobalConfig",
    "HapticParams",
    "SystemConfig",
    "configure_logging",
    # Models
    "CaptureSource",
    "Diagnostics",
    "Event",
    "EventKind",
    "Strength",
    "Transition",
    # Decision helpers
    "classify_strength",
    "decide",
    # Actuators
    "CallbackActuator",
    "LoggingActuator",
    "RecordingActuator",
    # Offline
    "AnalysisResult",
    "analyze_file",
    "analyze_samples",
    "load_wav",
]
