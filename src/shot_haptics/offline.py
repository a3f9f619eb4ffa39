"""Offline processing of recorded audio."""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import numpy as np
from scipy.io import wavfile

from .config import GlobalConfig
from .haptics import RecordingActuator
from .models import Diagnostics, Event
from .pipeline import DetectionPipeline

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Outcome of running the pipeline over a whole recording."""

    events: List[Event] = field(default_factory=list)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    duration_s: float = 0.0
    sample_rate: int = 0

    @property
    def shots(self) -> List[Event]:
        return [e for e in self.events if e.is_shot]


def load_wav(path: Union[str, Path]) -> Tuple[int, np.ndarray]:
    """Read a WAV file as mono int16.

    Float files are scaled from [-1, 1], 32-bit int files shifted down,
    multi-channel files averaged.

    Returns:
        (sample_rate, samples)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Audio file not found: {path}")

    sample_rate, data = wavfile.read(str(path))

    dtype = data.dtype
    scaled = data.astype(np.float64)
    if np.issubdtype(dtype, np.floating):
        scaled *= 32767.0
    elif dtype == np.int32:
        scaled /= 65536.0
    elif dtype == np.uint8:
        scaled = (scaled - 128.0) * 256.0

    if scaled.ndim == 2:
        scaled = scaled.mean(axis=1)

    return int(sample_rate), np.clip(np.round(scaled), -32768, 32767).astype(np.int16)


def iter_blocks(samples: np.ndarray, chunk_size: int) -> Iterator[np.ndarray]:
    """Yield consecutive blocks; the final partial block is included."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    for start in range(0, len(samples), chunk_size):
        yield samples[start : start + chunk_size]


def analyze_samples(
    samples: np.ndarray,
    sample_rate: int,
    config: Optional[GlobalConfig] = None,
) -> AnalysisResult:
    """Run a fresh pipeline over an in-memory recording using stream time."""
    config = config or GlobalConfig()
    recorder = RecordingActuator()
    pipeline = DetectionPipeline(
        params=config.detection,
        haptics=config.haptics,
        sample_rate=sample_rate,
        on_event=recorder.actuate,
        stats_interval_ms=config.system.stats_interval_s * 1000.0,
    )

    for block in iter_blocks(samples, config.audio.chunk_size):
        pipeline.push_block(block)

    return AnalysisResult(
        events=list(recorder.events),
        diagnostics=pipeline.diagnostics(),
        duration_s=len(samples) / sample_rate,
        sample_rate=sample_rate,
    )


def analyze_file(path: Union[str, Path], config: Optional[GlobalConfig] = None) -> AnalysisResult:
    """Analyze a WAV file. The pipeline runs at the file's sample rate."""
    config = config or GlobalConfig()
    sample_rate, samples = load_wav(path)

    if sample_rate != config.audio.sample_rate:
        logger.info(
            f"{Path(path).name}: {sample_rate}Hz (configured {config.audio.sample_rate}Hz), "
            "using the file rate"
        )
        config = replace(config, audio=replace(config.audio, sample_rate=sample_rate))

    logger.info(f"Analyzing {Path(path).name}: {len(samples) / sample_rate:.2f}s")
    return analyze_samples(samples, sample_rate, config)
