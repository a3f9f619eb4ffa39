"""Block-by-block detection pipeline.

Audio Input -> High-pass -> Ring buffer / Envelope -> FFT (decimated) -> Classifier -> Event
"""

import logging
import time
from typing import Callable, Dict, Optional, Sequence, Union

import numpy as np

from .classifier import EventClassifier
from .config import DetectionParams, HapticParams
from .models import Diagnostics, Event, EventKind, Strength
from .processing.dsp import SpectralAnalyzer
from .processing.envelope import EnvelopeTracker
from .processing.filters import HighPassFilter
from .processing.ring_buffer import RingBuffer

logger = logging.getLogger(__name__)

INT16_SCALE = 32768.0

Samples = Union[np.ndarray, Sequence[int]]


def monotonic_ms() -> float:
    """Milliseconds from a clock unaffected by system time changes."""
    return time.monotonic() * 1000.0


class DetectionPipeline:
    """Runs every stage of the detector on each incoming block.

    The pipeline exclusively owns all rolling state and is not thread safe:
    blocks must be delivered serially by a single producer.

    Example:
        >>> pipeline = DetectionPipeline(on_event=print)
        >>> for block in blocks:  # int16 mono blocks at 44.1kHz
        ...     pipeline.push_block(block)
    """

    def __init__(
        self,
        params: Optional[DetectionParams] = None,
        haptics: Optional[HapticParams] = None,
        sample_rate: int = 44100,
        clock: Optional[Callable[[], float]] = None,
        on_event: Optional[Callable[[Event], None]] = None,
        stats_interval_ms: float = 5000.0,
    ):
        """Initialize the pipeline.

        Args:
            params: Detection parameters (defaults if None)
            haptics: Pulse table used to size emitted events (defaults if None)
            sample_rate: Sample rate of the incoming stream in Hz
            clock: Returns monotonic milliseconds; None uses stream time
                (samples consumed / sample rate)
            on_event: Called synchronously with each emitted event
            stats_interval_ms: Period of the diagnostics log line, 0 disables it
        """
        self.params = params or DetectionParams()
        self.haptics = haptics or HapticParams()
        self.sample_rate = sample_rate
        self.clock = clock
        self.on_event = on_event
        self.stats_interval_ms = stats_interval_ms

        p = self.params
        if p.ring_capacity < p.fft_size:
            raise ValueError(
                f"ring_capacity ({p.ring_capacity}) must hold at least one FFT window ({p.fft_size})"
            )

        self._filter = HighPassFilter(sample_rate, rc=p.highpass_rc)
        self._ring = RingBuffer(p.ring_capacity)
        self._envelope = EnvelopeTracker(
            quiet_db=p.min_medium_db,
            initial_floor_db=p.noise_floor_initial_db,
            batch=p.noise_floor_batch,
            blend=p.noise_floor_blend,
        )
        self._spectral = SpectralAnalyzer(
            sample_rate,
            fft_size=p.fft_size,
            cutoff_hz=p.low_freq_cutoff_hz,
            interval_blocks=p.fft_interval_blocks,
        )
        self._classifier = EventClassifier(p, self.haptics)

        self._reset_counters()
        logger.debug(f"Pipeline initialized: {sample_rate}Hz, fft={p.fft_size}")

    def _reset_counters(self) -> None:
        self._samples_consumed = 0
        self._blocks = 0
        self._shots = 0
        self._medium = 0
        self._by_strength: Dict[Strength, int] = {s: 0 for s in Strength}
        self._last_stats_ms: Optional[float] = None

    def reset(self) -> None:
        """Return to the freshly constructed state."""
        self._filter.reset()
        self._ring.clear()
        self._envelope.reset()
        self._spectral.reset()
        self._classifier.reset()
        self._reset_counters()

    @property
    def stream_time_ms(self) -> float:
        """Time at the end of the last consumed sample, in ms."""
        return self._samples_consumed * 1000.0 / self.sample_rate

    @property
    def noise_floor_db(self) -> float:
        return self._envelope.noise_floor_db

    @property
    def low_freq_ratio(self) -> float:
        return self._spectral.last_ratio

    @property
    def classifier(self) -> EventClassifier:
        return self._classifier

    def _to_mono_float(self, samples: Samples) -> Optional[np.ndarray]:
        """Normalize a block to 1-D float64; int input is scaled from int16 range."""
        if samples is None:
            return None
        block = np.asarray(samples)
        if block.ndim == 2 and block.shape[1] == 1:
            block = block[:, 0]
        if block.ndim != 1:
            logger.warning(f"Skipping block with unsupported shape {block.shape}")
            return None
        if block.size == 0:
            return None

        if np.issubdtype(block.dtype, np.integer):
            return block.astype(np.float64) / INT16_SCALE
        if np.issubdtype(block.dtype, np.floating):
            # Float input is taken as already normalized to [-1, 1]
            return np.nan_to_num(block.astype(np.float64), nan=0.0, posinf=0.0, neginf=0.0)

        logger.warning(f"Skipping block with unsupported dtype {block.dtype}")
        return None

    def push_block(self, samples: Samples, now_ms: Optional[float] = None) -> Optional[Event]:
        """Process one block of mono audio.

        Args:
            samples: int16 samples (or floats already in [-1, 1])
            now_ms: Explicit block time in monotonic ms; overrides the clock

        Returns:
            The event emitted for this block, or None. Empty or malformed
            blocks are no-ops.
        """
        block = self._to_mono_float(samples)
        if block is None:
            return None

        filtered = self._filter.process_block(block)
        self._ring.write(filtered)
        self._samples_consumed += block.size
        self._blocks += 1

        if now_ms is None:
            now_ms = self.clock() if self.clock is not None else self.stream_time_ms

        reading = self._envelope.update_block(filtered)
        low_ratio = self._spectral.maybe_analyze(self._ring)
        event = self._classifier.evaluate(
            reading.db, reading.derivative, self._envelope.noise_floor_db, now_ms
        )

        if logger.isEnabledFor(logging.DEBUG):
            c = self._classifier
            logger.debug(
                f"db={reading.db:.1f} der={reading.derivative:.2f} "
                f"floor={self._envelope.noise_floor_db:.1f} low={low_ratio:.2f} "
                f"rapid={c.rapid_count} interval={c.last_shot_interval_ms:.0f}"
            )

        if event is not None:
            self._count(event)
            if self.on_event is not None:
                try:
                    self.on_event(event)
                except Exception as e:
                    logger.error(f"Error in on_event callback: {e}")

        self._maybe_log_stats(now_ms)
        return event

    def _count(self, event: Event) -> None:
        if event.kind is EventKind.SHOT:
            self._shots += 1
            self._by_strength[event.strength] += 1
        else:
            self._medium += 1

    def _maybe_log_stats(self, now_ms: float) -> None:
        if self.stats_interval_ms <= 0:
            return
        if self._last_stats_ms is None or now_ms < self._last_stats_ms:
            self._last_stats_ms = now_ms
            return
        if now_ms - self._last_stats_ms >= self.stats_interval_ms:
            self._last_stats_ms = now_ms
            logger.info(f"Stats {self.diagnostics().summary()}")

    def diagnostics(self) -> Diagnostics:
        """Snapshot of the observational counters."""
        return Diagnostics(
            blocks_processed=self._blocks,
            events_emitted=self._shots + self._medium,
            shots=self._shots,
            medium_impacts=self._medium,
            by_strength=dict(self._by_strength),
            noise_floor_db=self._envelope.noise_floor_db,
            low_freq_ratio=self._spectral.last_ratio,
            rapid_count=self._classifier.rapid_count,
        )
