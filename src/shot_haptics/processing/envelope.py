"""Block envelope (RMS / dB) tracking with an adaptive noise floor."""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

EPSILON = 1e-9


@dataclass(frozen=True)
class EnvelopeReading:
    """Envelope measurements for one block."""

    rms: float
    db: float
    derivative: float


class EnvelopeTracker:
    """Computes block level and attack slope, and maintains the noise floor.

    The derivative is the relative RMS change against the previous block
    (`rms / last_rms - 1`), so doubling the energy always yields 1.0
    whatever the absolute level.

    The noise floor only learns from "quiet" blocks (below `quiet_db`).
    Every `batch` quiet blocks their mean dB is blended into the floor with
    weight `blend`, which is slow enough to ignore shots but still follows
    ambient drift between scenes.
    """

    def __init__(
        self,
        quiet_db: float = -32.0,
        initial_floor_db: float = -45.0,
        batch: int = 25,
        blend: float = 0.2,
    ):
        self.quiet_db = quiet_db
        self.initial_floor_db = initial_floor_db
        self.batch = batch
        self.blend = blend

        self.last_rms = 0.0
        self.noise_floor_db = initial_floor_db
        self._floor_sum = 0.0
        self._floor_count = 0

    @property
    def pending_floor_samples(self) -> int:
        """Quiet blocks accumulated toward the next floor update."""
        return self._floor_count

    def update_block(self, filtered: np.ndarray) -> Optional[EnvelopeReading]:
        """Measure one block of filtered samples.

        Args:
            filtered: High-passed samples, normalized to [-1, 1]

        Returns:
            EnvelopeReading, or None for an empty block (state untouched)
        """
        n = len(filtered)
        if n == 0:
            return None

        x = np.asarray(filtered, dtype=np.float64)
        rms = math.sqrt(float(np.dot(x, x)) / n)
        db = 20.0 * math.log10(rms + EPSILON)

        if db < self.quiet_db:
            self._accumulate_floor(db)

        derivative = (rms / self.last_rms) - 1.0 if self.last_rms > EPSILON else 0.0
        self.last_rms = rms

        return EnvelopeReading(rms=rms, db=db, derivative=derivative)

    def _accumulate_floor(self, db: float) -> None:
        self._floor_sum += db
        self._floor_count += 1
        if self._floor_count >= self.batch:
            avg = self._floor_sum / self._floor_count
            previous = self.noise_floor_db
            self.noise_floor_db = (1.0 - self.blend) * previous + self.blend * avg
            self._floor_sum = 0.0
            self._floor_count = 0
            logger.debug(f"Noise floor {previous:.1f} -> {self.noise_floor_db:.1f} dB")

    def reset(self) -> None:
        self.last_rms = 0.0
        self.noise_floor_db = self.initial_floor_db
        self._floor_sum = 0.0
        self._floor_count = 0
