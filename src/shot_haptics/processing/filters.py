"""First-order high-pass pre-filter."""

import numpy as np
from scipy.signal import lfilter


class HighPassFilter:
    """One-pole high-pass filter removing DC and sub-audible energy.

    y[n] = alpha * (y[n-1] + x[n] - x[n-1]),  alpha = RC / (RC + dt)
    """

    def __init__(self, sample_rate: int, rc: float = 0.05):
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")

        self.sample_rate = sample_rate
        self.rc = rc
        dt = 1.0 / sample_rate
        self.alpha = rc / (rc + dt)

        # lfilter coefficients of the same recurrence
        self._b = np.array([self.alpha, -self.alpha])
        self._a = np.array([1.0, -self.alpha])

        self.prev_in = 0.0
        self.prev_out = 0.0

    def process(self, sample: float) -> float:
        """Filter a single sample."""
        y = self.alpha * (self.prev_out + sample - self.prev_in)
        self.prev_in = float(sample)
        self.prev_out = y
        return y

    def process_block(self, samples: np.ndarray) -> np.ndarray:
        """Filter a block of samples in order, carrying state across blocks."""
        x = np.asarray(samples, dtype=np.float64)
        if x.size == 0:
            return x

        # Transposed direct form II state equivalent to (prev_in, prev_out)
        zi = np.array([self.alpha * (self.prev_out - self.prev_in)])
        y, _ = lfilter(self._b, self._a, x, zi=zi)

        self.prev_in = float(x[-1])
        self.prev_out = float(y[-1])
        return y

    def reset(self) -> None:
        self.prev_in = 0.0
        self.prev_out = 0.0
