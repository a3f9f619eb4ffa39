"""Fixed-capacity circular history of filtered samples."""

from typing import Optional

import numpy as np


class RingBuffer:
    """Circular buffer with a wrap-around write position.

    Never resized; the oldest samples are overwritten continuously.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._data = np.zeros(capacity, dtype=np.float64)
        self._index = 0
        self._count = 0

    def __len__(self) -> int:
        """Number of valid samples (saturates at capacity)."""
        return self._count

    def write(self, samples: np.ndarray) -> None:
        """Append samples, overwriting the oldest ones."""
        samples = np.asarray(samples, dtype=np.float64)
        n = samples.size
        if n == 0:
            return

        if n >= self.capacity:
            # Only the newest `capacity` samples survive
            tail = samples[-self.capacity :]
            shift = (self._index + n) % self.capacity
            self._data[:] = np.roll(tail, shift)
            self._index = shift
            self._count = self.capacity
            return

        end = self._index + n
        if end <= self.capacity:
            self._data[self._index : end] = samples
        else:
            first = self.capacity - self._index
            self._data[self._index :] = samples[:first]
            self._data[: n - first] = samples[first:]

        self._index = end % self.capacity
        self._count = min(self._count + n, self.capacity)

    def latest(self, n: int, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Return the most recent `n` samples in temporal order.

        Args:
            n: Number of samples (must not exceed capacity)
            out: Optional preallocated array of length n to fill

        Returns:
            Array of n samples, oldest first. Slots never written are zero.
        """
        if n > self.capacity:
            raise ValueError(f"Requested {n} samples from a buffer of {self.capacity}")
        if out is None:
            out = np.empty(n, dtype=np.float64)

        start = (self._index - n) % self.capacity
        if start + n <= self.capacity:
            out[:] = self._data[start : start + n]
        else:
            first = self.capacity - start
            out[:first] = self._data[start:]
            out[first:] = self._data[: n - first]
        return out

    def clear(self) -> None:
        self._data.fill(0.0)
        self._index = 0
        self._count = 0
