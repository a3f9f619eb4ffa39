"""Spectral analysis layer: low-frequency energy ratio over recent audio."""

import logging
from functools import lru_cache
from typing import Tuple

import numpy as np

from .ring_buffer import RingBuffer

logger = logging.getLogger(__name__)


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


@lru_cache(maxsize=8)
def _radix2_plan(n: int) -> Tuple[np.ndarray, Tuple[Tuple[np.ndarray, np.ndarray], ...]]:
    """Bit-reversal permutation and per-stage twiddle factors for size n."""
    bits = n.bit_length() - 1
    idx = np.arange(n)
    rev = np.zeros(n, dtype=np.intp)
    for b in range(bits):
        rev |= ((idx >> b) & 1) << (bits - 1 - b)

    twiddles = []
    size = 2
    while size <= n:
        angle = -2.0 * np.pi * np.arange(size // 2) / size
        twiddles.append((np.cos(angle), np.sin(angle)))
        size *= 2

    rev.setflags(write=False)
    return rev, tuple(twiddles)


def fft_radix2(real: np.ndarray, imag: np.ndarray) -> None:
    """In-place iterative radix-2 Cooley-Tukey FFT.

    Args:
        real: Real parts, 1-D contiguous float64, length a power of two
        imag: Imaginary parts, same shape as `real`

    Both arrays are overwritten with the transform.
    """
    n = real.shape[0]
    if real.ndim != 1 or imag.shape != real.shape:
        raise ValueError("real and imag must be 1-D arrays of equal length")
    if not is_power_of_two(n):
        raise ValueError(f"FFT size must be a power of two, got {n}")
    if not (real.flags.c_contiguous and imag.flags.c_contiguous):
        raise ValueError("FFT buffers must be contiguous")

    rev, twiddles = _radix2_plan(n)
    real[:] = real[rev]
    imag[:] = imag[rev]

    size = 2
    for w_re, w_im in twiddles:
        half = size // 2
        # Views: each row is one butterfly group of the current stage
        re = real.reshape(-1, size)
        im = imag.reshape(-1, size)

        u_re = re[:, :half].copy()
        u_im = im[:, :half].copy()
        v_re = re[:, half:] * w_re - im[:, half:] * w_im
        v_im = re[:, half:] * w_im + im[:, half:] * w_re

        re[:, :half] = u_re + v_re
        im[:, :half] = u_im + v_im
        re[:, half:] = u_re - v_re
        im[:, half:] = u_im - v_im
        size *= 2


class SpectralAnalyzer:
    """Computes the fraction of spectral energy below a cutoff frequency.

    A high ratio marks "boomy" low-frequency-dominant transients
    (explosions), a low one sharp cracks. Analysis is decimated: only
    every `interval_blocks`-th call to `maybe_analyze` runs an FFT, the
    others return the previous ratio.

    The work buffers are allocated once and reused, so an analyzer must
    only be driven from one thread.
    """

    def __init__(
        self,
        sample_rate: int,
        fft_size: int = 512,
        cutoff_hz: float = 300.0,
        interval_blocks: int = 4,
    ):
        """Initialize the spectral analyzer.

        Args:
            sample_rate: Audio sample rate in Hz
            fft_size: FFT window length, a power of two
            cutoff_hz: Upper edge of the low-frequency band
            interval_blocks: Run the FFT every N blocks
        """
        if not is_power_of_two(fft_size):
            raise ValueError(f"fft_size must be a power of two, got {fft_size}")
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")

        self.sample_rate = sample_rate
        self.fft_size = fft_size
        self.cutoff_hz = cutoff_hz
        self.interval_blocks = max(1, interval_blocks)

        self.nyquist_bin = fft_size // 2
        bin_hz = sample_rate / fft_size
        self.low_max_bin = min(int(cutoff_hz / bin_hz), self.nyquist_bin)

        # Symmetric Hann window: 0.5 - 0.5 * cos(2*pi*i / (N - 1))
        self.window = np.hanning(fft_size)
        self._real = np.zeros(fft_size, dtype=np.float64)
        self._imag = np.zeros(fft_size, dtype=np.float64)

        self.blocks_since_fft = 0
        self.last_ratio = 0.0

    def maybe_analyze(self, ring: RingBuffer) -> float:
        """Tick once per block; analyze the ring buffer every Nth tick.

        Returns:
            The current low-frequency ratio (possibly from an earlier tick)
        """
        self.blocks_since_fft += 1
        if self.blocks_since_fft >= self.interval_blocks:
            self.blocks_since_fft = 0
            self.last_ratio = self.analyze_ring(ring)
            logger.debug(f"Low-frequency ratio: {self.last_ratio:.3f}")
        return self.last_ratio

    def analyze_ring(self, ring: RingBuffer) -> float:
        """Analyze the latest window of the ring buffer."""
        if len(ring) < self.fft_size:
            return 0.0
        ring.latest(self.fft_size, out=self._real)
        return self._low_ratio_of_buffer()

    def analyze(self, samples: np.ndarray) -> float:
        """Analyze exactly `fft_size` samples in temporal order.

        Args:
            samples: Filtered samples (any float scale)

        Returns:
            Low-frequency energy ratio in [0, 1], 0.0 for silence
        """
        samples = np.asarray(samples, dtype=np.float64)
        if samples.shape != (self.fft_size,):
            raise ValueError(f"Expected {self.fft_size} samples, got {samples.shape}")
        self._real[:] = samples
        return self._low_ratio_of_buffer()

    def _low_ratio_of_buffer(self) -> float:
        self._real *= self.window
        self._imag.fill(0.0)
        fft_radix2(self._real, self._imag)

        # Bins 1 .. nyquist-1 (DC skipped)
        re = self._real[1 : self.nyquist_bin]
        im = self._imag[1 : self.nyquist_bin]
        power = re * re + im * im

        total = float(power.sum())
        if total <= 0.0:
            return 0.0
        low = float(power[: self.low_max_bin].sum())
        return low / total

    def reset(self) -> None:
        self.blocks_since_fft = 0
        self.last_ratio = 0.0
