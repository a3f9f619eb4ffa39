"""Shared fixtures: synthetic audio generators and default parameters."""

import numpy as np
import pytest

from shot_haptics.config import DetectionParams, HapticParams

SAMPLE_RATE = 44100


class SignalFactory:
    """Builds deterministic int16 test blocks."""

    def __init__(self, sample_rate: int = SAMPLE_RATE, seed: int = 1234):
        self.sample_rate = sample_rate
        self.rng = np.random.default_rng(seed)

    def silence(self, n: int) -> np.ndarray:
        return np.zeros(n, dtype=np.int16)

    def noise(self, n: int, rms: float = 20.0) -> np.ndarray:
        """Gaussian noise with the given RMS in int16 units."""
        return np.round(self.rng.normal(0.0, rms, n)).astype(np.int16)

    def burst(self, n: int, rms: float = 8000.0, frequency: float = 1000.0) -> np.ndarray:
        """Hann-tapered sine burst filling the whole block.

        The taper keeps the high-pass filter from ringing into the next block.
        """
        t = np.arange(n) / self.sample_rate
        shape = np.hanning(n) * np.sin(2 * np.pi * frequency * t)
        shape /= np.sqrt(np.mean(shape**2))
        return np.clip(np.round(shape * rms), -32768, 32767).astype(np.int16)

    def sine(self, n: int, frequency: float, amplitude: float = 0.5) -> np.ndarray:
        """Plain sine, normalized float in [-1, 1]."""
        t = np.arange(n) / self.sample_rate
        return amplitude * np.sin(2 * np.pi * frequency * t)


@pytest.fixture
def signals():
    return SignalFactory()


@pytest.fixture
def params():
    return DetectionParams()


@pytest.fixture
def haptics():
    return HapticParams()
