"""Signal processing stages: filtering, envelope tracking and spectral analysis."""

from .dsp import SpectralAnalyzer, fft_radix2
from .envelope import EnvelopeReading, EnvelopeTracker
from .filters import HighPassFilter
from .ring_buffer import RingBuffer

__all__ = [
    "HighPassFilter",
    "RingBuffer",
    "EnvelopeTracker",
    "EnvelopeReading",
    "SpectralAnalyzer",
    "fft_radix2",
]
