"""Audio listener component for capturing microphone or loopback input."""

import logging
from typing import Callable, Dict, List, Optional

import numpy as np

from .config import AudioConfig
from .models import CaptureSource

try:
    import pyaudio

    HAS_PYAUDIO = True
except ImportError:
    HAS_PYAUDIO = False

logger = logging.getLogger(__name__)

# Substrings of device names that capture what the system is playing
LOOPBACK_HINTS = ("loopback", "stereo mix", "monitor of", "what u hear", "blackhole")


def downmix(chunk: np.ndarray, channels: int) -> np.ndarray:
    """Average interleaved int16 frames down to one channel."""
    if channels <= 1:
        return chunk
    usable = len(chunk) - len(chunk) % channels
    frames = chunk[:usable].reshape(-1, channels).astype(np.int32)
    return frames.mean(axis=1).astype(np.int16)


def _require_pyaudio() -> None:
    if not HAS_PYAUDIO:
        raise ImportError(
            "PyAudio is required for audio capture. Install it with: pip install 'shot-haptics[audio]'"
        )


def list_input_devices() -> List[Dict[str, object]]:
    """Return index, name and input channel count of every input device."""
    _require_pyaudio()
    pa = pyaudio.PyAudio()
    try:
        info = pa.get_host_api_info_by_index(0)
        devices = []
        for i in range(info.get("deviceCount", 0)):
            dev = pa.get_device_info_by_host_api_device_index(0, i)
            if dev.get("maxInputChannels", 0) > 0:
                devices.append(
                    {
                        "index": i,
                        "name": dev.get("name"),
                        "channels": dev.get("maxInputChannels"),
                    }
                )
        return devices
    finally:
        pa.terminate()


class AudioListener:
    """Handles audio capture from an input device.

    Provides a callback-based interface for receiving mono int16 chunks.
    """

    def __init__(self, config: AudioConfig, on_audio_chunk: Callable[[np.ndarray], None]):
        """Initialize the audio listener.

        Args:
            config: Audio configuration settings
            on_audio_chunk: Callback function to receive audio chunks
        """
        _require_pyaudio()

        self.config = config
        self.on_audio_chunk = on_audio_chunk
        self._pyaudio: Optional["pyaudio.PyAudio"] = None
        self._stream = None
        self._running = False
        self.device_index: Optional[int] = config.device_index

    def setup(self) -> bool:
        """Initialize PyAudio and open the audio stream.

        Returns:
            True if successful, False otherwise
        """
        try:
            logger.info("Initializing PyAudio...")
            self._pyaudio = pyaudio.PyAudio()
            self._list_devices()

            if self.device_index is None and self.config.source is CaptureSource.LOOPBACK:
                self.device_index = self._find_loopback_device()
                if self.device_index is None:
                    logger.error("No loopback input device found; set audio.device_index")
                    return False

            if self.device_index is not None:
                if not self._validate_device(self.device_index):
                    return False
                logger.info(f"Using audio device index: {self.device_index}")
            else:
                logger.info("Using default audio device")

            self._stream = self._pyaudio.open(
                format=pyaudio.paInt16,
                channels=self.config.channels,
                rate=self.config.sample_rate,
                input=True,
                input_device_index=self.device_index,
                frames_per_buffer=self.config.chunk_size,
            )
            logger.info(f"Audio stream opened ({self.config.source.value})")
            return True

        except Exception as e:
            logger.error(f"Failed to initialize audio: {e}")
            return False

    def _find_loopback_device(self) -> Optional[int]:
        """First input device whose name looks like a system-audio loopback."""
        info = self._pyaudio.get_host_api_info_by_index(0)
        for i in range(info.get("deviceCount", 0)):
            dev = self._pyaudio.get_device_info_by_host_api_device_index(0, i)
            name = str(dev.get("name", "")).lower()
            if dev.get("maxInputChannels", 0) > 0 and any(h in name for h in LOOPBACK_HINTS):
                logger.info(f"Loopback device: {dev.get('name')} (index {i})")
                return i
        return None

    def _validate_device(self, device_index: int) -> bool:
        """Validate that a device index is usable for input."""
        try:
            dev_info = self._pyaudio.get_device_info_by_host_api_device_index(0, device_index)
            if dev_info.get("maxInputChannels", 0) == 0:
                logger.error(f"Device index {device_index} has no input channels!")
                return False
            logger.info(
                f"Device: {dev_info.get('name')} (Inputs: {dev_info.get('maxInputChannels')})"
            )
            return True
        except Exception as e:
            logger.error(f"Invalid device index {device_index}: {e}")
            return False

    def _list_devices(self) -> None:
        """Log all available audio input devices."""
        logger.debug("Available audio input devices:")
        try:
            info = self._pyaudio.get_host_api_info_by_index(0)
            num_devices = info.get("deviceCount", 0)
            if num_devices == 0:
                logger.warning("No audio devices found!")
                return

            for i in range(num_devices):
                device_info = self._pyaudio.get_device_info_by_host_api_device_index(0, i)
                if device_info.get("maxInputChannels", 0) > 0:
                    logger.debug(
                        f"  Index {i}: {device_info.get('name')} "
                        f"(Inputs: {device_info.get('maxInputChannels')})"
                    )
        except Exception as e:
            logger.error(f"Could not list devices: {e}")

    def start(self) -> None:
        """Start the audio capture loop (blocking)."""
        if not self._stream:
            logger.error("Audio stream not initialized. Call setup() first.")
            return

        self._running = True
        logger.info("Listener started - capturing audio...")

        try:
            while self._running:
                audio_data = self._stream.read(self.config.chunk_size, exception_on_overflow=False)
                audio_chunk = np.frombuffer(audio_data, dtype=np.int16)
                self.on_audio_chunk(downmix(audio_chunk, self.config.channels))

        except Exception as e:
            if self._running:
                logger.error(f"Error in audio capture loop: {e}", exc_info=True)

    def stop(self) -> None:
        """Stop the audio capture loop."""
        self._running = False
        logger.info("Listener stopping...")

    def cleanup(self) -> None:
        """Release audio resources."""
        if self._stream:
            try:
                self._stream.stop_stream()
                self._stream.close()
            except Exception as e:
                logger.debug(f"Error closing stream: {e}")
            self._stream = None

        if self._pyaudio:
            try:
                self._pyaudio.terminate()
            except Exception as e:
                logger.debug(f"Error terminating PyAudio: {e}")
            self._pyaudio = None

        logger.info("Audio cleanup complete")
