"""Main Engine class - hosts the detection pipeline and its adapters."""

import logging
import threading
from typing import Callable, Optional

import numpy as np

from .config import GlobalConfig
from .haptics import Actuator
from .listener import AudioListener
from .models import CaptureSource, Diagnostics, Event
from .pipeline import DetectionPipeline, monotonic_ms

logger = logging.getLogger(__name__)


class Engine:
    """Shot detection engine.

    Wires the pipeline between a capture adapter and an actuator:
    Audio Input -> DetectionPipeline -> Actuator / callbacks

    Example:
        >>> from shot_haptics import Engine, GlobalConfig, LoggingActuator
        >>>
        >>> engine = Engine(GlobalConfig.load("shot_haptics.yaml"), actuator=LoggingActuator())
        >>> engine.start()  # Blocking
    """

    def __init__(
        self,
        config: Optional[GlobalConfig] = None,
        actuator: Optional[Actuator] = None,
        on_event: Optional[Callable[[Event], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize the engine.

        Args:
            config: Full configuration (defaults if None)
            actuator: Receives every emitted event (optional)
            on_event: Extra callback with each Event
            clock: Monotonic ms clock; None picks one from `audio.clock`
        """
        self.config = config or GlobalConfig()
        self.actuator = actuator
        self.on_event = on_event

        if clock is None and self.config.audio.clock == "monotonic":
            clock = monotonic_ms

        self._capture_source = self.config.audio.source
        self._running = False
        self._listener: Optional[AudioListener] = None

        self.pipeline = DetectionPipeline(
            params=self.config.detection,
            haptics=self.config.haptics,
            sample_rate=self.config.audio.sample_rate,
            clock=clock,
            on_event=self._dispatch,
            stats_interval_ms=self.config.system.stats_interval_s * 1000.0,
        )

        logger.info(
            f"Engine initialized: {self.config.audio.sample_rate}Hz, "
            f"chunk={self.config.audio.chunk_size}, source={self._capture_source.value}"
        )

    @property
    def capture_source(self) -> CaptureSource:
        """Source currently feeding the pipeline."""
        return self._capture_source

    def set_capture_source(self, source: CaptureSource) -> None:
        """Switch source for the next start(). Ignored while running."""
        if self._running:
            logger.warning("Cannot change capture source while running")
            return
        self._capture_source = CaptureSource(source)
        self.config.audio.source = self._capture_source

    def process_chunk(self, audio_chunk: np.ndarray) -> Optional[Event]:
        """Process a single audio chunk through the pipeline.

        This can be called directly if you're handling audio capture yourself.

        Args:
            audio_chunk: Raw audio samples (int16, mono)

        Returns:
            The emitted event, if any
        """
        return self.pipeline.push_block(audio_chunk)

    def _dispatch(self, event: Event) -> None:
        """Hand an event to the actuator and the user callback."""
        if self.actuator is not None:
            try:
                self.actuator.actuate(event)
            except Exception as e:
                logger.error(f"Error in actuator: {e}")

        if self.on_event is not None:
            try:
                self.on_event(event)
            except Exception as e:
                logger.error(f"Error in on_event callback: {e}")

    def diagnostics(self) -> Diagnostics:
        return self.pipeline.diagnostics()

    def start(self) -> None:
        """Start the engine with audio capture (blocking).

        This will block the current thread and capture audio until stop() is called.
        """
        self._listener = AudioListener(self.config.audio, self.process_chunk)

        if not self._listener.setup():
            logger.error("Failed to setup audio listener")
            self._listener.cleanup()
            self._listener = None
            return

        self._running = True

        try:
            self._listener.start()
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received")
        finally:
            self.stop()

    def start_async(self) -> threading.Thread:
        """Start the engine in a background thread.

        Returns:
            The background thread (already started)
        """
        thread = threading.Thread(target=self.start, daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        """Stop the engine and release resources."""
        self._running = False

        if self._listener:
            self._listener.stop()
            self._listener.cleanup()
            self._listener = None

        logger.info(f"Engine stopped ({self.diagnostics().summary()})")

    @property
    def is_running(self) -> bool:
        """Check if the engine is currently running."""
        return self._running
