"""Actuation adapters: where emitted events turn into haptic feedback.

The core only emits `Event`s carrying a pulse duration and an amplitude
hint. Whether the hint can be honoured is a property of the actuator
(`supports_amplitude`), not of the detection pipeline.
"""

import logging
from typing import Callable, List, Optional, Protocol

from .models import Event

logger = logging.getLogger(__name__)


class Actuator(Protocol):
    """Receives events synchronously from the processing path.

    Implementations must return quickly; a blocking actuator stalls audio
    processing.
    """

    supports_amplitude: bool

    def actuate(self, event: Event) -> None: ...


def effective_amplitude(event: Event, supports_amplitude: bool) -> Optional[int]:
    """Amplitude to drive, or None for the device default."""
    if not supports_amplitude:
        return None
    return event.amplitude


class CallbackActuator:
    """Forwards each event to a user callback.

    The callback receives the event and the effective amplitude. Errors are
    logged, never propagated into the audio path.
    """

    def __init__(
        self,
        callback: Callable[[Event, Optional[int]], None],
        supports_amplitude: bool = True,
    ):
        self.callback = callback
        self.supports_amplitude = supports_amplitude

    def actuate(self, event: Event) -> None:
        try:
            self.callback(event, effective_amplitude(event, self.supports_amplitude))
        except Exception as e:
            logger.error(f"Error in actuator callback: {e}")


class LoggingActuator:
    """Logs the pulse that would be played. Useful for tuning and dry runs."""

    def __init__(self, supports_amplitude: bool = False, level: int = logging.INFO):
        self.supports_amplitude = supports_amplitude
        self.level = level

    def actuate(self, event: Event) -> None:
        amplitude = effective_amplitude(event, self.supports_amplitude)
        logger.log(
            self.level,
            f"PULSE {event.duration_ms}ms amp={amplitude if amplitude is not None else 'default'} "
            f"<- {event}",
        )


class RecordingActuator:
    """Keeps every received event in memory (offline analysis, tests)."""

    def __init__(self, supports_amplitude: bool = True):
        self.supports_amplitude = supports_amplitude
        self.events: List[Event] = []

    def actuate(self, event: Event) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()
