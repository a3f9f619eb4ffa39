"""Data models for detected acoustic events."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, Optional


class EventKind(str, Enum):
    """Kind of an emitted event."""

    SHOT = "shot"
    MEDIUM_IMPACT = "medium_impact"


class Strength(IntEnum):
    """Severity grade of a shot. Ordered: SOFT < STRONG < ULTRA."""

    SOFT = 0
    STRONG = 1
    ULTRA = 2

    def __str__(self) -> str:
        return self.name.lower()


class CaptureSource(str, Enum):
    """Where the analyzed audio comes from."""

    MIC = "mic"
    LOOPBACK = "loopback"


@dataclass(frozen=True)
class Event:
    """A classified percussive event.

    Attributes:
        kind: SHOT or MEDIUM_IMPACT
        strength: Grade of a shot (None for medium impacts)
        timestamp_ms: Pipeline time of the block that produced the event
        interval_ms: Time since the previous shot (shots) or event (medium), 0 if none
        duration_ms: Pulse duration requested from the actuator
        amplitude: Amplitude hint (0-255), None for the actuator's default
        db: Block level in dBFS
        derivative: Relative RMS change against the previous block
        rapid_count: Rapid-sequence counter after this event
    """

    kind: EventKind
    strength: Optional[Strength]
    timestamp_ms: float
    interval_ms: float
    duration_ms: int
    amplitude: Optional[int] = None
    db: float = 0.0
    derivative: float = 0.0
    rapid_count: int = 0

    @property
    def is_shot(self) -> bool:
        return self.kind is EventKind.SHOT

    def __str__(self) -> str:
        label = f"SHOT[{self.strength!s}]" if self.is_shot else "MEDIUM"
        return (
            f"{label} @ {self.timestamp_ms:.1f}ms "
            f"(interval={self.interval_ms:.1f}ms, pulse={self.duration_ms}ms, "
            f"db={self.db:.1f}, der={self.derivative:.2f})"
        )


@dataclass(frozen=True)
class Diagnostics:
    """Read-only snapshot of pipeline counters.

    Observational only; nothing in the decision logic reads these.
    """

    blocks_processed: int = 0
    events_emitted: int = 0
    shots: int = 0
    medium_impacts: int = 0
    by_strength: Dict[Strength, int] = field(
        default_factory=lambda: {s: 0 for s in Strength}
    )
    noise_floor_db: float = 0.0
    low_freq_ratio: float = 0.0
    rapid_count: int = 0

    @property
    def strong_or_better(self) -> int:
        """Shots graded STRONG or ULTRA."""
        return self.by_strength[Strength.STRONG] + self.by_strength[Strength.ULTRA]

    def summary(self) -> str:
        return (
            f"shots={self.shots} strong={self.strong_or_better} "
            f"ultra={self.by_strength[Strength.ULTRA]} medium={self.medium_impacts} "
            f"rapidSeq={self.rapid_count} low={self.low_freq_ratio:.2f} "
            f"floor={self.noise_floor_db:.1f}"
        )
