"""Event classifier: turns envelope signals into graded shot / impact events.

The decision logic is an ordered decision table. Each block the
conditions are computed from the current level, attack slope and noise
floor, then the rules below are tried in priority order and the first
one whose guard holds wins:

    1. SHOT           shot condition and the (dynamic) shot refractory elapsed
    2. MICRO_SHOT     no shot condition, relaxed micro-shot condition and
                      the micro-shot gap elapsed
    3. MEDIUM_IMPACT  medium condition and the medium refractory elapsed

The pure pieces (`evaluate_conditions`, `decide`, `classify_strength`,
`shape_pulse`) carry no timing state and can be tested in isolation;
`EventClassifier` owns the timers.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from .config import DetectionParams, HapticParams
from .models import Event, EventKind, Strength

logger = logging.getLogger(__name__)


class Transition(str, Enum):
    """Rule of the decision table that fired."""

    SHOT = "shot"
    MICRO_SHOT = "micro_shot"
    MEDIUM_IMPACT = "medium_impact"


@dataclass(frozen=True)
class Conditions:
    """Per-block trigger conditions and the thresholds they were built from."""

    shot: bool
    medium: bool
    micro_shot: bool
    dyn_shot_db: float
    dyn_medium_db: float


def evaluate_conditions(
    db: float, derivative: float, noise_floor_db: float, params: DetectionParams
) -> Conditions:
    """Compute shot / medium / micro-shot conditions for one block."""
    dyn_shot = noise_floor_db + params.shot_offset_db
    dyn_medium = noise_floor_db + params.medium_offset_db

    shot = (db > params.min_shot_db or db > dyn_shot) and derivative > params.min_derivative_shot
    medium = (
        db > params.min_medium_db or db > dyn_medium
    ) and derivative > params.min_derivative_medium
    # Relaxed fallback for fast automatic fire where transients blur together
    micro_shot = (
        db > dyn_shot - params.micro_shot_db_delta and derivative > params.micro_shot_derivative
    )

    return Conditions(
        shot=shot,
        medium=medium,
        micro_shot=micro_shot,
        dyn_shot_db=dyn_shot,
        dyn_medium_db=dyn_medium,
    )


def dynamic_refractory_ms(last_interval_ms: float, params: DetectionParams) -> float:
    """Shot refractory, shortened once very fast fire has been seen."""
    if 0 < last_interval_ms < params.rapid_interval_fast_ms:
        return params.fast_refractory_ms
    return params.refractory_shot_ms


# (transition, guard(conditions, elapsed_ms, refractory_ms, params)) in priority order
Rule = Tuple[Transition, Callable[[Conditions, float, float, DetectionParams], bool]]

DECISION_TABLE: Tuple[Rule, ...] = (
    (Transition.SHOT, lambda c, elapsed, refractory, p: c.shot and elapsed > refractory),
    (
        Transition.MICRO_SHOT,
        lambda c, elapsed, refractory, p: (
            not c.shot and c.micro_shot and elapsed > p.micro_shot_min_gap_ms
        ),
    ),
    (
        Transition.MEDIUM_IMPACT,
        lambda c, elapsed, refractory, p: c.medium and elapsed > p.refractory_medium_ms,
    ),
)


def decide(
    conditions: Conditions,
    elapsed_ms: float,
    refractory_ms: float,
    params: DetectionParams,
) -> Optional[Transition]:
    """Pick the first rule of the decision table whose guard holds.

    Args:
        conditions: Conditions of the current block
        elapsed_ms: Time since the last emitted event (inf if none yet)
        refractory_ms: Current shot refractory (see `dynamic_refractory_ms`)
        params: Detection parameters

    Returns:
        The winning Transition, or None for "no event this block"
    """
    for transition, guard in DECISION_TABLE:
        if guard(conditions, elapsed_ms, refractory_ms, params):
            return transition
    return None


def classify_strength(
    db: float, derivative: float, noise_floor_db: float, params: DetectionParams
) -> Strength:
    """Grade a shot by its excess over the dynamic shot threshold and its attack."""
    excess = db - (noise_floor_db + params.shot_offset_db)
    if (
        excess > params.ultra_excess_db
        or derivative > params.min_derivative_shot * params.ultra_derivative_mul
    ):
        return Strength.ULTRA
    if (
        excess > params.strong_excess_db
        or derivative > params.min_derivative_shot * params.strong_derivative_mul
    ):
        return Strength.STRONG
    return Strength.SOFT


def shape_pulse(nominal_ms: int, interval_ms: float, params: DetectionParams) -> int:
    """Shorten a pulse at high cadence so consecutive taps stay distinct."""
    if 0 < interval_ms < params.shorten_threshold_ms:
        # Halves round up
        return max(math.floor(nominal_ms * params.shorten_factor + 0.5), params.min_pulse_ms)
    return nominal_ms


class PulseShaper:
    """Maps a graded event to the pulse requested from the actuator."""

    def __init__(self, haptics: HapticParams, params: DetectionParams):
        self.haptics = haptics
        self.params = params

    def for_shot(self, strength: Strength, interval_ms: float) -> Tuple[int, int]:
        """Return (duration_ms, amplitude_hint) for a shot."""
        h = self.haptics
        nominal, amplitude = {
            Strength.ULTRA: (h.shot_ultra_ms, h.amp_ultra),
            Strength.STRONG: (h.shot_strong_ms, h.amp_strong),
            Strength.SOFT: (h.shot_soft_ms, h.amp_soft),
        }[strength]
        return shape_pulse(nominal, interval_ms, self.params), amplitude

    def for_medium(self) -> Tuple[int, Optional[int]]:
        """Medium impacts are a fixed tap at the actuator's default amplitude."""
        return self.haptics.medium_tap_ms, None


class EventClassifier:
    """Stateful decision engine with adaptive refractory gating.

    Timestamps are monotonic milliseconds. When the clock runs backwards or
    jumps forward by more than `max_clock_gap_ms` between blocks (device
    sleep, stream restart) the timers are reset so interval math never
    spans the gap.

    Micro-shots carry the grade of the last primary shot, or SOFT when no
    shot has been graded yet; they never change that stored grade.
    """

    def __init__(
        self,
        params: Optional[DetectionParams] = None,
        haptics: Optional[HapticParams] = None,
    ):
        self.params = params or DetectionParams()
        self.shaper = PulseShaper(haptics or HapticParams(), self.params)
        self.reset()

    def reset(self) -> None:
        """Forget all timers and the last grade."""
        self.last_event_ms: Optional[float] = None
        self.last_shot_ms: Optional[float] = None
        self.last_shot_interval_ms = 0.0
        self.rapid_count = 0
        self.last_strength: Optional[Strength] = None
        self.last_block_ms: Optional[float] = None

    def _reset_timers(self) -> None:
        self.last_event_ms = None
        self.last_shot_ms = None
        self.last_shot_interval_ms = 0.0
        self.rapid_count = 0

    def _check_clock(self, now_ms: float) -> None:
        if self.last_block_ms is not None:
            step = now_ms - self.last_block_ms
            if step < 0 or step > self.params.max_clock_gap_ms:
                logger.info(f"Clock jumped by {step:.0f}ms, resetting event timers")
                self._reset_timers()
        self.last_block_ms = now_ms

    def evaluate(
        self, db: float, derivative: float, noise_floor_db: float, now_ms: float
    ) -> Optional[Event]:
        """Classify one block.

        Args:
            db: Block level in dBFS
            derivative: Relative RMS change against the previous block
            noise_floor_db: Current noise floor estimate
            now_ms: Monotonic time of the block in milliseconds

        Returns:
            The emitted Event, or None
        """
        if not (math.isfinite(db) and math.isfinite(derivative)):
            return None

        self._check_clock(now_ms)
        p = self.params

        conditions = evaluate_conditions(db, derivative, noise_floor_db, p)
        elapsed = math.inf if self.last_event_ms is None else now_ms - self.last_event_ms
        refractory = dynamic_refractory_ms(self.last_shot_interval_ms, p)

        transition = decide(conditions, elapsed, refractory, p)
        if transition is None:
            return None

        if transition is Transition.MEDIUM_IMPACT:
            interval = 0.0 if self.last_event_ms is None else now_ms - self.last_event_ms
            self.last_event_ms = now_ms
            duration, amplitude = self.shaper.for_medium()
            event = Event(
                kind=EventKind.MEDIUM_IMPACT,
                strength=None,
                timestamp_ms=now_ms,
                interval_ms=interval,
                duration_ms=duration,
                amplitude=amplitude,
                db=db,
                derivative=derivative,
                rapid_count=self.rapid_count,
            )
            logger.debug(f"Medium impact: {event}")
            return event

        interval = self._register_shot(now_ms)
        if transition is Transition.SHOT:
            strength = classify_strength(db, derivative, noise_floor_db, p)
            self.last_strength = strength
        else:
            strength = self.last_strength if self.last_strength is not None else Strength.SOFT

        duration, amplitude = self.shaper.for_shot(strength, interval)
        event = Event(
            kind=EventKind.SHOT,
            strength=strength,
            timestamp_ms=now_ms,
            interval_ms=interval,
            duration_ms=duration,
            amplitude=amplitude,
            db=db,
            derivative=derivative,
            rapid_count=self.rapid_count,
        )
        logger.debug(f"{transition.value}: {event}")
        return event

    def _register_shot(self, now_ms: float) -> float:
        """Shot bookkeeping shared by the primary and micro-shot rules."""
        p = self.params
        if self.last_shot_ms is None:
            interval = 0.0
            self.rapid_count = 1
        else:
            interval = now_ms - self.last_shot_ms
            if interval < p.rapid_sequence_ms:
                self.rapid_count = min(self.rapid_count + 1, p.rapid_sequence_cap)
            else:
                self.rapid_count = 1

        self.last_shot_interval_ms = interval
        self.last_shot_ms = now_ms
        self.last_event_ms = now_ms
        return interval
