"""End-to-end tests of the detection pipeline on synthetic audio."""

import logging

import numpy as np
import pytest

from shot_haptics.models import EventKind, Strength
from shot_haptics.pipeline import DetectionPipeline

SAMPLE_RATE = 44100
BLOCK_50MS = 2205
BLOCK_SMALL = 256  # ~5.8 ms
# Whole number of cycles per small block
BURST_FREQ_SMALL = 6 * SAMPLE_RATE / BLOCK_SMALL


def run(pipeline, blocks):
    return [e for e in (pipeline.push_block(b) for b in blocks) if e is not None]


def test_silence_never_triggers_and_floor_converges(signals):
    pipeline = DetectionPipeline()
    floors = []
    events = []
    for _ in range(1000):
        event = pipeline.push_block(signals.silence(64))
        if event is not None:
            events.append(event)
        floors.append(pipeline.noise_floor_db)

    assert events == []
    assert floors[23] == -45.0
    assert floors[24] == pytest.approx(0.8 * -45.0 + 0.2 * -180.0)
    assert all(b <= a for a, b in zip(floors, floors[1:]))
    assert floors[-1] == pytest.approx(-180.0, abs=0.1)


def test_isolated_transient_emits_one_ultra_shot(signals):
    pipeline = DetectionPipeline()
    blocks = (
        [signals.noise(BLOCK_50MS, rms=20) for _ in range(10)]
        + [signals.burst(BLOCK_50MS, rms=8000, frequency=1000.0)]
        + [signals.noise(BLOCK_50MS, rms=20) for _ in range(10)]
    )

    events = run(pipeline, blocks)

    assert len(events) == 1
    shot = events[0]
    assert shot.kind is EventKind.SHOT
    assert shot.strength is Strength.ULTRA
    assert shot.derivative > 100
    assert shot.db > -22.0
    assert shot.timestamp_ms == pytest.approx(11 * 50.0)
    assert shot.duration_ms == 65
    assert shot.amplitude == 255

    d = pipeline.diagnostics()
    assert d.blocks_processed == 21
    assert d.events_emitted == 1
    assert d.shots == 1
    assert d.by_strength[Strength.ULTRA] == 1
    assert d.strong_or_better == 1


def _pair(signals, gap_blocks):
    quiet = [signals.noise(BLOCK_SMALL) for _ in range(20)]
    burst = signals.burst(BLOCK_SMALL, frequency=BURST_FREQ_SMALL)
    between = [signals.noise(BLOCK_SMALL) for _ in range(gap_blocks - 1)]
    tail = [signals.noise(BLOCK_SMALL) for _ in range(20)]
    return quiet + [burst] + between + [burst] + tail


def test_transients_inside_refractory_emit_one_shot(signals):
    # Bursts 2 blocks (~11.6 ms) apart, inside the 18 ms refractory
    events = run(DetectionPipeline(), _pair(signals, gap_blocks=2))
    assert len(events) == 1


def test_transients_beyond_refractory_emit_two_shots(signals):
    # Bursts 5 blocks (~29 ms) apart
    events = run(DetectionPipeline(), _pair(signals, gap_blocks=5))
    assert [e.kind for e in events] == [EventKind.SHOT, EventKind.SHOT]
    assert events[1].interval_ms == pytest.approx(5 * BLOCK_SMALL * 1000.0 / SAMPLE_RATE)


def test_rapid_fire_is_not_dropped(signals):
    # ~43 rounds per second: one burst every 4 small blocks
    blocks = [signals.noise(BLOCK_SMALL) for _ in range(20)]
    for _ in range(12):
        blocks.append(signals.burst(BLOCK_SMALL, frequency=BURST_FREQ_SMALL))
        blocks.extend(signals.noise(BLOCK_SMALL) for _ in range(3))

    events = run(DetectionPipeline(), blocks)

    assert len(events) == 12
    assert [e.rapid_count for e in events] == list(range(1, 13))
    # High cadence shortens pulses after the first shot
    assert events[0].duration_ms == 65
    assert all(e.duration_ms == 36 for e in events[1:])


def test_identical_input_gives_identical_events(signals):
    rng = np.random.default_rng(99)
    blocks = []
    for _ in range(200):
        if rng.random() < 0.1:
            blocks.append(signals.burst(1024, rms=float(rng.uniform(500, 12000))))
        else:
            blocks.append(signals.noise(1024, rms=float(rng.uniform(5, 200))))

    first = run(DetectionPipeline(), blocks)
    second = run(DetectionPipeline(), blocks)

    assert first
    assert first == second


def test_low_freq_ratio_tracks_content(signals):
    pipeline = DetectionPipeline()
    audio = (signals.sine(1024 * 8, 100.0) * 20000).astype(np.int16)
    for i in range(8):
        pipeline.push_block(audio[i * 1024 : (i + 1) * 1024])
    assert pipeline.low_freq_ratio > 0.8

    audio = (signals.sine(1024 * 8, 5000.0) * 20000).astype(np.int16)
    for i in range(8):
        pipeline.push_block(audio[i * 1024 : (i + 1) * 1024])
    assert pipeline.low_freq_ratio < 0.05
    assert pipeline.diagnostics().low_freq_ratio == pipeline.low_freq_ratio


def test_empty_and_malformed_blocks_are_noops(signals, caplog):
    pipeline = DetectionPipeline()
    pipeline.push_block(signals.noise(512))

    assert pipeline.push_block([]) is None
    assert pipeline.push_block(np.array([], dtype=np.int16)) is None
    assert pipeline.push_block(None) is None
    with caplog.at_level(logging.WARNING, logger="shot_haptics.pipeline"):
        assert pipeline.push_block(np.zeros((64, 2), dtype=np.int16)) is None
    assert "unsupported shape" in caplog.text

    d = pipeline.diagnostics()
    assert d.blocks_processed == 1
    assert pipeline.stream_time_ms == pytest.approx(512 * 1000.0 / SAMPLE_RATE)


def test_column_vector_block_is_accepted(signals):
    pipeline = DetectionPipeline()
    pipeline.push_block(signals.noise(256).reshape(-1, 1))
    assert pipeline.diagnostics().blocks_processed == 1


def test_callback_errors_do_not_escape(signals, caplog):
    def broken(event):
        raise RuntimeError("motor on fire")

    pipeline = DetectionPipeline(on_event=broken)
    pipeline.push_block(signals.noise(BLOCK_50MS))
    with caplog.at_level(logging.ERROR, logger="shot_haptics.pipeline"):
        event = pipeline.push_block(signals.burst(BLOCK_50MS))

    assert event is not None
    assert "motor on fire" in caplog.text


def test_clock_and_explicit_time(signals):
    pipeline = DetectionPipeline(clock=lambda: 1234.0)
    pipeline.push_block(signals.noise(BLOCK_50MS))
    event = pipeline.push_block(signals.burst(BLOCK_50MS))
    assert event.timestamp_ms == 1234.0

    pipeline = DetectionPipeline()
    pipeline.push_block(signals.noise(BLOCK_50MS), now_ms=10.0)
    event = pipeline.push_block(signals.burst(BLOCK_50MS), now_ms=77.0)
    assert event.timestamp_ms == 77.0


def test_stats_are_logged_periodically(signals, caplog):
    pipeline = DetectionPipeline(stats_interval_ms=100.0)
    with caplog.at_level(logging.INFO, logger="shot_haptics.pipeline"):
        for _ in range(4):
            pipeline.push_block(signals.noise(BLOCK_50MS))
    assert "Stats shots=0" in caplog.text


def test_reset_restores_initial_state(signals):
    pipeline = DetectionPipeline()
    for _ in range(30):
        pipeline.push_block(signals.silence(256))
    pipeline.push_block(signals.burst(256))
    pipeline.reset()

    d = pipeline.diagnostics()
    assert d.blocks_processed == 0
    assert d.events_emitted == 0
    assert d.noise_floor_db == -45.0
    assert d.low_freq_ratio == 0.0
    assert pipeline.stream_time_ms == 0.0


def test_ring_smaller_than_fft_is_rejected(params):
    from dataclasses import replace

    with pytest.raises(ValueError):
        DetectionPipeline(replace(params, ring_capacity=256))
