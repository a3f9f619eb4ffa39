"""Tests for the signal processing stages."""

import math

import numpy as np
import pytest

from shot_haptics.processing import (
    EnvelopeTracker,
    HighPassFilter,
    RingBuffer,
    SpectralAnalyzer,
    fft_radix2,
)

SAMPLE_RATE = 44100


# -- High-pass filter --


def test_highpass_alpha():
    hp = HighPassFilter(SAMPLE_RATE, rc=0.05)
    assert hp.alpha == pytest.approx(0.05 / (0.05 + 1.0 / SAMPLE_RATE))


def test_highpass_block_matches_per_sample():
    rng = np.random.default_rng(7)
    x = rng.normal(0, 0.3, 3000)

    per_sample = HighPassFilter(SAMPLE_RATE)
    expected = np.array([per_sample.process(v) for v in x])

    block = HighPassFilter(SAMPLE_RATE)
    # Split unevenly to exercise state carry-over
    out = np.concatenate([block.process_block(x[:1000]), block.process_block(x[1000:])])

    np.testing.assert_allclose(out, expected, rtol=1e-9, atol=1e-12)
    assert block.prev_in == pytest.approx(per_sample.prev_in)
    assert block.prev_out == pytest.approx(per_sample.prev_out)


def test_highpass_removes_dc():
    hp = HighPassFilter(SAMPLE_RATE)
    y = hp.process_block(np.ones(SAMPLE_RATE))
    assert y[0] == pytest.approx(hp.alpha)
    assert abs(y[-1]) < 1e-6


def test_highpass_empty_block_is_noop():
    hp = HighPassFilter(SAMPLE_RATE)
    hp.process(0.5)
    state = (hp.prev_in, hp.prev_out)
    assert hp.process_block(np.array([])).size == 0
    assert (hp.prev_in, hp.prev_out) == state


def test_highpass_rejects_bad_rate():
    with pytest.raises(ValueError):
        HighPassFilter(0)


# -- Ring buffer --


def test_ring_buffer_wraps_in_temporal_order():
    ring = RingBuffer(8)
    ring.write(np.arange(5))
    ring.write(np.arange(5, 11))

    assert len(ring) == 8
    np.testing.assert_array_equal(ring.latest(8), np.arange(3, 11))
    np.testing.assert_array_equal(ring.latest(3), [8, 9, 10])


def test_ring_buffer_write_longer_than_capacity():
    ring = RingBuffer(4)
    ring.write(np.arange(3))
    ring.write(np.arange(10, 20))
    np.testing.assert_array_equal(ring.latest(4), [16, 17, 18, 19])

    ring.write(np.array([99]))
    np.testing.assert_array_equal(ring.latest(4), [17, 18, 19, 99])


def test_ring_buffer_partial_fill_and_bounds():
    ring = RingBuffer(6)
    ring.write(np.array([1.0, 2.0]))
    assert len(ring) == 2
    np.testing.assert_array_equal(ring.latest(4), [0.0, 0.0, 1.0, 2.0])
    with pytest.raises(ValueError):
        ring.latest(7)


# -- Envelope tracker --


def test_envelope_rms_db_and_first_derivative():
    env = EnvelopeTracker()
    reading = env.update_block(np.full(100, 0.1))
    assert reading.rms == pytest.approx(0.1)
    assert reading.db == pytest.approx(-20.0, abs=1e-6)
    assert reading.derivative == 0.0


def test_envelope_derivative_is_scale_invariant():
    for level in (1e-4, 1e-2, 0.3):
        env = EnvelopeTracker()
        env.update_block(np.full(64, level))
        reading = env.update_block(np.full(64, 2 * level))
        assert reading.derivative == pytest.approx(1.0)


def test_envelope_silence_is_finite():
    env = EnvelopeTracker()
    for _ in range(3):
        reading = env.update_block(np.zeros(128))
        assert math.isfinite(reading.db)
        assert reading.derivative == 0.0
    assert reading.db == pytest.approx(-180.0)


def test_envelope_empty_block_returns_none():
    env = EnvelopeTracker()
    env.update_block(np.full(10, 0.5))
    assert env.update_block(np.array([])) is None
    assert env.last_rms == pytest.approx(0.5)


def test_noise_floor_updates_after_batch_of_quiet_blocks():
    env = EnvelopeTracker(quiet_db=-32.0, initial_floor_db=-45.0, batch=25, blend=0.2)
    quiet = np.full(256, 0.001)  # -60 dB
    loud = np.full(256, 0.3)  # about -10 dB, never accumulated

    for i in range(24):
        env.update_block(quiet)
        env.update_block(loud)
    assert env.noise_floor_db == -45.0
    assert env.pending_floor_samples == 24

    env.update_block(quiet)
    assert env.noise_floor_db == pytest.approx(0.8 * -45.0 + 0.2 * -60.0)
    assert env.pending_floor_samples == 0


# -- FFT / spectral analyzer --


def test_fft_radix2_matches_numpy():
    rng = np.random.default_rng(3)
    x = rng.normal(size=512)
    y = rng.normal(size=512)
    real, imag = x.copy(), y.copy()

    fft_radix2(real, imag)

    expected = np.fft.fft(x + 1j * y)
    np.testing.assert_allclose(real, expected.real, atol=1e-9)
    np.testing.assert_allclose(imag, expected.imag, atol=1e-9)


def test_fft_radix2_rejects_non_power_of_two():
    with pytest.raises(ValueError):
        fft_radix2(np.zeros(500), np.zeros(500))


def test_analyzer_rejects_non_power_of_two():
    with pytest.raises(ValueError):
        SpectralAnalyzer(SAMPLE_RATE, fft_size=500)


def test_analyzer_low_bin():
    analyzer = SpectralAnalyzer(SAMPLE_RATE, fft_size=512, cutoff_hz=300.0)
    # 44100 / 512 = 86.13 Hz per bin
    assert analyzer.low_max_bin == 3


def test_low_ratio_band_orientation(signals):
    analyzer = SpectralAnalyzer(SAMPLE_RATE)
    low = analyzer.analyze(signals.sine(512, 100.0))
    high = analyzer.analyze(signals.sine(512, 5000.0))

    assert 0.0 <= high < low <= 1.0
    assert low > 0.8
    assert high < 0.05


def test_low_ratio_silence_is_zero():
    analyzer = SpectralAnalyzer(SAMPLE_RATE)
    assert analyzer.analyze(np.zeros(512)) == 0.0


def test_low_ratio_is_reproducible(signals):
    x = signals.sine(512, 180.0) + signals.sine(512, 2500.0, amplitude=0.2)
    a = SpectralAnalyzer(SAMPLE_RATE).analyze(x)
    b = SpectralAnalyzer(SAMPLE_RATE).analyze(x)
    assert a == b


def test_maybe_analyze_runs_every_fourth_block(signals):
    analyzer = SpectralAnalyzer(SAMPLE_RATE, interval_blocks=4)
    ring = RingBuffer(4410)
    audio = signals.sine(256 * 8, 100.0)

    ratios = []
    for i in range(8):
        ring.write(audio[i * 256 : (i + 1) * 256])
        ratios.append(analyzer.maybe_analyze(ring))

    assert ratios[:3] == [0.0, 0.0, 0.0]
    assert ratios[3] > 0.8
    assert ratios[4:7] == [ratios[3]] * 3


def test_analyze_ring_needs_a_full_window():
    analyzer = SpectralAnalyzer(SAMPLE_RATE)
    ring = RingBuffer(4410)
    ring.write(np.ones(100))
    assert analyzer.analyze_ring(ring) == 0.0
