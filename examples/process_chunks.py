#!/usr/bin/env python3
"""Example: Process audio without microphone capture.

This example shows how to feed audio data directly to the pipeline,
useful for:
- Processing recordings
- Custom audio sources (game engines, network streams)
- Testing and simulation
"""

import numpy as np
from shot_haptics import DetectionPipeline, Event

SAMPLE_RATE = 44100
BLOCK = 2048


def generate_gunshot(duration: float, sample_rate: int, level: float = 0.6) -> np.ndarray:
    """Generate a synthetic gunshot: noise burst with a sharp attack and fast decay."""
    n = int(sample_rate * duration)
    t = np.arange(n) / sample_rate
    envelope = np.exp(-t / 0.015)
    rng = np.random.default_rng(0)
    signal = rng.standard_normal(n) * envelope * level
    return (np.clip(signal, -1, 1) * 32767).astype(np.int16)


def generate_ambience(duration: float, sample_rate: int, level: float = 0.002) -> np.ndarray:
    """Generate low-level background noise."""
    rng = np.random.default_rng(1)
    return (rng.standard_normal(int(sample_rate * duration)) * level * 32767).astype(np.int16)


def main():
    events = []

    def on_event(event: Event):
        events.append(event)
        print(f"  {event}")

    pipeline = DetectionPipeline(sample_rate=SAMPLE_RATE, on_event=on_event)

    print("Generating synthetic burst of fire (5 rounds, ~10 rounds/s)...")
    parts = [generate_ambience(1.0, SAMPLE_RATE)]
    for _ in range(5):
        shot = generate_gunshot(0.1, SAMPLE_RATE)
        parts.append(shot + generate_ambience(0.1, SAMPLE_RATE))
    parts.append(generate_ambience(1.0, SAMPLE_RATE))
    audio = np.concatenate(parts)

    print(f"Total audio length: {len(audio) / SAMPLE_RATE:.2f}s")
    print("Processing...")

    for i in range(0, len(audio), BLOCK):
        pipeline.push_block(audio[i : i + BLOCK])

    print(f"\nEvents: {len(events)}")
    print(pipeline.diagnostics().summary())


if __name__ == "__main__":
    main()
