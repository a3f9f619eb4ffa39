#!/usr/bin/env python3
"""Example: Basic live detection.

Captures the microphone (or system audio with --loopback) and prints a
line for every haptic pulse the detector would play.
"""

import sys

from shot_haptics import CaptureSource, Engine, Event, GlobalConfig, configure_logging


def on_event(event: Event):
    """Callback when a shot or impact is detected."""
    print(f"\n💥 {event}\n")
    # Here you could:
    # - Drive a vibration motor or game controller rumble
    # - Flash an LED
    # - etc.


def main():
    config = GlobalConfig()
    config.audio.clock = "monotonic"
    if "--loopback" in sys.argv:
        config.audio.source = CaptureSource.LOOPBACK

    configure_logging(config.system)

    engine = Engine(config, on_event=on_event)

    print("🎤 Starting audio capture...")
    print("   Press Ctrl+C to stop\n")

    # Start listening (blocking)
    try:
        engine.start()
    except KeyboardInterrupt:
        print("\n👋 Stopping...")
        engine.stop()


if __name__ == "__main__":
    main()
