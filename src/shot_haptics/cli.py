"""Command-line interface.

Usage:
    shot-haptics analyze recording.wav [--config shot_haptics.yaml] [--verbose]
    shot-haptics listen [--config shot_haptics.yaml] [--device 3] [--loopback]
    shot-haptics devices
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import ConfigError, GlobalConfig, configure_logging
from .engine import Engine
from .haptics import LoggingActuator
from .models import CaptureSource
from .offline import analyze_file

logger = logging.getLogger(__name__)


def _load_config(args: argparse.Namespace) -> GlobalConfig:
    config = GlobalConfig.load(args.config) if args.config else GlobalConfig()
    if args.verbose:
        config.system.log_level = "DEBUG"
    configure_logging(config.system)
    return config


def cmd_analyze(args: argparse.Namespace) -> int:
    audio_path = Path(args.audio)
    if not audio_path.exists():
        print(f"Error: Audio file not found: {audio_path}", file=sys.stderr)
        return 1

    config = _load_config(args)
    if args.chunk_size is not None:
        if args.chunk_size <= 0:
            raise ConfigError(f"--chunk-size must be positive, got {args.chunk_size}")
        config.audio.chunk_size = args.chunk_size

    result = analyze_file(audio_path, config)

    for event in result.events:
        print(event)

    d = result.diagnostics
    print("-" * 60)
    print(f"{audio_path.name}: {result.duration_s:.2f}s @ {result.sample_rate}Hz")
    print(f"Events: {d.events_emitted} ({d.summary()})")
    return 0


def cmd_listen(args: argparse.Namespace) -> int:
    config = _load_config(args)
    if args.device is not None:
        config.audio.device_index = args.device
    if args.loopback:
        config.audio.source = CaptureSource.LOOPBACK
    config.audio.clock = "monotonic"

    engine = Engine(config, actuator=LoggingActuator())
    print("Listening... press Ctrl+C to stop")
    engine.start()
    return 0


def cmd_devices(args: argparse.Namespace) -> int:
    from .listener import list_input_devices

    for dev in list_input_devices():
        print(f"  Index {dev['index']}: {dev['name']} (Inputs: {dev['channels']})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shot-haptics",
        description="Detect shots and impacts in an audio stream and emit haptic pulses.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", "-c", help="Path to a configuration .yaml file")
    common.add_argument("--verbose", "-v", action="store_true", help="Per-block debug output")

    p_analyze = sub.add_parser("analyze", parents=[common], help="Analyze a .wav recording")
    p_analyze.add_argument("audio", help="Path to the .wav file")
    p_analyze.add_argument("--chunk-size", type=int, help="Samples per block")
    p_analyze.set_defaults(func=cmd_analyze)

    p_listen = sub.add_parser("listen", parents=[common], help="Detect from live audio")
    p_listen.add_argument("--device", "-d", type=int, help="Input device index")
    p_listen.add_argument(
        "--loopback", action="store_true", help="Capture system audio instead of the microphone"
    )
    p_listen.set_defaults(func=cmd_listen)

    p_devices = sub.add_parser("devices", help="List audio input devices")
    p_devices.set_defaults(func=cmd_devices)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return args.func(args)
    except (FileNotFoundError, ConfigError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
