"""Entry point for running the detector as a module.

Usage: python -m shot_haptics analyze recording.wav
"""

import sys

from shot_haptics.cli import main

if __name__ == "__main__":
    sys.exit(main())
