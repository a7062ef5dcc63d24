"""
autotag - Main Entry Point

Example usage:
    python main.py path/to/audio.wav
    python main.py --config config/config.yaml --output records.json samples/
"""

import sys

from autotag.cli import main

if __name__ == "__main__":
    sys.exit(main())
