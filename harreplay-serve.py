#!/usr/bin/env python3
"""
HAR Replay - serve recorded HTTP traffic

This is a convenience wrapper that calls the packaged CLI.
The actual implementation is in src/harreplay/cli.py

Usage:
    python harreplay-serve.py serve session.har --port 8080

For more information, see README.md
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from harreplay.cli import main

if __name__ == '__main__':
    main()
