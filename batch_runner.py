#!/usr/bin/env python3
"""
Drawing batch runner entry point.

Usage:
    python batch_runner.py --input-dir drawings --overrides drawings.csv --template base.json
"""

import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from presentation.cli import main

if __name__ == '__main__':
    sys.exit(main())
