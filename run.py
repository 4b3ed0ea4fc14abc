#!/usr/bin/env python
"""
Launcher script for the Upholstery Tracker command line.

This script puts src/ on the Python path so the CLI runs from a checkout
without installing the package.
"""

import sys
from pathlib import Path

# Add src/ to the Python path
src_dir = Path(__file__).parent / "src"
sys.path.insert(0, str(src_dir))

from upholstery_tracker.main import main

if __name__ == "__main__":
    sys.exit(main())
