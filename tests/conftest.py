"""Pytest configuration for the miniPL test suite."""

import sys
from pathlib import Path

# Add src directory to path so the suite runs from a checkout
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
