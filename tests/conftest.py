"""Pytest configuration.

Ensures src/ and this directory are on sys.path so tests can import
``livematch.*`` without installing and share the ``synth`` helpers.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
TESTS_DIR = Path(__file__).resolve().parent
for p in (str(SRC_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)
