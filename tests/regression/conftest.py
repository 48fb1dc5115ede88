#!/usr/bin/env python3
"""
Pytest configuration for regression tests.
"""

import shutil
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "requires_z3_binary: marks tests that run the z3 executable"
    )


def pytest_collection_modifyitems(config, items):
    """Skip tests that need the z3 executable when it is not installed."""
    if shutil.which("z3") is not None:
        return
    skip = pytest.mark.skip(reason="z3 executable not found")
    for item in items:
        if "requires_z3_binary" in item.keywords:
            item.add_marker(skip)


