"""
Root test configuration and fixtures for the scheduling project.

Note: sys.path manipulation is handled here to ensure imports work correctly.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Add project root to path to allow imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from scheduling.config import ConfigLoader  # noqa: E402


@pytest.fixture(autouse=True)
def reset_config():
    """Every test starts from schema defaults."""
    ConfigLoader.reset()
    yield
    ConfigLoader.reset()
