"""
Pytest configuration for the eigbridge test suite.
"""

import pytest
import sys
from pathlib import Path

# Add src/python to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src' / 'python'))

from eigbridge import CsrView
from eigbridge.handles import ARENA
from eigbridge.internals.matrix_test_util import diagonal, random_symmetric


def pytest_configure(config):
    """Called after command line options have been parsed."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def diag23():
    """The 2x2 matrix diag(2, 3)."""
    return CsrView.from_matrix(diagonal([2.0, 3.0]))


@pytest.fixture
def random100():
    """Random symmetric 100x100 matrix of density 0.01 (seed 42)."""
    return random_symmetric(100, 0.01, seed=42)


@pytest.fixture
def arena_baseline():
    """Number of live arena bindings before the test; checked afterwards."""
    before = len(ARENA)
    yield before
    assert len(ARENA) == before
