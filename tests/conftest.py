"""
PyTest configuration and shared fixtures for the hash ring tests.
"""

import pytest
import sys
import os
from typing import Callable, Dict

# Add src directory to Python path for all tests
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Import after path setup
from consistent_hash import ConsistentHashRing, crc32_hash


@pytest.fixture
def hash_ring() -> ConsistentHashRing:
    """Create a hash ring with test nodes."""
    return ConsistentHashRing(["node1", "node2", "node3"])


@pytest.fixture
def table_hash() -> Callable[[Dict[bytes, int]], Callable[[bytes], int]]:
    """
    Build hash functions that place chosen inputs at chosen positions.

    Inputs missing from the table fall back to CRC-32, so tests only need
    to pin down the points and keys they care about.
    """
    def make(table: Dict[bytes, int]) -> Callable[[bytes], int]:
        def hash_fn(data: bytes) -> int:
            if data in table:
                return table[data]
            return crc32_hash(data)
        return hash_fn
    return make


@pytest.fixture
def abc_ring(table_hash) -> ConsistentHashRing:
    """Nodes A, B and C with one virtual point each, at 10, 50 and 90."""
    hash_fn = table_hash({
        b"A0": 10, b"B0": 50, b"C0": 90,
        b"k5": 5, b"k30": 30, b"k50": 50, b"k95": 95,
    })
    return ConsistentHashRing(["A", "B", "C"], replicas=1, hash_fn=hash_fn)


@pytest.fixture
def test_keys():
    return [f"test_key_{i:04d}" for i in range(1000)]


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "slow: Slow running tests"
    )
