"""
Shared fixtures.
"""
from pathlib import Path

import pytest

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def speedtest_json() -> bytes:
    """A representative `speedtest -f json-pretty` result document."""
    return (FIXTURES / "speedtest_result.json").read_bytes()
