"""
callstate test configuration.

Freezes the reducer clock so records compare equal across runs.
"""

import pytest

FROZEN_NOW = "2024-01-01T00:00:00.000000Z"


@pytest.fixture
def frozen_clock(monkeypatch):
    """Every record written while this fixture is active gets FROZEN_NOW."""
    monkeypatch.setattr("callstate.reducer.now_iso", lambda: FROZEN_NOW)
    return FROZEN_NOW
