import pytest

import simulation


@pytest.fixture
def constant_growth(monkeypatch):
    """Replaces the yearly growth draw with a fixed rate."""

    def _set(rate):
        monkeypatch.setattr(simulation, "normal", lambda mean, variance, rng: rate)

    return _set
