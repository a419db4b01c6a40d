"""Shared test fixtures."""

import pytest

from repo_lock.store import LockStore


@pytest.fixture
def store(tmp_path):
    """Lock store for a repository under a temporary base path."""
    (tmp_path / "test-repo").mkdir()
    return LockStore(str(tmp_path), "test-repo")


@pytest.fixture
def fake_clock():
    """Clock whose sleep advances time instantly and records each delay."""

    class FakeClock:
        def __init__(self):
            self.now = 1_700_000_000.0
            self.sleeps = []
            self.on_sleep = None

        def time(self):
            return self.now

        def sleep(self, seconds):
            self.sleeps.append(seconds)
            self.now += seconds
            if self.on_sleep is not None:
                self.on_sleep(self)

    return FakeClock()
