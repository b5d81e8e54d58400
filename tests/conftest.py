"""
Pytest configuration and fixtures for Relaycord tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from fakes import FakeClock, FakeStore, RecordingMessenger  # noqa: E402
from relaycord.services.core import RelaycordCore  # noqa: E402


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def messenger() -> RecordingMessenger:
    return RecordingMessenger()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def core(store, messenger, clock) -> RelaycordCore:
    return RelaycordCore(store, messenger, clock=clock)
