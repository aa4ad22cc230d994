import pytest

from tests.fakes import FakeClock, FakeFeed, FakeScheduler


@pytest.fixture
def feed():
    return FakeFeed()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def clock():
    return FakeClock()
