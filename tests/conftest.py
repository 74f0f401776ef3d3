import pytest

from tests.helpers import MockedClock


@pytest.fixture()
def clock() -> MockedClock:
    return MockedClock()
