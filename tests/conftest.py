import pytest

from tests.utils import AsyncFakeCollection, FakeCollection


@pytest.fixture
def test_coll():
    return FakeCollection()


@pytest.fixture
def async_coll():
    return AsyncFakeCollection()
