"""
Test configuration and fixtures for the Shortlink service.
This centralizes all test setup, making individual tests clean.
"""

import pytest
from fastapi.testclient import TestClient
from main import app
from shortlink_app.dependencies import get_storage
from shortlink_app.services.short_code_strategies import ShortCodeStrategy
from shortlink_app.storage.strategies import SQLAlchemyStorage


class SequenceShortCodeStrategy(ShortCodeStrategy):
    """Hands out a fixed sequence of codes, to force collisions in tests"""

    def __init__(self, codes):
        self.codes = iter(codes)
        self.calls = 0

    def generate(self) -> str:
        self.calls += 1
        return next(self.codes)


@pytest.fixture(scope="function")
def storage(tmp_path):
    """
    Fresh SQLite-backed storage for each test.
    The database file lives in pytest's tmp_path, so tests are isolated.
    """
    storage = SQLAlchemyStorage(database_url=f"sqlite:///{tmp_path / 'test.db'}")
    try:
        yield storage
    finally:
        storage.close()


@pytest.fixture(scope="function")
def client(storage):
    """
    Create a test client with the storage dependency overridden.
    This is the main fixture that API tests will use.
    """
    app.dependency_overrides[get_storage] = lambda: storage

    with TestClient(app) as test_client:
        yield test_client

    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.fixture
def sequence_strategy():
    """Factory for SequenceShortCodeStrategy: sequence_strategy(["abc123", ...])"""
    return SequenceShortCodeStrategy
