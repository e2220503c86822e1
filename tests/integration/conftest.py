"""
Integration test configuration.

Provides fixtures for integration tests that require a MongoDB connection.
Transactions need a replica set, e.g. a single-node ``--replSet rs0``.
"""

import os
import uuid

import pytest

from docquery import Settings, create_client


@pytest.fixture
def skip_if_no_mongodb():
    """Skip test if MongoDB connection not available."""
    if not os.getenv("MONGODB_URI"):
        pytest.skip("MONGODB_URI not set - skipping integration test")


@pytest.fixture
async def mongo_client(skip_if_no_mongodb):
    """
    AsyncMongoClient for integration tests.

    Yields:
        Connected client, closed after the test
    """
    settings = Settings(_env_file=None)
    client = create_client(settings)
    yield client
    await client.close()


@pytest.fixture
async def mongo_db(mongo_client):
    """Throwaway database, dropped after the test."""
    name = f"docquery-test-{uuid.uuid4().hex[:8]}"
    database = mongo_client[name]
    yield database
    await mongo_client.drop_database(name)
