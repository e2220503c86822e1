"""
Shared fixtures: in-memory stand-ins for the async pymongo handles.

The fakes only record what the query layer sends and replay canned
results; pipeline semantics are covered by the integration tests.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest


class FakeCursor:
    def __init__(self, documents):
        self._documents = documents

    async def to_list(self, length=None):
        return list(self._documents)


class FakeCollection:
    """Records aggregate pipelines and write calls."""

    def __init__(self, name):
        self.name = name
        self.results = []
        self.pipelines = []
        self.aggregate_error = None
        self.insert_one = AsyncMock(return_value=SimpleNamespace(inserted_id="new-id"))
        self.insert_many = AsyncMock(return_value=SimpleNamespace(inserted_ids=["id-1", "id-2"]))
        self.update_one = AsyncMock(return_value=SimpleNamespace(modified_count=1, upserted_id=None))
        self.update_many = AsyncMock(return_value=SimpleNamespace(modified_count=4, upserted_id=None))
        self.delete_one = AsyncMock(return_value=SimpleNamespace(deleted_count=1))
        self.delete_many = AsyncMock(return_value=SimpleNamespace(deleted_count=3))

    def queue(self, *batches):
        """Queue one result list per upcoming aggregate call."""
        self.results.extend(batches)
        return self

    async def aggregate(self, pipeline):
        self.pipelines.append(pipeline)
        if self.aggregate_error is not None:
            raise self.aggregate_error
        return FakeCursor(self.results.pop(0) if self.results else [])


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def session():
    """A driver session whose transaction calls are AsyncMocks."""
    fake = MagicMock(name="session")
    fake.start_transaction = AsyncMock()
    fake.commit_transaction = AsyncMock()
    fake.abort_transaction = AsyncMock()
    fake.end_session = AsyncMock()
    fake.in_transaction = True
    return fake


@pytest.fixture
def client(session):
    fake = MagicMock(name="client")
    fake.start_session.return_value = session
    return fake
