"""
Shared fixtures for the data type store tests.

Every fixture builds on a fresh SQLite database in a temporary
directory, so tests never share state.
"""

import tempfile
from pathlib import Path

import pytest

from cmsdb.datatype_store.cache import PreValueCache
from cmsdb.datatype_store.events import InMemoryEventPublisher
from cmsdb.datatype_store.persistence import Database, ScopeProvider
from cmsdb.datatype_store.repositories import (
    ContentTypeRepository,
    DataTypeDefinitionRepository,
    EntityContainerRepository,
)
from cmsdb.datatype_store.services import DataTypeService


class FakeTimer:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def database(data_dir):
    """Initialized database with schema and root node."""
    db = Database(str(Path(data_dir) / "datatypes.db"), wal_mode=False)
    db.initialize()
    return db


@pytest.fixture
def scopes(database):
    return ScopeProvider(database)


@pytest.fixture
def cache():
    return PreValueCache(ttl_seconds=1200)


@pytest.fixture
def content_types(scopes):
    return ContentTypeRepository(scopes)


@pytest.fixture
def repository(scopes, cache, content_types):
    return DataTypeDefinitionRepository(scopes, cache, content_types)


@pytest.fixture
def containers(scopes):
    return EntityContainerRepository(scopes)


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def service(scopes, repository, publisher, containers):
    return DataTypeService(scopes, repository, publisher, containers)


@pytest.fixture
def timer():
    return FakeTimer()
