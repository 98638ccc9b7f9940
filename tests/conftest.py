"""Pytest configuration and fixtures"""
import os
import tempfile

# Keep the module-level app from writing into the working tree
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="sixth_degree_test_"))

import pytest
from fastapi.testclient import TestClient

from sixth_degree.database import EntityStore
from sixth_degree.main import create_app, limiter


@pytest.fixture
def store(tmp_path):
    """Fresh SQLite store with the schema created"""
    entity_store = EntityStore(db_path=tmp_path / "test.db")
    entity_store.init_db()
    return entity_store


@pytest.fixture
def make_graph(store):
    """
    Seed the store with named persons and directed edges

    Usage: people = make_graph(["A", "B"], [("A", "B")])
    """
    def _make(names, edges=()):
        people = {}
        for name in names:
            people[name] = store.create_person(
                name=name,
                wikipedia_url=f"https://en.wikipedia.org/wiki/{name.replace(' ', '_')}",
                category="test",
            )
        for from_name, to_name in edges:
            store.create_connection(people[from_name].id, people[to_name].id)
        return people

    return _make


@pytest.fixture
def client(store):
    """Test client for an app backed by the temporary store"""
    limiter.reset()
    return TestClient(create_app(store=store, warm_cache=False))
