"""Tests for graph snapshots and the single-flight GraphCache loader"""
import threading
import time

import pytest

from sixth_degree.cache import GraphCache, GraphSnapshot
from sixth_degree.errors import CacheLoadFailed
from sixth_degree.models import Connection, Person
from sixth_degree.search import find_shortest_path


def _person(person_id, name):
    return Person(id=person_id, name=name, wikipedia_url=f"https://en.wikipedia.org/wiki/{name}")


class FakeSource:
    """In-memory source that counts loads and can be told to fail or stall"""

    def __init__(self, persons, connections=(), delay=0.0):
        self.persons = list(persons)
        self.connections = list(connections)
        self.delay = delay
        self.fail = False
        self.loads = 0
        self._lock = threading.Lock()

    def list_persons(self):
        with self._lock:
            self.loads += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("database is down")
        return list(self.persons)

    def list_connections(self):
        return list(self.connections)


class TestGraphSnapshot:
    def test_isolated_nodes_have_empty_adjacency(self):
        snapshot = GraphSnapshot.build(
            [_person(1, "A"), _person(2, "B"), _person(3, "C")],
            [Connection(id=1, from_person_id=1, to_person_id=2)],
        )
        assert snapshot.adjacency[1] == (2,)
        assert snapshot.adjacency[2] == ()
        assert snapshot.adjacency[3] == ()
        assert len(snapshot) == 3

    def test_duplicate_connections_kept_in_order(self):
        snapshot = GraphSnapshot.build(
            [_person(1, "A"), _person(2, "B"), _person(3, "C")],
            [
                Connection(id=1, from_person_id=1, to_person_id=3),
                Connection(id=2, from_person_id=1, to_person_id=2),
                Connection(id=3, from_person_id=1, to_person_id=3),
            ],
        )
        assert snapshot.adjacency[1] == (3, 2, 3)
        assert snapshot.connection_count == 3

    def test_snapshot_is_read_only(self):
        snapshot = GraphSnapshot.build([_person(1, "A")], [])
        with pytest.raises(TypeError):
            snapshot.adjacency[2] = (1,)
        with pytest.raises(TypeError):
            snapshot.person_by_id[2] = _person(2, "B")

    def test_unknown_id_has_no_neighbors(self):
        snapshot = GraphSnapshot.build([_person(1, "A")], [])
        assert snapshot.neighbors(42) == ()


class TestGraphCache:
    def test_not_loaded_until_first_use(self):
        source = FakeSource([_person(1, "A")])
        cache = GraphCache(source)
        assert cache.is_loaded is False
        assert cache.snapshot is None
        assert source.loads == 0

    def test_ensure_loaded_builds_once(self):
        source = FakeSource([_person(1, "A")])
        cache = GraphCache(source)
        first = cache.ensure_loaded()
        second = cache.ensure_loaded()
        assert first is second
        assert source.loads == 1
        assert cache.is_loaded is True

    def test_concurrent_first_calls_share_one_build(self):
        source = FakeSource([_person(1, "A")], delay=0.05)
        cache = GraphCache(source)
        barrier = threading.Barrier(8)
        snapshots = []

        def worker():
            barrier.wait()
            snapshots.append(cache.ensure_loaded())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert source.loads == 1
        assert len(snapshots) == 8
        assert all(s is snapshots[0] for s in snapshots)

    def test_concurrent_first_calls_share_one_failed_build(self):
        source = FakeSource([_person(1, "A")], delay=0.05)
        source.fail = True
        cache = GraphCache(source)
        barrier = threading.Barrier(8)
        errors = []

        def worker():
            barrier.wait()
            try:
                cache.ensure_loaded()
            except CacheLoadFailed as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert source.loads == 1
        assert len(errors) == 8
        assert all(isinstance(e.cause, RuntimeError) for e in errors)
        assert cache.is_loaded is False

        # A call made after the failure was reported tries again
        source.fail = False
        assert len(cache.ensure_loaded()) == 1
        assert source.loads == 2

    def test_reload_swaps_snapshot(self):
        source = FakeSource([_person(1, "A"), _person(2, "B")])
        cache = GraphCache(source)
        old = cache.ensure_loaded()

        source.connections.append(Connection(id=1, from_person_id=1, to_person_id=2))
        new = cache.reload()

        assert new is not old
        assert cache.snapshot is new
        assert new.adjacency[1] == (2,)
        # Holders of the old snapshot keep a consistent view
        assert old.adjacency[1] == ()
        assert find_shortest_path(old, 1, 2).found is False
        assert find_shortest_path(new, 1, 2).found is True

    def test_failed_first_load_can_be_retried(self):
        source = FakeSource([_person(1, "A")])
        source.fail = True
        cache = GraphCache(source)

        with pytest.raises(CacheLoadFailed) as exc_info:
            cache.ensure_loaded()
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert cache.is_loaded is False

        source.fail = False
        assert len(cache.ensure_loaded()) == 1

    def test_failed_reload_keeps_previous_snapshot(self):
        source = FakeSource([_person(1, "A")])
        cache = GraphCache(source)
        previous = cache.ensure_loaded()

        source.fail = True
        with pytest.raises(CacheLoadFailed):
            cache.reload()

        assert cache.snapshot is previous
        assert cache.ensure_loaded() is previous

    def test_stats(self):
        source = FakeSource(
            [_person(1, "A"), _person(2, "B")],
            [Connection(id=1, from_person_id=1, to_person_id=2)],
        )
        cache = GraphCache(source)
        assert cache.get_stats() == {'loaded': False, 'persons': 0, 'connections': 0, 'builds': 0}

        cache.ensure_loaded()
        cache.reload()
        assert cache.get_stats() == {'loaded': True, 'persons': 2, 'connections': 1, 'builds': 2}
