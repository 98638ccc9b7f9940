"""
In-memory graph cache for fast breadth-first search

This module mirrors the persisted persons and connections into memory:
- Immutable snapshots (person lookup + directed adjacency list)
- Single-flight lazy loading shared by concurrent first callers
- Explicit reload that swaps the whole snapshot atomically
"""

import logging
import threading
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from sixth_degree.errors import CacheLoadFailed
from sixth_degree.models import Connection, Person

logger = logging.getLogger(__name__)


class GraphSnapshot:
    """
    One point-in-time, read-only copy of the relationship graph

    Attributes:
        person_by_id: person id -> Person
        adjacency: person id -> tuple of outgoing neighbor ids, in connection order
    """

    __slots__ = ('person_by_id', 'adjacency', 'connection_count')

    def __init__(self, person_by_id: Mapping[int, Person], adjacency: Mapping[int, Tuple[int, ...]]):
        self.person_by_id = MappingProxyType(dict(person_by_id))
        self.adjacency = MappingProxyType({k: tuple(v) for k, v in adjacency.items()})
        self.connection_count = sum(len(v) for v in self.adjacency.values())

    @classmethod
    def build(cls, persons: Iterable[Person], connections: Iterable[Connection]) -> 'GraphSnapshot':
        """
        Build a snapshot from persons and directed connections

        Every person gets an adjacency entry so isolated nodes are present.
        Duplicate connections produce duplicate neighbor entries.
        """
        person_by_id: Dict[int, Person] = {}
        adjacency: Dict[int, List[int]] = {}

        for person in persons:
            person_by_id[person.id] = person
            adjacency[person.id] = []

        for conn in connections:
            adjacency.setdefault(conn.from_person_id, []).append(conn.to_person_id)

        return cls(person_by_id, adjacency)

    def neighbors(self, person_id: int) -> Tuple[int, ...]:
        return self.adjacency.get(person_id, ())

    def __len__(self):
        return len(self.person_by_id)


class GraphCache:
    """
    Owner of the current graph snapshot

    Readers grab the snapshot reference once and keep using it; a reload
    builds a complete new snapshot before replacing the reference, so no
    reader ever sees a half-built graph.

    The source only needs ``list_persons()`` and ``list_connections()``.
    """

    def __init__(self, source):
        self.source = source
        self._snapshot: Optional[GraphSnapshot] = None
        self._build_lock = threading.Lock()
        self._builds = 0
        # Finished build attempts (successful or not) and the last failure
        self._attempts = 0
        self._last_error: Optional[CacheLoadFailed] = None

        logger.info(f"GraphCache initialized with source={type(source).__name__}")

    @property
    def snapshot(self) -> Optional[GraphSnapshot]:
        """Current snapshot, or None if nothing has been loaded yet"""
        return self._snapshot

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def ensure_loaded(self) -> GraphSnapshot:
        """
        Return the current snapshot, building it on first use

        Concurrent first callers share one build: whoever gets the lock
        builds, the rest wait and then get its snapshot or its failure.
        A call made after a failure was reported starts a fresh attempt.

        Raises:
            CacheLoadFailed: If the build fails
        """
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot

        attempts_seen = self._attempts
        with self._build_lock:
            # Another thread may have finished the build while we waited
            snapshot = self._snapshot
            if snapshot is not None:
                return snapshot
            if self._attempts != attempts_seen and self._last_error is not None:
                raise CacheLoadFailed(self._last_error.cause) from self._last_error.cause
            return self._build_and_publish()

    def reload(self) -> GraphSnapshot:
        """
        Unconditionally rebuild the snapshot from the source

        Raises:
            CacheLoadFailed: If the build fails (the previous snapshot stays in place)
        """
        with self._build_lock:
            return self._build_and_publish()

    def _build_and_publish(self) -> GraphSnapshot:
        """Build a new snapshot and swap it in (caller holds the build lock)"""
        logger.info("Initializing graph cache...")

        try:
            persons = self.source.list_persons()
            connections = self.source.list_connections()
            snapshot = GraphSnapshot.build(persons, connections)
        except Exception as e:
            logger.error(f"Failed to initialize graph cache: {e}", exc_info=True)
            self._last_error = CacheLoadFailed(e)
            self._attempts += 1
            raise self._last_error from e

        self._snapshot = snapshot
        self._last_error = None
        self._attempts += 1
        self._builds += 1

        logger.info(
            f"Graph cache initialized: {len(snapshot)} persons, {snapshot.connection_count} connections",
            extra={"build_number": self._builds}
        )
        return snapshot

    def get_stats(self) -> dict:
        """
        Get cache statistics

        Returns:
            Dictionary with cache metrics
        """
        snapshot = self._snapshot
        return {
            'loaded': snapshot is not None,
            'persons': len(snapshot) if snapshot is not None else 0,
            'connections': snapshot.connection_count if snapshot is not None else 0,
            'builds': self._builds,
        }
