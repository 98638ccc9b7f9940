"""
Breadth-first shortest path search over the cached graph
"""
import logging
import time
from collections import deque
from typing import Dict, List, Mapping, NamedTuple

from sixth_degree.cache import GraphCache, GraphSnapshot
from sixth_degree.errors import PathReconstructionError
from sixth_degree.models import (
    GraphData, GraphStats, Person, PersonSummary, SearchResult
)
from sixth_degree.stats import compute_graph_stats, export_graph_data
from sixth_degree.utils import elapsed_ms

logger = logging.getLogger(__name__)


class PathSearch(NamedTuple):
    """Raw BFS outcome before timing is attached"""
    path: List[Person]
    nodes_explored: int
    found: bool

    @property
    def path_length(self) -> int:
        # Edge count; an empty path gives -1
        return len(self.path) - 1


def reconstruct_path(parents: Mapping[int, int], start_id: int, end_id: int,
                     person_by_id: Mapping[int, Person]) -> List[Person]:
    """
    Walk the predecessor map back from end_id to start_id

    Ids with no cached person (deleted after the snapshot was taken) are
    dropped from the returned path.

    Raises:
        PathReconstructionError: If the chain never reaches start_id
    """
    ids = []
    current = end_id

    while current != start_id:
        ids.append(current)
        if current not in parents or len(ids) > len(parents):
            raise PathReconstructionError(
                f"Predecessor chain from {end_id} does not lead back to {start_id} (stuck at {current})"
            )
        current = parents[current]
    ids.append(start_id)
    ids.reverse()

    return [person_by_id[i] for i in ids if i in person_by_id]


def find_shortest_path(snapshot: GraphSnapshot, start_id: int, end_id: int) -> PathSearch:
    """
    Find the shortest directed path between two person ids

    Nodes are marked visited when discovered, and the target is checked when
    dequeued, before its neighbors are expanded. nodes_explored is the number
    of dequeues.

    Args:
        snapshot: Graph snapshot to search (never changes during the search)
        start_id: Id of the starting person
        end_id: Id of the target person

    Returns:
        PathSearch with the path (empty if unreachable), nodes explored and found flag
    """
    if start_id == end_id:
        person = snapshot.person_by_id.get(start_id)
        if person is None:
            # Not in this snapshot, so there is no path to report
            return PathSearch([], 1, False)
        return PathSearch([person], 1, True)

    queue = deque([(start_id, 0)])
    visited = {start_id}
    parents: Dict[int, int] = {}
    nodes_explored = 0
    found = False
    level = 0

    while queue:
        current, level = queue.popleft()
        nodes_explored += 1

        if current == end_id:
            found = True
            break

        for neighbor in snapshot.neighbors(current):
            if neighbor not in visited:
                visited.add(neighbor)
                parents[neighbor] = current
                queue.append((neighbor, level + 1))

    logger.debug(
        "BFS finished",
        extra={"found": found, "nodes_explored": nodes_explored, "depth": level}
    )

    path = reconstruct_path(parents, start_id, end_id, snapshot.person_by_id) if found else []
    return PathSearch(path, nodes_explored, found)


class SearchService:
    """
    Shortest connection queries, person listing, graph export and stats

    Owns the GraphCache for its store; create one per application.
    """

    def __init__(self, store, cache: GraphCache = None):
        self.store = store
        self.cache = cache if cache is not None else GraphCache(store)

    def search(self, start_name: str, end_name: str) -> SearchResult:
        """
        Find the shortest connection path between two named persons

        Raises:
            PersonNotFound: If either name is unknown
            CacheLoadFailed: If the graph cache could not be built
        """
        started = time.perf_counter()

        start_person = self.store.find_person_by_name(start_name)
        end_person = self.store.find_person_by_name(end_name)

        if start_person.id == end_person.id:
            return SearchResult(
                path=[start_person],
                path_length=0,
                nodes_explored=1,
                search_time_ms=elapsed_ms(started),
                found=True,
            )

        # One snapshot for the whole traversal, even if a reload happens meanwhile
        snapshot = self.cache.ensure_loaded()
        outcome = find_shortest_path(snapshot, start_person.id, end_person.id)

        result = SearchResult(
            path=outcome.path,
            path_length=outcome.path_length,
            nodes_explored=outcome.nodes_explored,
            search_time_ms=elapsed_ms(started),
            found=outcome.found,
        )

        logger.info(
            f"Search {start_name} → {end_name}: found={result.found}, "
            f"hops={result.path_length}, explored={result.nodes_explored}, {result.search_time_ms}ms"
        )
        return result

    def list_all_persons(self) -> List[PersonSummary]:
        return [
            PersonSummary(id=p.id, name=p.name, category=p.category, wikipedia_url=p.wikipedia_url)
            for p in self.store.list_persons()
        ]

    def get_graph_data(self) -> GraphData:
        return export_graph_data(self.cache.ensure_loaded())

    def get_graph_stats(self) -> GraphStats:
        return compute_graph_stats(self.store, self.cache)

    def reload_cache(self) -> GraphSnapshot:
        """Rebuild the graph cache from the store"""
        return self.cache.reload()
