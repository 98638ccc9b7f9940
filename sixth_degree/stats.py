"""
Read-only derivations over the store and the graph cache
"""
from sixth_degree.cache import GraphCache, GraphSnapshot
from sixth_degree.models import GraphData, GraphEdge, GraphNode, GraphStats


def compute_graph_stats(store, cache: GraphCache) -> GraphStats:
    """
    Aggregate counts straight from the store

    The cache is only consulted for whether it is loaded, so the counts are
    never stale.
    """
    person_count = store.count_persons()
    connection_count = store.count_connections()

    average = round(connection_count / person_count, 2) if person_count > 0 else 0

    return GraphStats(
        total_persons=person_count,
        total_connections=connection_count,
        average_connections_per_person=average,
        cache_loaded=cache.is_loaded,
    )


def export_graph_data(snapshot: GraphSnapshot) -> GraphData:
    """
    Nodes and edges for visualization

    One edge per adjacency entry, so duplicate connections appear twice.
    """
    nodes = [
        GraphNode(id=str(person.id), label=person.name, category=person.category)
        for person in snapshot.person_by_id.values()
    ]

    edges = []
    for source_id, neighbors in snapshot.adjacency.items():
        for target_id in neighbors:
            edges.append(GraphEdge(source=str(source_id), target=str(target_id)))

    return GraphData(nodes=nodes, edges=edges)
