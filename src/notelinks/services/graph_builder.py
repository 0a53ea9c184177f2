"""Derivation of the note graph from a flat note collection."""
import logging
from collections import Counter
from typing import Dict, List, Sequence, Set

from notelinks.models.schema import GraphData, GraphEdge, GraphNode, Note

logger = logging.getLogger(__name__)


def build_title_index(notes: Sequence[Note]) -> Dict[str, str]:
    """Map each title to a note ID.

    When several notes share a title the first one wins; nothing is
    raised for the ambiguity.
    """
    title_to_id: Dict[str, str] = {}
    for note in notes:
        if note.title in title_to_id:
            logger.debug(
                f"Duplicate title {note.title!r}: keeping note "
                f"{title_to_id[note.title]}, ignoring {note.id}"
            )
            continue
        title_to_id[note.title] = note.id
    return title_to_id


def count_connections(notes: Sequence[Note], title_to_id: Dict[str, str]) -> Counter:
    """Out-degree plus in-degree per note ID.

    Every outgoing link entry counts toward its source, dangling or not.
    Only entries that resolve to a note add to the target's count.
    """
    counts: Counter = Counter()
    for note in notes:
        counts[note.id] += len(note.outgoing_links)
        for title in note.outgoing_links:
            target_id = title_to_id.get(title)
            if target_id is not None:
                counts[target_id] += 1
    return counts


def build_graph(notes: Sequence[Note]) -> GraphData:
    """Build nodes and directed edges for ``notes``.

    One node per note and one edge per resolvable outgoing link entry.
    Repeated entries produce parallel edges and dangling links produce
    none. Runs in O(N*L) with no I/O.
    """
    title_to_id = build_title_index(notes)
    counts = count_connections(notes, title_to_id)

    nodes: List[GraphNode] = [
        GraphNode(
            id=note.id,
            title=note.title,
            connection_count=counts[note.id],
            tags=list(note.tags),
        )
        for note in notes
    ]

    edges: List[GraphEdge] = []
    dangling = 0
    for note in notes:
        for title in note.outgoing_links:
            target_id = title_to_id.get(title)
            if target_id is None:
                dangling += 1
                continue
            edges.append(GraphEdge(source_id=note.id, target_id=target_id))

    logger.debug(
        f"Built graph: {len(nodes)} nodes, {len(edges)} edges, "
        f"{dangling} dangling links"
    )
    return GraphData(nodes=nodes, edges=edges)


# Longer search queries are cut to this length
MAX_QUERY_LENGTH = 1000


def connected_node_ids(graph: GraphData, node_id: str, degrees: int = 1) -> Set[str]:
    """IDs within ``degrees`` hops of ``node_id``, following edges both ways.

    The starting node is always included, so ``degrees=0`` returns just it.
    An unknown node or a negative ``degrees`` yields an empty set.
    """
    if degrees < 0 or not any(node.id == node_id for node in graph.nodes):
        logger.debug(f"No neighborhood for node {node_id!r} at degrees={degrees}")
        return set()

    neighbors: Dict[str, Set[str]] = {}
    for edge in graph.edges:
        neighbors.setdefault(edge.source_id, set()).add(edge.target_id)
        neighbors.setdefault(edge.target_id, set()).add(edge.source_id)

    connected = {node_id}
    frontier = {node_id}
    for _ in range(degrees):
        frontier = {
            other
            for current in frontier
            for other in neighbors.get(current, ())
            if other not in connected
        }
        if not frontier:
            break
        connected |= frontier
    return connected


def filter_nodes(graph: GraphData, query: str) -> List[GraphNode]:
    """Nodes whose title or any tag contains ``query``, case-insensitively.

    An empty query matches nothing. Results keep graph order.
    """
    needle = query[:MAX_QUERY_LENGTH].lower()
    if not needle:
        return []
    return [
        node
        for node in graph.nodes
        if needle in node.title.lower()
        or any(needle in tag.lower() for tag in node.tags)
    ]
