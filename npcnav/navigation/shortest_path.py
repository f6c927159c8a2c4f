"""
Dijkstra shortest-path search over a NavGraph.

Finds the cheapest route between two graph nodes. Used as the fallback
when the primary planner cannot produce a path.
"""
import heapq
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Hashable, List, Optional, Tuple

from .graph import GraphEdge, GraphNode, NavGraph

logger = logging.getLogger(__name__)

WeightFn = Callable[[GraphEdge], float]


@dataclass
class ShortestPath:
    """A solved route: nodes in travel order and the edges joining them."""
    nodes: List[GraphNode]
    edges: List[GraphEdge] = field(default_factory=list)
    cost: float = 0.0
    nodes_expanded: int = 0  # Nodes popped from the frontier during the search

    def positions(self) -> List[Tuple[float, float, float]]:
        return [node.position for node in self.nodes]

    @property
    def node_ids(self) -> List[Hashable]:
        return [node.node_id for node in self.nodes]


class DijkstraSolver:
    """
    Dijkstra's algorithm with explicit predecessor tracking.

    The frontier is a binary heap keyed by (distance, node_id), so among
    nodes with equal tentative distance the lowest node id is settled
    first. Results therefore never depend on dict or set iteration order.
    """

    def __init__(self, weight_fn: Optional[WeightFn] = None):
        self.weight_fn = weight_fn

    def _edge_weight(self, edge: GraphEdge) -> float:
        weight = self.weight_fn(edge) if self.weight_fn is not None else edge.weight
        if weight < 0:
            raise ValueError(
                f"Effective weight {weight} of edge {edge.node_a!r}-{edge.node_b!r} is negative"
            )
        return weight

    def solve(
        self,
        graph: NavGraph,
        start: Hashable,
        target: Hashable,
    ) -> Optional[ShortestPath]:
        """
        Find the cheapest path from start to target.

        Args:
            graph: Graph to search
            start: Node id to leave from
            target: Node id to reach

        Returns:
            ShortestPath, or None if target is unreachable
        """
        start_node = graph.get_node(start)
        graph.get_node(target)

        if start == target:
            return ShortestPath(nodes=[start_node], cost=0.0, nodes_expanded=0)

        distance: Dict[Hashable, float] = {start: 0.0}
        came_from: Dict[Hashable, Tuple[Hashable, GraphEdge]] = {}
        finished = set()
        frontier: List[Tuple[float, Hashable]] = [(0.0, start)]
        expanded = 0

        while frontier:
            current_distance, current = heapq.heappop(frontier)
            if current in finished:
                continue  # stale entry
            finished.add(current)
            expanded += 1

            if current == target:
                break

            for neighbor, edge in graph.neighbors(current):
                if neighbor in finished:
                    continue
                candidate = current_distance + self._edge_weight(edge)
                if candidate < distance.get(neighbor, float("inf")):
                    distance[neighbor] = candidate
                    came_from[neighbor] = (current, edge)
                    heapq.heappush(frontier, (candidate, neighbor))

        if target not in finished:
            logger.warning("No path from %r to %r (%d nodes expanded)", start, target, expanded)
            return None

        return self._reconstruct_path(graph, came_from, start, target, distance[target], expanded)

    @staticmethod
    def _reconstruct_path(
        graph: NavGraph,
        came_from: Dict[Hashable, Tuple[Hashable, GraphEdge]],
        start: Hashable,
        target: Hashable,
        cost: float,
        expanded: int,
    ) -> ShortestPath:
        node_ids = [target]
        edges: List[GraphEdge] = []
        current = target
        while current != start:
            current, edge = came_from[current]
            node_ids.append(current)
            edges.append(edge)
        node_ids.reverse()
        edges.reverse()
        return ShortestPath(
            nodes=[graph.get_node(node_id) for node_id in node_ids],
            edges=edges,
            cost=cost,
            nodes_expanded=expanded,
        )
