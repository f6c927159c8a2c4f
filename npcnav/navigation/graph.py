"""
Weighted navigation graph used as the fallback when the primary planner fails.

Nodes carry a 3-D position and an opaque payload; edges are undirected and
carry a non-negative weight. The graph is owned by the caller and is only
read by the solver and the path provider.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterator, List, Optional, Tuple

from .base import WaypointAction


@dataclass(frozen=True)
class GraphNode:
    """A graph node. `node_id` must be orderable against the other ids."""
    node_id: Hashable
    position: Tuple[float, float, float]
    payload: Any = field(default=None, compare=False)

    def __post_init__(self) -> None:
        position = tuple(float(c) for c in self.position)
        if len(position) != 3:
            raise ValueError(f"Node {self.node_id!r} position must have 3 components")
        object.__setattr__(self, "position", position)


@dataclass
class GraphEdge:
    """Undirected edge between two node ids."""
    node_a: Hashable
    node_b: Hashable
    weight: float
    label: Optional[str] = None  # key into AgentParameters.costs_by_label
    action: WaypointAction = WaypointAction.WALK  # action used when arriving over this edge

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise ValueError(
                f"Edge {self.node_a!r}-{self.node_b!r} has negative weight {self.weight}"
            )

    def other(self, node_id: Hashable) -> Hashable:
        """Return the endpoint opposite to `node_id`."""
        return self.node_b if self.node_a == node_id else self.node_a

    def connects(self, a: Hashable, b: Hashable) -> bool:
        return (self.node_a == a and self.node_b == b) or (self.node_a == b and self.node_b == a)


class NavGraph:
    """Adjacency-list graph keyed by node id."""

    def __init__(self):
        self._nodes: Dict[Hashable, GraphNode] = {}
        self._edges: List[GraphEdge] = []
        self._adjacency: Dict[Hashable, List[GraphEdge]] = {}

    # ----------------------------------------------------------------- mutations
    def add_node(
        self,
        node_id: Hashable,
        position: Tuple[float, float, float],
        payload: Any = None,
    ) -> GraphNode:
        node = GraphNode(node_id=node_id, position=position, payload=payload)
        self._nodes[node_id] = node
        self._adjacency.setdefault(node_id, [])
        return node

    def add_edge(
        self,
        node_a: Hashable,
        node_b: Hashable,
        weight: float,
        label: Optional[str] = None,
        action: WaypointAction = WaypointAction.WALK,
    ) -> GraphEdge:
        if node_a not in self._nodes or node_b not in self._nodes:
            raise KeyError("Both endpoints must exist before adding an edge")
        edge = GraphEdge(node_a=node_a, node_b=node_b, weight=weight, label=label, action=action)
        self._edges.append(edge)
        self._adjacency[node_a].append(edge)
        if node_b != node_a:
            self._adjacency[node_b].append(edge)
        return edge

    def remove_node(self, node_id: Hashable) -> None:
        if node_id not in self._nodes:
            raise KeyError(f"Node {node_id!r} missing")
        doomed = self._adjacency.pop(node_id)
        for edge in doomed:
            other = edge.other(node_id)
            if other in self._adjacency:
                self._adjacency[other] = [e for e in self._adjacency[other] if e is not edge]
        self._edges = [e for e in self._edges if not any(e is d for d in doomed)]
        del self._nodes[node_id]

    # ------------------------------------------------------------------- queries
    @property
    def nodes(self) -> List[GraphNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[GraphEdge]:
        return list(self._edges)

    def get_node(self, node_id: Hashable) -> GraphNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise KeyError(f"Node {node_id!r} missing")
        return node

    def edges_for_node(self, node_id: Hashable) -> List[GraphEdge]:
        if node_id not in self._adjacency:
            raise KeyError(f"Node {node_id!r} missing")
        return list(self._adjacency[node_id])

    def neighbors(self, node_id: Hashable) -> Iterator[Tuple[Hashable, GraphEdge]]:
        """Yield (neighbor_id, edge) pairs for every edge touching `node_id`."""
        for edge in self.edges_for_node(node_id):
            yield edge.other(node_id), edge

    def edge_between(self, a: Hashable, b: Hashable) -> Optional[GraphEdge]:
        """Cheapest edge joining `a` and `b`, or None."""
        best = None
        for edge in self._adjacency.get(a, []):
            if edge.connects(a, b) and (best is None or edge.weight < best.weight):
                best = edge
        return best

    def __contains__(self, node_id: Hashable) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)
