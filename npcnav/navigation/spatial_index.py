"""
Octree over 3-D points for radius and nearest-neighbour queries.

Used by the path provider to find the graph nodes closest to an arbitrary
start or goal position. The tree is rebuilt wholesale per fallback plan,
so only insert/clear are supported (no per-entry removal).
"""
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple
import numpy as np

from .geometry import VectorLike, as_vector


@dataclass
class OctreeConfig:
    """Configuration for the octree."""
    leaf_capacity: int = 8  # Entries a leaf holds before splitting
    max_depth: int = 12  # Leaves at this depth never split
    initial_half_size: float = 64.0  # Half edge length of the first root cube

    def __post_init__(self) -> None:
        if self.leaf_capacity < 1:
            raise ValueError("leaf_capacity must be at least 1")
        if self.max_depth < 0:
            raise ValueError("max_depth must be non-negative")
        if self.initial_half_size <= 0:
            raise ValueError("initial_half_size must be positive")


class _Entry:
    __slots__ = ("position", "payload", "order")

    def __init__(self, position: np.ndarray, payload: Any, order: int):
        self.position = position
        self.payload = payload
        self.order = order


class _Node:
    """Axis-aligned cube. Holds entries while a leaf, eight children otherwise."""

    __slots__ = ("center", "half", "depth", "entries", "children")

    def __init__(self, center: np.ndarray, half: float, depth: int):
        self.center = center
        self.half = half
        self.depth = depth
        self.entries: List[_Entry] = []
        self.children: Optional[List["_Node"]] = None

    def contains(self, point: np.ndarray) -> bool:
        return bool(np.all(np.abs(point - self.center) <= self.half))

    def child_index(self, point: np.ndarray) -> int:
        index = 0
        if point[0] >= self.center[0]:
            index |= 1
        if point[1] >= self.center[1]:
            index |= 2
        if point[2] >= self.center[2]:
            index |= 4
        return index

    def split(self) -> None:
        quarter = self.half / 2
        self.children = []
        for index in range(8):
            offset = np.array([
                quarter if index & 1 else -quarter,
                quarter if index & 2 else -quarter,
                quarter if index & 4 else -quarter,
            ])
            self.children.append(_Node(self.center + offset, quarter, self.depth + 1))
        entries, self.entries = self.entries, []
        for entry in entries:
            self.children[self.child_index(entry.position)].entries.append(entry)

    def min_distance(self, point: np.ndarray) -> float:
        """Distance from `point` to the closest point of this cube."""
        excess = np.maximum(np.abs(point - self.center) - self.half, 0.0)
        return float(np.linalg.norm(excess))


class SpatialIndex:
    """
    Octree point index.

    The root cube grows by doubling toward points that fall outside it, so
    callers never need to know the world bounds up front.
    """

    def __init__(self, config: Optional[OctreeConfig] = None):
        self.config = config or OctreeConfig()
        self._root: Optional[_Node] = None
        self._count = 0

    def insert(self, position: VectorLike, payload: Any) -> None:
        point = as_vector(position)
        if not np.all(np.isfinite(point)):
            raise ValueError(f"Cannot index non-finite position {point}")
        if self._root is None:
            self._root = _Node(point.copy(), self.config.initial_half_size, 0)
        while not self._root.contains(point):
            self._grow_toward(point)

        entry = _Entry(point, payload, self._count)
        self._count += 1

        node = self._root
        while node.children is not None:
            node = node.children[node.child_index(point)]
        node.entries.append(entry)
        if len(node.entries) > self.config.leaf_capacity and node.depth < self.config.max_depth:
            self._split_leaf(node)

    def clear(self) -> None:
        self._root = None
        self._count = 0

    def rebuild(self, items: Iterable[Tuple[VectorLike, Any]]) -> None:
        """Replace the contents with (position, payload) pairs."""
        self.clear()
        for position, payload in items:
            self.insert(position, payload)

    def radius_search(self, point: VectorLike, radius: float) -> List[Tuple[Any, float]]:
        """Every (payload, distance) with distance <= radius, unordered."""
        if self._root is None or radius < 0:
            return []
        query = as_vector(point)
        return [(entry.payload, dist) for entry, dist in self._collect(query, radius)]

    def nearest(self, point: VectorLike, max_radius: float) -> Optional[Tuple[Any, float]]:
        """
        Closest entry within `max_radius`, or None.

        Equal distances resolve to the entry inserted first.
        """
        if self._root is None or max_radius < 0:
            return None
        query = as_vector(point)
        hits = self._collect(query, max_radius)
        if not hits:
            return None
        entry, dist = min(hits, key=lambda hit: (hit[1], hit[0].order))
        return entry.payload, dist

    def __len__(self) -> int:
        return self._count

    # ------------------------------------------------------------------ helpers
    def _collect(self, query: np.ndarray, radius: float) -> List[Tuple[_Entry, float]]:
        hits: List[Tuple[_Entry, float]] = []
        stack = [self._root]
        while stack:
            node = stack.pop()
            if node.min_distance(query) > radius:
                continue
            if node.children is not None:
                stack.extend(node.children)
                continue
            for entry in node.entries:
                dist = float(np.linalg.norm(entry.position - query))
                if dist <= radius:
                    hits.append((entry, dist))
        return hits

    def _split_leaf(self, node: _Node) -> None:
        # Coincident points can keep landing in the same child; max_depth bounds this
        while node.children is None and len(node.entries) > self.config.leaf_capacity \
                and node.depth < self.config.max_depth:
            node.split()
            crowded = [c for c in node.children if len(c.entries) > self.config.leaf_capacity]
            if not crowded:
                return
            node = crowded[0]

    def _grow_toward(self, point: np.ndarray) -> None:
        """Double the root, keeping the old root as one octant."""
        old = self._root
        direction = np.where(point >= old.center, 1.0, -1.0)
        new_root = _Node(old.center + direction * old.half, old.half * 2, 0)
        new_root.children = []
        for index in range(8):
            offset = np.array([
                old.half if index & 1 else -old.half,
                old.half if index & 2 else -old.half,
                old.half if index & 4 else -old.half,
            ])
            new_root.children.append(_Node(new_root.center + offset, old.half, 1))
        slot = new_root.child_index(old.center)
        new_root.children[slot] = old
        self._root = new_root
        self._shift_depth(old, 1)

    def _shift_depth(self, node: _Node, amount: int) -> None:
        stack = [node]
        while stack:
            current = stack.pop()
            current.depth += amount
            if current.children is not None:
                stack.extend(current.children)
