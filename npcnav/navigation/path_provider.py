"""
Path provider combining a primary planner with a graph fallback.

The primary planner is tried a bounded number of times. When it cannot
produce a path, the backup NavGraph is searched with Dijkstra between the
graph nodes nearest to the start and goal.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .base import (
    AgentParameters,
    PathProvider,
    PathResult,
    PathSource,
    PlannerResult,
    PlannerStatus,
    PrimaryPlanner,
    Waypoint,
    WaypointAction,
)
from .geometry import VectorLike, as_vector, distance
from .graph import GraphEdge, NavGraph
from .shortest_path import DijkstraSolver, ShortestPath
from .spatial_index import OctreeConfig, SpatialIndex

logger = logging.getLogger(__name__)


@dataclass
class PathProviderConfig:
    """Configuration for the path provider."""
    # Extra primary attempts after the first one fails
    retry_count: int = 5

    # Seconds slept between failed primary attempts
    retry_delay: float = 0.075

    # How far from start/goal a graph node may be and still be used
    fallback_search_radius: float = 80.0

    octree: Optional[OctreeConfig] = None  # Uses defaults if None

    def __post_init__(self) -> None:
        if self.retry_count < 0:
            raise ValueError("retry_count must be non-negative")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be non-negative")
        if self.fallback_search_radius < 0:
            raise ValueError("fallback_search_radius must be non-negative")


class GraphPathProvider(PathProvider):
    """
    Primary planner with retries, backed by a Dijkstra graph fallback.

    Flow of path_to_point():
    1. Try the primary planner (1 + retry_count attempts)
    2. On success, queue its waypoints (source PRIMARY)
    3. Otherwise, if a backup graph exists, rebuild the spatial index,
       snap start/goal to the nearest nodes and solve (source FALLBACK),
       finishing with the goal itself when the goal node is off target
    4. If snapping or solving fails, queue a two-point jump path
    5. With no planner success and no graph, report failure

    Waypoints are then pulled one at a time with get_next_waypoint().
    """

    def __init__(
        self,
        planner: Optional[PrimaryPlanner] = None,
        agent_parameters: Optional[AgentParameters] = None,
        backup_graph: Optional[NavGraph] = None,
        config: Optional[PathProviderConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or PathProviderConfig()
        self._agent_parameters = agent_parameters or AgentParameters()
        self._planner = planner
        self._backup_graph = backup_graph
        self._sleep = sleep

        self._index = SpatialIndex(self.config.octree)
        self._solver = DijkstraSolver(weight_fn=self._edge_cost)

        # Path state
        self._path = PathResult()
        self._current_index: int = -1
        self._last_target = as_vector((0.0, 0.0, 0.0))
        self._is_fallback: bool = False
        self._destroyed: bool = False
        self.last_solution: Optional[ShortestPath] = None

        self._blocked_connection = None
        if planner is not None:
            self._blocked_connection = planner.blocked.connect(self._on_blocked)

    @property
    def agent_parameters(self) -> AgentParameters:
        return self._agent_parameters

    @property
    def backup_graph(self) -> Optional[NavGraph]:
        return self._backup_graph

    @property
    def is_fallback(self) -> bool:
        return self._is_fallback

    @property
    def active_source(self) -> Optional[PathSource]:
        return self._path.source if self._path.total > 0 else None

    @property
    def current_index(self) -> int:
        """Index of the waypoint most recently handed out (-1 before any)."""
        return self._current_index

    @property
    def last_target(self):
        return self._last_target.copy()

    @property
    def waypoints(self) -> List[Waypoint]:
        """Waypoints still queued (for debugging/visualization)."""
        return self._path.waypoints

    @property
    def remaining(self) -> int:
        return len(self._path)

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    # =========================================================================
    # Planning
    # =========================================================================

    def path_to_point(self, start: VectorLike, target: VectorLike) -> bool:
        """
        Plan from start to target and fill the waypoint queue.

        Returns:
            True if a path (primary or fallback) is queued, False otherwise
        """
        if self._destroyed:
            return False

        start = as_vector(start)
        target = as_vector(target)
        self._is_fallback = False
        self._last_target = target.copy()
        self._path = PathResult()
        self._current_index = -1

        result = self._compute_primary(start, target)
        if result is not None and result.ok:
            self._path = PathResult(result.waypoints, PathSource.PRIMARY)
            logger.debug("Primary path with %d waypoints", len(result.waypoints))
            return True

        if self._backup_graph is not None:
            self._path = PathResult(self._plan_fallback(start, target), PathSource.FALLBACK)
            self._is_fallback = True
            return True

        logger.debug("No primary path and no backup graph for target %s", target)
        return False

    def _compute_primary(self, start, target) -> Optional[PlannerResult]:
        """Call the planner until it succeeds or the attempts run out."""
        if self._planner is None:
            return None

        attempts = 1 + self.config.retry_count
        result = None
        for attempt in range(1, attempts + 1):
            try:
                result = self._planner.compute(start, target)
            except Exception:
                logger.debug("Primary planner raised on attempt %d/%d", attempt, attempts, exc_info=True)
                result = None

            if result is not None and result.ok:
                return result

            status = result.status if result is not None else PlannerStatus.FAILURE
            logger.debug("Primary attempt %d/%d failed: %s", attempt, attempts, status.name)
            if attempt < attempts and self.config.retry_delay > 0:
                self._sleep(self.config.retry_delay)

        return result

    def _plan_fallback(self, start, target) -> List[Waypoint]:
        """Search the backup graph; degrade to a two-point jump path."""
        graph = self._backup_graph
        self._index.rebuild((node.position, node) for node in graph.nodes)

        radius = self.config.fallback_search_radius
        start_hit = self._index.nearest(start, radius)
        target_hit = self._index.nearest(target, radius)

        if start_hit is None or target_hit is None:
            logger.info("No graph node within %.1f of start/goal, using jump path", radius)
            return self._jump_path(start, target)

        solution = self._solver.solve(graph, start_hit[0].node_id, target_hit[0].node_id)
        self.last_solution = solution
        if solution is None:
            return self._jump_path(start, target)

        logger.info(
            "Fallback path over %d graph nodes (cost %.2f)",
            len(solution.nodes), solution.cost,
        )
        waypoints = self._solution_waypoints(solution)

        # The goal node can sit up to the search radius away from the goal itself
        if distance(waypoints[-1].position, target) > self._agent_parameters.waypoint_spacing:
            waypoints.append(Waypoint(target, WaypointAction.WALK))
        return waypoints

    @staticmethod
    def _solution_waypoints(solution: ShortestPath) -> List[Waypoint]:
        waypoints = [Waypoint(solution.nodes[0].position, WaypointAction.WALK)]
        for node, edge in zip(solution.nodes[1:], solution.edges):
            waypoints.append(Waypoint(node.position, edge.action, edge.label))
        return waypoints

    @staticmethod
    def _jump_path(start, target) -> List[Waypoint]:
        return [
            Waypoint(start, WaypointAction.JUMP),
            Waypoint(target, WaypointAction.JUMP),
        ]

    def _edge_cost(self, edge: GraphEdge) -> float:
        return edge.weight * self._agent_parameters.cost_for(edge.label)

    # =========================================================================
    # Consumption
    # =========================================================================

    def get_next_waypoint(self) -> Optional[Waypoint]:
        """Pop the next waypoint, or None once the path is exhausted."""
        waypoint = self._path.pop()
        if waypoint is not None:
            self._current_index += 1
        return waypoint

    def _on_blocked(self, blocked_index: int) -> None:
        # Indices refer to the primary planner's path
        if self._destroyed or self._is_fallback:
            return

        # Skip path blocks behind us
        if blocked_index < self._current_index:
            return

        # Re-plan from the next waypoint to our original target
        next_waypoint = self._path.peek()
        if next_waypoint is None:
            return
        logger.debug("Path blocked at %d, re-planning from next waypoint", blocked_index)
        previous = (self._path, self._current_index, self._is_fallback)
        if not self.path_to_point(next_waypoint.position, self._last_target):
            logger.warning("Re-plan after block at %d failed, keeping the current path", blocked_index)
            self._path, self._current_index, self._is_fallback = previous

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        if self._blocked_connection is not None:
            self._blocked_connection.disconnect()
            self._blocked_connection = None
        self._path = PathResult()
        self._index.clear()
