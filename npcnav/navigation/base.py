"""
Core navigation data types and the interfaces every path source implements.

This module defines:
- Waypoint / PathResult: what planners produce and controllers consume
- AgentParameters: agent shape and traversal preferences
- PrimaryPlanner: the external planning engine (treated as a black box)
- PathProvider: the pull-based waypoint queue the MotionController walks
"""
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field, fields
from enum import Enum, auto
from typing import Any, Deque, Dict, List, Optional
import numpy as np

from npcnav.runtime.signal import Signal
from .geometry import VectorLike, as_vector


class WaypointAction(Enum):
    """Locomotion action to perform when heading to a waypoint."""
    WALK = auto()
    JUMP = auto()
    CUSTOM = auto()  # label carries the meaning


class PathSource(Enum):
    """Which planner produced the active path."""
    PRIMARY = auto()
    FALLBACK = auto()


class PlannerStatus(Enum):
    """Outcome reported by a primary planner."""
    SUCCESS = auto()
    NO_PATH = auto()
    CLOSEST_NO_PATH = auto()  # planner only reached somewhere near the goal
    FAILURE = auto()


@dataclass
class Waypoint:
    """One stop along a planned route."""
    position: np.ndarray
    action: WaypointAction = WaypointAction.WALK
    label: Optional[str] = None

    def __post_init__(self) -> None:
        self.position = as_vector(self.position)

    def distance_to(self, point: VectorLike) -> float:
        return float(np.linalg.norm(self.position - as_vector(point)))


@dataclass
class PlannerResult:
    """Return value of PrimaryPlanner.compute()."""
    status: PlannerStatus
    waypoints: List[Waypoint] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == PlannerStatus.SUCCESS and len(self.waypoints) > 0


class PathResult:
    """
    Ordered waypoint queue plus provenance.

    Consumption is FIFO and destructive: pop() removes the head.
    """

    def __init__(self, waypoints: Optional[List[Waypoint]] = None, source: PathSource = PathSource.PRIMARY):
        self._queue: Deque[Waypoint] = deque(waypoints or [])
        self.source = source
        self.total = len(self._queue)

    def pop(self) -> Optional[Waypoint]:
        if not self._queue:
            return None
        return self._queue.popleft()

    def peek(self) -> Optional[Waypoint]:
        return self._queue[0] if self._queue else None

    @property
    def consumed(self) -> int:
        return self.total - len(self._queue)

    @property
    def waypoints(self) -> List[Waypoint]:
        """Snapshot of the waypoints not consumed yet."""
        return list(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)


@dataclass
class AgentParameters:
    """Shape and traversal preferences handed to the planners."""
    radius: float = 2.0
    height: float = 5.0
    can_jump: bool = True
    can_climb: bool = False
    waypoint_spacing: float = 4.0
    costs_by_label: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.radius <= 0 or self.height <= 0:
            raise ValueError("Agent radius and height must be positive")
        if self.waypoint_spacing <= 0:
            raise ValueError("waypoint_spacing must be positive")
        for label, cost in self.costs_by_label.items():
            if cost < 0:
                raise ValueError(f"Cost for label {label!r} must be non-negative")

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]] = None) -> "AgentParameters":
        """Build parameters from a partial dict; omitted fields keep defaults."""
        values = dict(values or {})
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown agent parameters: {sorted(unknown)}")
        # None means "use the default", matching an omitted key
        return cls(**{k: v for k, v in values.items() if v is not None})

    def cost_for(self, label: Optional[str]) -> float:
        """Multiplier applied to an edge carrying `label` (1.0 when unset)."""
        if label is None:
            return 1.0
        return self.costs_by_label.get(label, 1.0)


class PrimaryPlanner(ABC):
    """
    External path-planning engine.

    Implementations compute synchronously and may later fire `blocked`
    with the index of a waypoint that became obstructed.
    """

    def __init__(self):
        self.blocked = Signal("blocked")

    @abstractmethod
    def compute(self, start: VectorLike, target: VectorLike) -> PlannerResult:
        """
        Plan a route from start to target.

        May raise; callers treat an exception as a failed attempt.
        """
        pass


class PathProvider(ABC):
    """
    Interface the MotionController uses to obtain waypoints.

    - path_to_point(): plan and fill the internal queue
    - get_next_waypoint(): pop the next waypoint (None when exhausted)
    - destroy(): release subscriptions
    """

    @abstractmethod
    def path_to_point(self, start: VectorLike, target: VectorLike) -> bool:
        pass

    @abstractmethod
    def get_next_waypoint(self) -> Optional[Waypoint]:
        pass

    @abstractmethod
    def destroy(self) -> None:
        pass

    @property
    @abstractmethod
    def agent_parameters(self) -> AgentParameters:
        pass
