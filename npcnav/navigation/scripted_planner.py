"""
Primary planner stand-ins for demos and tests.

ScriptedPlanner replays queued results; StraightLinePlanner always returns
evenly spaced waypoints along the segment from start to target.
"""
from collections import deque
from typing import Deque, List, Optional, Tuple
import numpy as np

from .base import PlannerResult, PlannerStatus, PrimaryPlanner, Waypoint
from .geometry import VectorLike, as_vector


class ScriptedPlanner(PrimaryPlanner):
    """
    Returns pre-queued results in order, then `default` once exhausted.

    Queued Exceptions are raised instead of returned, to emulate a planner
    that errors out mid-compute.
    """

    def __init__(self, results=None, default: Optional[PlannerResult] = None):
        super().__init__()
        self._script: Deque = deque(results or [])
        self.default = default or PlannerResult(PlannerStatus.NO_PATH)
        self.calls: List[Tuple[np.ndarray, np.ndarray]] = []

    def push(self, result) -> None:
        self._script.append(result)

    def compute(self, start: VectorLike, target: VectorLike) -> PlannerResult:
        self.calls.append((as_vector(start), as_vector(target)))
        item = self._script.popleft() if self._script else self.default
        if isinstance(item, Exception):
            raise item
        return item


class StraightLinePlanner(PrimaryPlanner):
    """Plans an unobstructed straight line, one waypoint every `spacing` units."""

    def __init__(self, spacing: float = 4.0):
        super().__init__()
        self.spacing = spacing

    def compute(self, start: VectorLike, target: VectorLike) -> PlannerResult:
        start = as_vector(start)
        target = as_vector(target)
        length = float(np.linalg.norm(target - start))
        steps = max(1, int(np.ceil(length / self.spacing)))
        waypoints = [
            Waypoint(start + (target - start) * (i / steps))
            for i in range(steps + 1)
        ]
        return PlannerResult(PlannerStatus.SUCCESS, waypoints)
