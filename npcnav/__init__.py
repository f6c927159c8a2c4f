"""
npcnav - navigation for autonomous agents in 3-D worlds.

Example usage:
    from npcnav import (
        FrameScheduler, GraphPathProvider, KinematicActuator, MotionController,
    )

    scheduler = FrameScheduler()
    actuator = KinematicActuator(position=(0, 0, 0))
    provider = GraphPathProvider(planner=my_planner, backup_graph=graph)
    controller = MotionController(actuator, scheduler, provider)
    controller.walk_to_point((40, 0, 0))

    while controller.is_walking:
        actuator.step(1 / 60)
        scheduler.tick(1 / 60)
"""

from .navigation import (
    AgentParameters,
    DijkstraSolver,
    GraphEdge,
    GraphNode,
    GraphPathProvider,
    NavGraph,
    PathProvider,
    PathProviderConfig,
    PathSource,
    PlannerResult,
    PlannerStatus,
    PrimaryPlanner,
    ShortestPath,
    SpatialIndex,
    Waypoint,
    WaypointAction,
)
from .runtime import CancellationHandle, FrameScheduler, Signal
from .controller import (
    KinematicActuator,
    LocomotionActuator,
    MotionConfig,
    MotionController,
    MotionState,
)

__version__ = "0.1.0"

__all__ = [
    "AgentParameters",
    "DijkstraSolver",
    "GraphEdge",
    "GraphNode",
    "GraphPathProvider",
    "NavGraph",
    "PathProvider",
    "PathProviderConfig",
    "PathSource",
    "PlannerResult",
    "PlannerStatus",
    "PrimaryPlanner",
    "ShortestPath",
    "SpatialIndex",
    "Waypoint",
    "WaypointAction",
    "CancellationHandle",
    "FrameScheduler",
    "Signal",
    "KinematicActuator",
    "LocomotionActuator",
    "MotionConfig",
    "MotionController",
    "MotionState",
]
