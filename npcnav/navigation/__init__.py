"""
Path planning: primary planner orchestration and the graph fallback.

Components (leaf-first):
- SpatialIndex: octree for finding graph nodes near a point
- NavGraph: weighted node/edge graph supplied by the caller
- DijkstraSolver: shortest path between two graph nodes
- GraphPathProvider: primary planner + retries + graph fallback,
  exposing a pull-based waypoint queue
"""

# Base types and interfaces
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

# Fallback graph
from .graph import GraphEdge, GraphNode, NavGraph
from .spatial_index import OctreeConfig, SpatialIndex
from .shortest_path import DijkstraSolver, ShortestPath

# Provider
from .path_provider import GraphPathProvider, PathProviderConfig
from .scripted_planner import ScriptedPlanner, StraightLinePlanner

__all__ = [
    # Base
    "AgentParameters",
    "PathProvider",
    "PathResult",
    "PathSource",
    "PlannerResult",
    "PlannerStatus",
    "PrimaryPlanner",
    "Waypoint",
    "WaypointAction",
    # Graph
    "GraphEdge",
    "GraphNode",
    "NavGraph",
    "OctreeConfig",
    "SpatialIndex",
    "DijkstraSolver",
    "ShortestPath",
    # Provider
    "GraphPathProvider",
    "PathProviderConfig",
    "ScriptedPlanner",
    "StraightLinePlanner",
]
