"""
Demo script walking an agent through a small backup graph.
Run from project root: python demo_navigation.py

The primary planner is scripted to fail, so the route comes from the
Dijkstra fallback over the graph. A second controller without any
navigation data then teleports to a far-away point.
"""
import logging

from npcnav.controller import KinematicActuator, MotionConfig, MotionController
from npcnav.navigation import GraphPathProvider, NavGraph, PathProviderConfig, ScriptedPlanner
from npcnav.runtime import FrameScheduler

DT = 1 / 60


def build_graph():
    """Four rooms around a courtyard; the direct corridor is expensive."""
    graph = NavGraph()
    graph.add_node("hall", (0, 0, 0))
    graph.add_node("courtyard", (20, 0, 0))
    graph.add_node("kitchen", (20, 0, 20))
    graph.add_node("cellar", (0, -4, 20))
    graph.add_edge("hall", "courtyard", 20)
    graph.add_edge("courtyard", "kitchen", 20)
    graph.add_edge("kitchen", "cellar", 21)
    graph.add_edge("hall", "cellar", 90, label="collapsed")
    return graph


def run_until_done(actuator, scheduler, done, limit=10.0):
    steps = 0
    while not done and steps * DT < limit:
        actuator.step(DT)
        scheduler.tick(DT)
        steps += 1
    return steps * DT


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    print("=== Navigation Demo ===\n")

    scheduler = FrameScheduler()
    actuator = KinematicActuator((0, 0, 0))
    provider = GraphPathProvider(
        ScriptedPlanner(),
        backup_graph=build_graph(),
        config=PathProviderConfig(retry_count=1, retry_delay=0.0),
    )
    # The route is three times the straight-line distance
    controller = MotionController(actuator, scheduler, provider, MotionConfig(travel_time_factor=4.0))

    completions = []
    controller.move_to_complete.connect(completions.append)
    controller.stuck.connect(lambda: print("STUCK"))
    controller.state_changed.connect(
        lambda old, new: print(f"  state: {old.name} -> {new.name}")
    )

    # Walk to the cellar through the fallback graph
    print("=== Walk to cellar ===")
    controller.walk_to_point((0, -4, 20))
    print(f"Fallback route: {provider.last_solution.node_ids}")
    print(f"Route cost: {provider.last_solution.cost:.1f}")
    elapsed = run_until_done(actuator, scheduler, completions)
    position = actuator.get_position()
    print(f"Arrived after {elapsed:.2f}s at ({position[0]:.1f}, {position[1]:.1f}, {position[2]:.1f})")
    print(f"Forced: {completions[-1]}")

    # Event log
    print("\n=== Events ===")
    for event in controller.events.pop_all():
        print(f"  [{event.tick:4d}] {event.event_type.name} {event.data}")
    controller.destroy()

    # No planner and no graph: a distant target is reached by teleporting
    print("\n=== Walk to a far-away point without navigation data ===")
    bare = MotionController(actuator, scheduler)
    bare.walk_to_point((400, 0, 400))
    position = actuator.get_position()
    print(f"Teleports: {actuator.teleports}, now at ({position[0]:.1f}, {position[1]:.1f}, {position[2]:.1f})")
    for event in bare.events.pop_all():
        print(f"  [{event.tick:4d}] {event.event_type.name} {event.data}")
    bare.destroy()

    print("\n=== Demo Complete ===")


if __name__ == "__main__":
    main()
