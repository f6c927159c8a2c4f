"""
Tests for MotionController: arrival, retries, Stuck, stalls, walk handles.

Each test drives a KinematicActuator and a FrameScheduler by hand, the
way a host game loop would: integrate the actuator, then tick.

Usage:
    python test_motion_controller.py
    pytest test_motion_controller.py
"""
import numpy as np

from npcnav.controller import KinematicActuator, MotionConfig, MotionController, MotionState
from npcnav.navigation import (
    GraphPathProvider,
    NavGraph,
    PathProviderConfig,
    PlannerResult,
    PlannerStatus,
    ScriptedPlanner,
    StraightLinePlanner,
    Waypoint,
)
from npcnav.runtime import EventType, FrameScheduler

DT = 1 / 60


class RecordingActuator(KinematicActuator):
    """KinematicActuator that logs every movement direction it is given."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.directions = []

    def set_move_direction(self, direction):
        super().set_move_direction(direction)
        self.directions.append(self.move_direction)


class Rig:
    """Controller wired to a scripted planner, a scheduler and listeners."""

    def __init__(self, planner=None, graph=None, position=(0, 0, 0), config=None):
        self.scheduler = FrameScheduler()
        self.actuator = RecordingActuator(position)
        self.planner = planner
        self.provider = GraphPathProvider(
            planner,
            backup_graph=graph,
            config=PathProviderConfig(retry_count=0),
            sleep=lambda seconds: None,
        )
        self.controller = MotionController(self.actuator, self.scheduler, self.provider, config)

        self.completions = []
        self.stucks = []
        self.states = []
        self.controller.move_to_complete.connect(self.completions.append)
        self.controller.stuck.connect(lambda: self.stucks.append(self.scheduler.now))
        self.controller.state_changed.connect(lambda old, new: self.states.append((old, new)))

    def run(self, seconds):
        for _ in range(int(round(seconds / DT))):
            self.actuator.step(DT)
            self.scheduler.tick(DT)

    @property
    def position(self):
        return self.actuator.get_position()


def _line_result(start, end, spacing=4.0):
    return StraightLinePlanner(spacing).compute(start, end)


def test_initial_state():
    rig = Rig()
    assert rig.controller.state == MotionState.IDLE
    assert rig.actuator.base_speed == 16.0
    assert rig.controller.events.count(EventType.STATE_CHANGED) == 1
    assert rig.controller.walk_token == 0
    assert not rig.controller.is_walking


def test_target_within_epsilon_completes_immediately():
    planner = ScriptedPlanner()
    rig = Rig(planner)
    rig.controller.no_path_attempts = 2

    rig.controller.walk_to_point((0.5, 0, 0.5))
    assert rig.completions == [False]
    assert rig.states == []
    assert rig.controller.no_path_attempts == 0
    assert planner.calls == []
    assert not rig.controller.is_walking
    assert rig.controller.state == MotionState.IDLE


def test_path_walk_arrives_and_completes_once():
    """Following a primary path ends with exactly one normal completion."""
    print("=" * 60)
    print("Testing primary path walk")
    print("=" * 60)

    rig = Rig(StraightLinePlanner(spacing=4.0))
    rig.controller.walk_to_point((30, 0, 0))
    assert rig.controller.state == MotionState.RUNNING
    assert rig.controller.is_walking

    rig.run(4.0)
    assert rig.completions == [False]
    assert rig.controller.events.count(EventType.MOVE_TO_COMPLETE) == 1
    assert rig.controller.no_path_attempts == 0
    assert np.linalg.norm(rig.position - np.array([30, 0, 0])) <= 5.0 + 16 * DT
    assert np.allclose(rig.controller.last_reached_position, rig.position)
    assert rig.controller.state == MotionState.IDLE
    assert np.allclose(rig.actuator.move_direction, 0)
    assert rig.scheduler.pending_bindings == 0
    print(f"  Stopped at {rig.position.round(2).tolist()}")
    print("Primary path walk: PASSED\n")


def test_fallback_graph_walk_turns_corner():
    graph = NavGraph()
    graph.add_node("start", (0, 0, 0))
    graph.add_node("corner", (20, 0, 0))
    graph.add_node("goal", (20, 0, 20))
    graph.add_edge("start", "corner", 20)
    graph.add_edge("corner", "goal", 20)

    rig = Rig(graph=graph)
    rig.controller.walk_to_point((20, 0, 20))
    assert rig.provider.is_fallback
    rig.run(4.0)

    assert rig.completions == [False]
    assert np.linalg.norm(rig.position - np.array([20, 0, 20])) <= 5.0 + 16 * DT
    # It went around the corner rather than cutting across
    assert any(d[0] > 0.9 for d in rig.actuator.directions)
    assert any(d[2] > 0.9 for d in rig.actuator.directions)


def test_second_walk_supersedes_first():
    """Only work scheduled under the newest walk may touch the actuator."""
    print("=" * 60)
    print("Testing overlapping walk requests")
    print("=" * 60)

    rig = Rig()
    rig.controller.walk_to_point((50, 0, 0), use_pathfinding=False)
    first_token = rig.controller.walk_token
    rig.run(0.2)
    assert rig.position[0] > 0

    rig.controller.walk_to_point((-50, 0, 0), use_pathfinding=False)
    assert rig.controller.walk_token == first_token + 1
    mark = len(rig.actuator.directions)
    rig.run(1.0)

    after = rig.actuator.directions[mark:]
    assert after
    assert all(d[0] <= 0 for d in after)
    assert rig.completions == []
    print("Overlapping walks: PASSED\n")


def test_stale_retry_does_not_replan():
    planner = ScriptedPlanner()
    rig = Rig(planner)
    rig.controller.walk_to_point((20, 0, 0))
    assert len(planner.calls) == 1
    assert rig.scheduler.pending_delays == 1

    rig.controller.walk_to_point((-20, 0, 0), use_pathfinding=False)
    rig.run(1.0)
    assert len(planner.calls) == 1
    assert rig.stucks == []


def test_three_failures_fire_stuck_once():
    print("=" * 60)
    print("Testing Stuck after repeated planning failures")
    print("=" * 60)

    planner = ScriptedPlanner()
    rig = Rig(planner)
    rig.controller.walk_to_point((20, 0, 0))
    rig.run(3.0)

    assert len(rig.stucks) == 1
    assert len(planner.calls) == 3
    assert rig.controller.no_path_attempts == 3
    assert rig.controller.events.count(EventType.PATH_RETRY) == 2
    assert rig.controller.events.count(EventType.STUCK) == 1
    assert rig.completions == []
    assert rig.scheduler.pending_delays == 0
    assert rig.controller.state == MotionState.IDLE
    print(f"  Stuck fired at t={rig.stucks[0]:.2f}s")
    print("Stuck: PASSED\n")


def test_arrival_resets_no_path_counter():
    planner = ScriptedPlanner(
        [PlannerResult(PlannerStatus.NO_PATH), PlannerResult(PlannerStatus.NO_PATH)],
        default=_line_result((0, 0, 0), (30, 0, 0)),
    )
    rig = Rig(planner)
    rig.controller.walk_to_point((30, 0, 0))
    rig.run(0.3)
    assert rig.controller.no_path_attempts == 2

    rig.run(4.0)
    assert len(planner.calls) == 3
    assert rig.completions == [False]
    assert rig.controller.no_path_attempts == 0
    assert rig.stucks == []


def test_far_target_without_path_teleports():
    rig = Rig()
    rig.controller.walk_to_point((150, 0, 0))

    assert rig.actuator.teleports == 1
    assert np.allclose(rig.position, (150, 0, 0))
    assert rig.completions == [False]
    assert rig.controller.no_path_attempts == 0
    assert rig.controller.events.count(EventType.TELEPORTED) == 1


def test_stall_reverses_heading_with_cooldown():
    print("=" * 60)
    print("Testing stall detection")
    print("=" * 60)

    rig = Rig(StraightLinePlanner(), config=MotionConfig(travel_time_factor=4.0))
    rig.controller.walk_to_point((40, 0, 0))
    rig.run(0.5)

    rig.actuator.pinned = True
    rig.run(0.1)
    assert rig.controller.events.count(EventType.STALL_CORRECTED) == 1
    assert rig.actuator.move_direction[0] < 0
    assert rig.actuator.facing_direction[0] < 0

    rig.run(0.5)
    assert rig.controller.events.count(EventType.STALL_CORRECTED) == 1

    rig.actuator.pinned = False
    rig.run(6.0)
    assert rig.completions == [False]
    print("Stall detection: PASSED\n")


def test_travel_budget_forces_completion():
    rig = Rig(StraightLinePlanner())
    rig.actuator.pinned = True
    rig.controller.walk_to_point((30, 0, 0))
    rig.run(6.0)

    assert rig.completions == [True]
    assert rig.controller.events.count(EventType.STALL_CORRECTED) >= 1
    assert rig.controller.last_reached_position is None
    assert rig.controller.state == MotionState.IDLE


def test_direct_walk_escalates_to_pathfinding():
    planner = ScriptedPlanner()
    rig = Rig(planner)
    rig.actuator.pinned = True
    rig.controller.walk_to_point((20, 0, 0), use_pathfinding=False)
    rig.run(2.0)
    assert planner.calls == []

    rig.run(1.0)
    assert len(planner.calls) >= 1
    started = rig.controller.events.pending_of_type(EventType.WALK_STARTED)
    assert started[0].data["pathfinding"] is False
    assert started[1].data["pathfinding"] is True


def test_direct_walk_arrives():
    rig = Rig()
    rig.controller.walk_to_point((0, 0, 30), use_pathfinding=False)
    rig.run(3.0)
    assert rig.completions == [False]
    assert rig.position[2] >= 25 - 1e-9


def test_walk_in_direction_normalizes():
    rig = Rig()
    rig.controller.walk_in_direction((3, 0, 4))
    assert rig.controller.state == MotionState.RUNNING
    assert np.allclose(rig.actuator.move_direction, (0.6, 0, 0.8))
    assert np.allclose(rig.actuator.facing_direction, (0.6, 0, 0.8))

    rig.controller.walk_in_direction((0, 0, 0))
    assert np.allclose(rig.actuator.move_direction, 0)
    assert np.allclose(rig.actuator.facing_direction, (0.6, 0, 0.8))


def test_walk_in_direction_halts_current_walk():
    rig = Rig(StraightLinePlanner())
    rig.controller.walk_to_point((30, 0, 0))
    rig.run(0.2)
    rig.controller.walk_in_direction((0, 0, -1))
    rig.run(3.0)

    assert rig.completions == []
    assert not rig.controller.is_walking
    assert rig.position[2] < -30


def test_locomotion_substates_keep_walking():
    rig = Rig(StraightLinePlanner())
    rig.controller.walk_to_point((30, 0, 0))
    rig.run(0.2)
    rig.controller.set_state(MotionState.SWIMMING)
    rig.run(4.0)

    assert rig.completions == [False]
    assert (MotionState.RUNNING, MotionState.SWIMMING) in rig.states
    assert rig.controller.state == MotionState.IDLE


def test_stride_rate_tracks_velocity():
    rig = Rig(StraightLinePlanner(), config=MotionConfig(walk_cycle_speed=8.0))
    rig.controller.walk_to_point((60, 0, 0))
    rig.run(0.5)
    assert abs(rig.controller.stride_rate - 2.0) < 1e-6

    rig.controller.pause()
    assert rig.controller.stride_rate == 0.0


def test_pause_and_resume():
    planner = StraightLinePlanner()
    rig = Rig(planner)
    rig.controller.walk_to_point((30, 0, 0))
    rig.run(0.2)
    rig.controller.pause()
    stopped_at = rig.position
    rig.run(1.0)

    assert rig.controller.state == MotionState.PAUSED
    assert np.allclose(rig.position, stopped_at)
    rig.controller.walk_to_point((0, 0, 30))
    assert not rig.controller.is_walking

    rig.controller.resume()
    assert rig.controller.state == MotionState.IDLE
    rig.controller.walk_to_point((30, 0, 0))
    rig.run(3.0)
    assert rig.completions == [False]


def test_root_selector_overrides_actuator_position():
    root = np.array([100.0, 0.0, 0.0])
    rig = Rig(config=MotionConfig(root_selector=lambda: root))
    rig.controller.walk_to_point((100.5, 0, 0))
    assert rig.completions == [False]
    assert np.allclose(rig.controller.last_reached_position, root)


def test_destroy_is_terminal_and_idempotent():
    print("=" * 60)
    print("Testing destroy")
    print("=" * 60)

    planner = ScriptedPlanner()
    rig = Rig(planner)
    rig.controller.walk_to_point((20, 0, 0))
    assert rig.scheduler.pending_delays == 1

    rig.controller.destroy()
    rig.controller.destroy()
    assert rig.controller.state == MotionState.DEAD
    assert rig.states[-1] == (MotionState.IDLE, MotionState.DEAD)
    assert rig.provider.destroyed

    rig.run(1.0)
    assert len(planner.calls) == 1

    rig.controller.walk_to_point((5, 0, 0))
    rig.controller.set_state(MotionState.IDLE)
    rig.controller.walk_in_direction((1, 0, 0))
    assert rig.controller.state == MotionState.DEAD
    assert rig.completions == []
    print("Destroy: PASSED\n")


def _heading_label(direction):
    axis = int(np.argmax(np.abs(direction)))
    sign = "+" if direction[axis] > 0 else "-"
    return sign + "xyz"[axis]


def test_primary_waypoints_are_followed_in_order():
    result = PlannerResult(PlannerStatus.SUCCESS, [
        Waypoint((0, 0, 0)),
        Waypoint((10, 0, 0)),
        Waypoint((10, 0, 10)),
        Waypoint((0, 0, 10)),
        Waypoint((0, 0, 20)),
    ])
    rig = Rig(ScriptedPlanner([result]), config=MotionConfig(travel_time_factor=4.0))
    rig.controller.walk_to_point((0, 0, 20))
    rig.run(5.0)

    assert rig.completions == [False]
    legs = []
    for d in rig.actuator.directions:
        if np.linalg.norm(d) == 0:
            continue
        label = _heading_label(d)
        if not legs or legs[-1] != label:
            legs.append(label)
    assert legs == ["+x", "+z", "-x", "+z"]


def test_failed_replan_after_block_keeps_current_path():
    """A blocked path whose re-plan fails is still walked to the real goal."""
    print("=" * 60)
    print("Testing failed re-plan after a blocked waypoint")
    print("=" * 60)

    planner = ScriptedPlanner([_line_result((0, 0, 0), (60, 0, 0))])
    rig = Rig(planner)
    rig.controller.no_path_attempts = 2
    rig.controller.walk_to_point((60, 0, 0))
    rig.run(20 * DT)

    planner.blocked.fire(rig.provider.current_index + 1)
    assert len(planner.calls) == 2
    assert rig.provider.remaining > 0

    rig.run(0.5)
    assert rig.completions == []
    assert rig.controller.no_path_attempts == 2

    rig.run(5.0)
    assert rig.completions == [False]
    assert np.linalg.norm(rig.position - np.array([60, 0, 0])) <= 5.0 + 16 * DT
    assert rig.controller.no_path_attempts == 0
    print(f"  Stopped at {rig.position.round(2).tolist()}")
    print("Failed re-plan: PASSED\n")


def test_set_state_dead_releases_provider():
    planner = ScriptedPlanner()
    rig = Rig(planner)
    assert planner.blocked.connection_count == 1

    rig.controller.set_state(MotionState.DEAD)
    assert rig.controller.state == MotionState.DEAD
    assert rig.provider.destroyed
    assert planner.blocked.connection_count == 0
    assert rig.states == [(MotionState.IDLE, MotionState.DEAD)]

    rig.controller.destroy()
    rig.controller.set_state(MotionState.DEAD)
    assert rig.controller.events.count(EventType.STATE_CHANGED) == 2


def main():
    test_initial_state()
    test_target_within_epsilon_completes_immediately()
    test_path_walk_arrives_and_completes_once()
    test_fallback_graph_walk_turns_corner()
    test_second_walk_supersedes_first()
    test_stale_retry_does_not_replan()
    test_three_failures_fire_stuck_once()
    test_arrival_resets_no_path_counter()
    test_far_target_without_path_teleports()
    test_stall_reverses_heading_with_cooldown()
    test_travel_budget_forces_completion()
    test_direct_walk_escalates_to_pathfinding()
    test_direct_walk_arrives()
    test_walk_in_direction_normalizes()
    test_walk_in_direction_halts_current_walk()
    test_locomotion_substates_keep_walking()
    test_stride_rate_tracks_velocity()
    test_pause_and_resume()
    test_root_selector_overrides_actuator_position()
    test_destroy_is_terminal_and_idempotent()
    test_primary_waypoints_are_followed_in_order()
    test_failed_replan_after_block_keeps_current_path()
    test_set_state_dead_releases_provider()

    print("=" * 60)
    print("All motion controller tests completed!")
    print("=" * 60)


if __name__ == "__main__":
    main()
