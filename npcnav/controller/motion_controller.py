"""
MotionController - per-frame walking state machine for one agent.

Turns "walk to this point" into actuator commands:
1. Plan a route through the PathProvider (or head straight for the point)
2. Each frame, steer toward the current waypoint and advance when close
3. Detect stalls (near-zero velocity) and back off briefly
4. Retry failed planning a few times, teleport out of hopeless spots,
   and report Stuck when nothing works

Every walk gets a fresh CancellationHandle. All frame bindings and delayed
retries scheduled for a walk carry its handle, and starting a new walk
cancels the previous one, so two walks can never fight over the actuator.
"""
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional
import numpy as np

from npcnav.navigation.base import AgentParameters, PathProvider, Waypoint
from npcnav.navigation.geometry import ZERO, VectorLike, as_vector, flatten_to, unit
from npcnav.navigation.path_provider import GraphPathProvider
from npcnav.runtime.events import Event, EventQueue, EventType
from npcnav.runtime.scheduler import (
    CancellationHandle,
    FrameScheduler,
    HandleSource,
    ScheduledTask,
)
from npcnav.runtime.signal import Signal
from .actuator import LocomotionActuator

logger = logging.getLogger(__name__)


class MotionState(Enum):
    """Controller states. SWIMMING/FALLING/CLIMBING behave like RUNNING."""
    PAUSED = auto()
    IDLE = auto()
    RUNNING = auto()
    SWIMMING = auto()
    FALLING = auto()
    CLIMBING = auto()
    DEAD = auto()

    @property
    def is_moving(self) -> bool:
        return self in _MOVING_STATES


_MOVING_STATES = frozenset({
    MotionState.RUNNING,
    MotionState.SWIMMING,
    MotionState.FALLING,
    MotionState.CLIMBING,
})


@dataclass
class MotionConfig:
    """Configuration for the motion controller."""
    # Movement
    walk_speed: float = 16.0
    walk_cycle_speed: Optional[float] = None  # Speed at which stride_rate == 1; walk_speed if None
    root_selector: Optional[Callable[[], VectorLike]] = None  # Overrides actuator position

    # Arrival thresholds (world units)
    arrival_epsilon: float = 1.0  # Already there, nothing to do
    arrival_radius: float = 5.0  # Close enough to the final target while walking

    # Recovery
    large_displacement: float = 100.0  # Teleport instead of retrying beyond this
    max_no_path_attempts: int = 2  # Stuck once failures exceed this
    retry_delay: float = 0.2  # Seconds before re-planning after a failure
    unstuck_time: float = 0.9  # Stall detection suppressed this long after a correction
    stall_velocity_epsilon: float = 1.1920928955078125e-07

    # Waypoint following
    waypoint_advance_fraction: float = 0.8  # Of AgentParameters.waypoint_spacing
    travel_time_factor: float = 2.0  # Budget = factor * distance / walk_speed

    def __post_init__(self) -> None:
        if self.walk_speed <= 0:
            raise ValueError("walk_speed must be positive")
        if self.arrival_epsilon < 0 or self.arrival_radius < 0:
            raise ValueError("arrival thresholds must be non-negative")
        if self.max_no_path_attempts < 0:
            raise ValueError("max_no_path_attempts must be non-negative")
        if self.travel_time_factor <= 0:
            raise ValueError("travel_time_factor must be positive")


class MotionController:
    """
    Drives a LocomotionActuator toward target points.

    Usage:
        scheduler = FrameScheduler()
        controller = MotionController(actuator, scheduler, provider)
        controller.move_to_complete.connect(on_arrived)
        controller.walk_to_point((40, 0, 10))

        # Each frame
        actuator_physics.step(dt)
        scheduler.tick(dt)

    Signals:
        state_changed(old_state, new_state)
        move_to_complete(forced)
        stuck()
    """

    STEER_PRIORITY = 0
    VELOCITY_PRIORITY = -10

    def __init__(
        self,
        actuator: LocomotionActuator,
        scheduler: FrameScheduler,
        path_provider: Optional[PathProvider] = None,
        config: Optional[MotionConfig] = None,
        agent_parameters: Optional[AgentParameters] = None,
    ):
        self.config = config or MotionConfig()
        self.actuator = actuator
        self.scheduler = scheduler
        self.path_provider = path_provider or GraphPathProvider(agent_parameters=agent_parameters)

        # Events
        self.state_changed = Signal("state_changed")
        self.move_to_complete = Signal("move_to_complete")
        self.stuck = Signal("stuck")
        self.events = EventQueue(max_size=1000)

        # Walk bookkeeping
        self._handles = HandleSource()
        self._stepping: List[ScheduledTask] = []
        self._target: Optional[np.ndarray] = None

        # Counters, reset only on confirmed arrival
        self.no_path_attempts: int = 0
        self.last_stuck_time: float = scheduler.now - self.config.unstuck_time
        self.last_reached_position: Optional[np.ndarray] = None

        # Secondary tick output
        self.stride_rate: float = 0.0

        self._state = MotionState.PAUSED
        self._destroyed = False
        self.actuator.set_base_speed(self.config.walk_speed)
        self.set_state(MotionState.IDLE)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> MotionState:
        return self._state

    @property
    def walk_token(self) -> int:
        """Sequence number of the most recent walk request."""
        return self._handles.token

    @property
    def target(self) -> Optional[np.ndarray]:
        return None if self._target is None else self._target.copy()

    @property
    def is_walking(self) -> bool:
        return bool(self._stepping)

    def set_state(self, new_state: MotionState) -> None:
        """Transition and fire state_changed. DEAD is terminal and goes through destroy()."""
        if new_state == MotionState.DEAD and not self._destroyed:
            self.destroy()
            return
        if self._state == new_state or self._state == MotionState.DEAD:
            return
        old_state = self._state
        self._state = new_state
        logger.debug("State %s -> %s", old_state.name, new_state.name)
        self._emit(EventType.STATE_CHANGED, old=old_state.name, new=new_state.name)
        self.state_changed.fire(old_state, new_state)

    def pause(self) -> None:
        """Halt the current walk and hold still until resume()."""
        if self._state == MotionState.DEAD:
            return
        self._handles.cancel()
        self._stop_stepping(False)
        self.actuator.set_move_direction(ZERO)
        self.set_state(MotionState.PAUSED)

    def resume(self) -> None:
        if self._state == MotionState.PAUSED:
            self.set_state(MotionState.IDLE)

    # =========================================================================
    # Walking
    # =========================================================================

    def walk_to_point(self, target: VectorLike, use_pathfinding: bool = True) -> None:
        """
        Walk to a world position, optionally through the path provider.

        Supersedes any walk in progress. Outcomes are reported through
        move_to_complete or stuck.
        """
        if self._state == MotionState.DEAD:
            return
        if self._state == MotionState.PAUSED:
            logger.debug("Ignoring walk request while paused")
            return

        target = as_vector(target)
        handle = self._handles.next()
        self._stop_stepping(False)
        self._target = target

        position = self._root_position()
        remaining = float(np.linalg.norm(target - position))
        self._emit(EventType.WALK_STARTED, token=handle.token, pathfinding=use_pathfinding)

        # Already there: complete without leaving the current state
        if remaining <= self.config.arrival_epsilon:
            self._finish(forced=False)
            return

        if not self._state.is_moving:
            self.set_state(MotionState.RUNNING)

        budget = self.config.travel_time_factor * remaining / self.config.walk_speed
        started = self.scheduler.now

        if use_pathfinding:
            self._walk_path(target, handle, started, budget)
        else:
            self._walk_direct(target, handle, started, budget)

    def walk_in_direction(self, direction: VectorLike, keep_walking: bool = False) -> None:
        """
        Move and face along `direction`.

        Unless keep_walking is set, the current walk (and its pending
        retries) is halted first.
        """
        if self._state == MotionState.DEAD:
            return
        if not keep_walking:
            self._handles.cancel()
        if self._state == MotionState.IDLE:
            self.set_state(MotionState.RUNNING)
        self._steer(direction, keep_walking)

    def _walk_direct(
        self,
        target: np.ndarray,
        handle: CancellationHandle,
        started: float,
        budget: float,
    ) -> None:
        """Head straight for target; escalate to pathfinding when too slow."""

        def on_frame(dt: float) -> None:
            if not self._state.is_moving:
                self._stop_stepping(False)
                return

            offset = target - self._root_position()

            if self.scheduler.now - started > budget:
                logger.debug("Direct walk over budget (%.2fs), switching to pathfinding", budget)
                self.walk_to_point(target, True)
                return

            if np.linalg.norm(offset) <= self.config.arrival_radius:
                self._finish(forced=False)
                return

            self._steer(offset, True)

        self._start_stepping(on_frame, handle)
        self._steer(target - self._root_position(), True)

    def _walk_path(
        self,
        target: np.ndarray,
        handle: CancellationHandle,
        started: float,
        budget: float,
    ) -> None:
        """Plan through the provider and follow its waypoints."""
        position = self._root_position()
        spacing = self.path_provider.agent_parameters.waypoint_spacing
        advance_distance = spacing * self.config.waypoint_advance_fraction

        waypoint = None
        if self.path_provider.path_to_point(position, target):
            waypoint = self._next_waypoint_from(position, advance_distance)

        if waypoint is None:
            self._handle_no_path(target, handle, position)
            return

        current = [waypoint]
        start_tick = self.scheduler.tick_count

        def on_frame(dt: float) -> None:
            now = self.scheduler.now
            if now - self.last_stuck_time <= self.config.unstuck_time:
                return

            if not self._state.is_moving or current[0] is None:
                self._stop_stepping(True)
                return

            position = self._root_position()

            if now - started > budget:
                logger.debug("Path walk over budget (%.2fs), forcing completion", budget)
                self._finish(forced=True)
                return

            if np.linalg.norm(target - position) <= self.config.arrival_radius:
                self._finish(forced=False)
                return

            direction = flatten_to(current[0].position, position[1]) - position

            # One frame of grace so the actuator can pick up speed
            if self.scheduler.tick_count - start_tick > 1 and \
                    self.actuator.get_velocity() < self.config.stall_velocity_epsilon:
                self.last_stuck_time = now
                self._emit(EventType.STALL_CORRECTED, position=position.tolist())
                self._steer(-direction, True)
                return

            if np.linalg.norm(direction) <= advance_distance:
                current[0] = self.path_provider.get_next_waypoint()
                if current[0] is None:
                    self._finish(forced=False)
                    return
                direction = flatten_to(current[0].position, position[1]) - position

            self._steer(direction, True)

        self._start_stepping(on_frame, handle)
        self._steer(flatten_to(waypoint.position, position[1]) - position, True)

    def _next_waypoint_from(self, position: np.ndarray, advance_distance: float) -> Optional[Waypoint]:
        """First waypoint worth walking to; skips ones we are standing on."""
        waypoint = self.path_provider.get_next_waypoint()
        while waypoint is not None:
            offset = flatten_to(waypoint.position, position[1]) - position
            if np.linalg.norm(offset) > advance_distance:
                break
            following = self.path_provider.get_next_waypoint()
            if following is None:
                break
            waypoint = following
        return waypoint

    def _handle_no_path(self, target: np.ndarray, handle: CancellationHandle, position: np.ndarray) -> None:
        """Planning failed: teleport, back off and retry, or give up."""
        if np.linalg.norm(target - position) > self.config.large_displacement:
            logger.info("No path to distant target %s, teleporting", target.tolist())
            self.actuator.teleport(target)
            self._emit(EventType.TELEPORTED, target=target.tolist())
            self._finish(forced=False)
            return

        self._steer(-self.actuator.move_direction, False)
        self.no_path_attempts += 1

        if self.no_path_attempts > self.config.max_no_path_attempts:
            logger.warning(
                "Stuck after %d failed planning attempts toward %s",
                self.no_path_attempts, target.tolist(),
            )
            self._handles.cancel()
            self._stop_stepping(True)
            self._emit(EventType.STUCK, attempts=self.no_path_attempts)
            self.stuck.fire()
            return

        self._emit(EventType.PATH_RETRY, attempts=self.no_path_attempts)
        self.scheduler.delay(
            self.config.retry_delay,
            lambda: self.walk_to_point(target, True),
            handle=handle,
            name=f"retry-{handle.token}",
        )

    def _finish(self, forced: bool) -> None:
        """Stop walking and report completion once."""
        self._handles.cancel()
        self._stop_stepping(True)

        if not forced:
            self.no_path_attempts = 0
            self.last_stuck_time = self.scheduler.now - self.config.unstuck_time
            self.last_reached_position = self._root_position()

        self._emit(EventType.MOVE_TO_COMPLETE, forced=forced)
        self.move_to_complete.fire(forced)

    # =========================================================================
    # Stepping helpers
    # =========================================================================

    def _start_stepping(self, on_frame: Callable[[float], None], handle: CancellationHandle) -> None:
        self._stepping.append(self.scheduler.bind_to_frame(
            on_frame, self.STEER_PRIORITY, handle, name=f"steer-{handle.token}",
        ))
        self._stepping.append(self.scheduler.bind_to_frame(
            self._update_stride, self.VELOCITY_PRIORITY, handle, name=f"stride-{handle.token}",
        ))

    def _update_stride(self, dt: float) -> None:
        cycle_speed = self.config.walk_cycle_speed or self.config.walk_speed
        self.stride_rate = self.actuator.get_velocity() / cycle_speed

    def _stop_stepping(self, reset_state: bool) -> None:
        for task in self._stepping:
            task.cancel()
        self._stepping.clear()
        self.stride_rate = 0.0

        if reset_state and self._state.is_moving:
            self.set_state(MotionState.IDLE)
            self.actuator.set_move_direction(ZERO)

    def _steer(self, direction: VectorLike, keep_walking: bool) -> None:
        direction = unit(direction)
        if not self._state.is_moving:
            return

        if not keep_walking:
            self._stop_stepping(False)

        self.actuator.set_move_direction(direction)
        if np.linalg.norm(direction) != 0:
            self.actuator.set_facing_direction(direction)

    def _root_position(self) -> np.ndarray:
        if self.config.root_selector is not None:
            return as_vector(self.config.root_selector())
        return self.actuator.get_position()

    def _emit(self, event_type: EventType, **data) -> None:
        self.events.push(Event(event_type, self.scheduler.tick_count, data, self.scheduler.now))

    # =========================================================================
    # Cleanup
    # =========================================================================

    def destroy(self) -> None:
        """Halt, go DEAD and release the path provider. Idempotent."""
        if self._destroyed:
            return
        self._destroyed = True
        self._handles.cancel()
        self._stop_stepping(True)
        self.set_state(MotionState.DEAD)
        self.path_provider.destroy()
        self.state_changed.disconnect_all()
        self.move_to_complete.disconnect_all()
        self.stuck.disconnect_all()
