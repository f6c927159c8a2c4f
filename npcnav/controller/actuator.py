"""
Locomotion actuator interface and a kinematic implementation.

The MotionController never moves the agent itself: it sets a movement
direction, a facing direction and a base speed on an actuator, and reads
back position and speed. Hosts wrap their character controller in a
LocomotionActuator subclass.
"""
from abc import ABC, abstractmethod
from typing import Optional
import numpy as np

from npcnav.navigation.geometry import VectorLike, as_vector


class LocomotionActuator(ABC):
    """Abstract character mover."""

    @abstractmethod
    def set_move_direction(self, direction: VectorLike) -> None:
        pass

    @abstractmethod
    def set_facing_direction(self, direction: VectorLike) -> None:
        pass

    @abstractmethod
    def set_base_speed(self, speed: float) -> None:
        pass

    @abstractmethod
    def get_position(self) -> np.ndarray:
        pass

    @abstractmethod
    def get_velocity(self) -> float:
        """Magnitude of the current linear velocity."""
        pass

    @abstractmethod
    def teleport(self, position: VectorLike) -> None:
        pass

    @property
    @abstractmethod
    def move_direction(self) -> np.ndarray:
        pass


class KinematicActuator(LocomotionActuator):
    """
    Point mass that moves at base speed along its movement direction.

    step(dt) integrates one frame. While `pinned` is set the agent does not
    move (velocity reads zero), which is how tests emulate walking into a
    wall. This is not a physics simulation.
    """

    def __init__(
        self,
        position: VectorLike = (0.0, 0.0, 0.0),
        speed: float = 16.0,
        facing: Optional[VectorLike] = None,
    ):
        self._position = as_vector(position)
        self._speed = speed
        self._move_direction = np.zeros(3)
        self._facing = as_vector(facing) if facing is not None else np.array([0.0, 0.0, -1.0])
        self._velocity = 0.0
        self.pinned = False
        self.teleports = 0

    def set_move_direction(self, direction: VectorLike) -> None:
        self._move_direction = as_vector(direction)

    def set_facing_direction(self, direction: VectorLike) -> None:
        self._facing = as_vector(direction)

    def set_base_speed(self, speed: float) -> None:
        self._speed = speed

    def get_position(self) -> np.ndarray:
        return self._position.copy()

    def get_velocity(self) -> float:
        return self._velocity

    def teleport(self, position: VectorLike) -> None:
        self._position = as_vector(position)
        self.teleports += 1

    @property
    def move_direction(self) -> np.ndarray:
        return self._move_direction.copy()

    @property
    def facing_direction(self) -> np.ndarray:
        return self._facing.copy()

    @property
    def base_speed(self) -> float:
        return self._speed

    def step(self, dt: float) -> None:
        if self.pinned or dt <= 0:
            self._velocity = 0.0
            return
        displacement = self._move_direction * self._speed * dt
        self._position = self._position + displacement
        self._velocity = float(np.linalg.norm(displacement)) / dt
