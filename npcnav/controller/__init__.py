"""
Controller module - turns walk requests into actuator commands.

Usage:
    from npcnav.controller import MotionController, MotionConfig, KinematicActuator
"""

from .actuator import LocomotionActuator, KinematicActuator
from .motion_controller import MotionController, MotionConfig, MotionState

__all__ = [
    "LocomotionActuator",
    "KinematicActuator",
    "MotionController",
    "MotionConfig",
    "MotionState",
]
