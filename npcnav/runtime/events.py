from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, List, Dict, Any
from collections import deque


class EventType(Enum):
    """Types of events a motion controller can emit."""
    # Lifecycle events
    STATE_CHANGED = auto()      # MotionState transition
    WALK_STARTED = auto()       # walk_to_point() accepted a new target

    # Outcome events
    MOVE_TO_COMPLETE = auto()   # Arrived (or forced completion on timeout)
    STUCK = auto()              # Gave up after repeated failed planning
    TELEPORTED = auto()         # Large-displacement escape hatch used

    # Recovery events
    STALL_CORRECTED = auto()    # Velocity dropped to zero, heading reversed
    PATH_RETRY = auto()         # Planning failed, delayed retry scheduled


@dataclass
class Event:
    """
    A controller event stamped with the scheduler tick and clock it happened on.
    """
    event_type: EventType
    tick: int
    data: Dict[str, Any] = field(default_factory=dict)
    time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        record = {"type": self.event_type.name.lower(), "tick": self.tick, "time": self.time}
        record.update(self.data)
        return record


class EventQueue:
    """
    Bounded log of controller events.

    Events wait in the pending queue until the host drains them, typically
    once per frame with pop_all(); drained events move to a bounded history.
    """

    def __init__(self, max_size: int = 100, history_size: int = 1000):
        self._pending: deque = deque(maxlen=max_size)
        self._drained: deque = deque(maxlen=history_size)

    def push(self, event: Event) -> None:
        self._pending.append(event)

    def pop_all(self) -> List[Event]:
        """Drain every pending event, oldest first."""
        drained = list(self._pending)
        self._pending.clear()
        self._drained.extend(drained)
        return drained

    def pending_of_type(self, event_type: EventType) -> List[Event]:
        """Pending events of one type, without draining the queue."""
        return [e for e in self._pending if e.event_type == event_type]

    def count(self, event_type: EventType) -> int:
        """Number of events of one type, pending and already drained."""
        drained = sum(1 for e in self._drained if e.event_type == event_type)
        return drained + len(self.pending_of_type(event_type))

    def get_processed_history(self) -> List[Dict[str, Any]]:
        """Drained events as flat dicts, oldest first."""
        return [e.to_dict() for e in self._drained]

    def clear_history(self) -> None:
        self._drained.clear()

    def last(self) -> Optional[Event]:
        """Most recent pending event."""
        return self._pending[-1] if self._pending else None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def history_count(self) -> int:
        return len(self._drained)
