from .signal import Signal, Connection
from .events import Event, EventType, EventQueue
from .scheduler import CancellationHandle, FrameScheduler, HandleSource, ScheduledTask
