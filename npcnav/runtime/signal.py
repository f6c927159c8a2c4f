"""
Minimal signal/slot object used for controller and planner events.
"""
import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class Connection:
    """Handle returned by Signal.connect(); disconnect() is idempotent."""

    def __init__(self, signal: "Signal", callback: Callable[..., Any]):
        self._signal = signal
        self.callback = callback
        self.connected = True

    def disconnect(self) -> None:
        if not self.connected:
            return
        self.connected = False
        self._signal._remove(self)


class Signal:
    """
    Synchronous multicast callback list.

    Handlers run in connection order. A handler connected while the signal
    is firing runs from the next fire(); one disconnected mid-fire is skipped.
    """

    def __init__(self, name: str = "signal"):
        self.name = name
        self._connections: List[Connection] = []

    def connect(self, callback: Callable[..., Any]) -> Connection:
        connection = Connection(self, callback)
        self._connections.append(connection)
        return connection

    def once(self, callback: Callable[..., Any]) -> Connection:
        """Connect a handler that disconnects itself after the first fire."""
        def wrapper(*args: Any) -> None:
            connection.disconnect()
            callback(*args)

        connection = self.connect(wrapper)
        return connection

    def fire(self, *args: Any) -> None:
        for connection in list(self._connections):
            if connection.connected:
                connection.callback(*args)

    def disconnect_all(self) -> None:
        for connection in list(self._connections):
            connection.disconnect()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def _remove(self, connection: Connection) -> None:
        try:
            self._connections.remove(connection)
        except ValueError:
            logger.debug("Connection already removed from %s", self.name)
