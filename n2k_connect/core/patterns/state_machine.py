from enum import Enum
from typing import Dict, Set
import logging

class ConnectionState(Enum):
    DISCONNECTED  = "disconnected"
    CONNECTING    = "connecting"
    CONNECTED     = "connected"
    DISCONNECTING = "disconnecting"

class ConnectionStateMachine:
    """Tracks the lifecycle of the manager's active transport."""

    def __init__(self, initial: ConnectionState = ConnectionState.DISCONNECTED):
        self._state = initial
        self.logger = logging.getLogger(self.__class__.__name__)
        self._trans: Dict[ConnectionState, Set[ConnectionState]] = {
            ConnectionState.DISCONNECTED:  {ConnectionState.CONNECTING},
            ConnectionState.CONNECTING:    {ConnectionState.CONNECTED, ConnectionState.DISCONNECTING,
                                            ConnectionState.DISCONNECTED},
            ConnectionState.CONNECTED:     {ConnectionState.DISCONNECTING, ConnectionState.DISCONNECTED},
            ConnectionState.DISCONNECTING: {ConnectionState.DISCONNECTED},
        }

    @property
    def state(self) -> ConnectionState: return self._state

    def can(self, nxt: ConnectionState) -> bool: return nxt in self._trans[self._state]

    def transition_to(self, nxt: ConnectionState) -> bool:
        if nxt is self._state:
            return True
        if self.can(nxt):
            self.logger.debug(f"State transition: {self._state.name} -> {nxt.name}")
            self._state = nxt
            return True
        self.logger.warning(f"Invalid state transition: {self._state.name} -> {nxt.name}")
        return False

    def is_active(self) -> bool:
        """Connecting or Connected."""
        return self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED)
