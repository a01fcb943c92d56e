from .state_machine import ConnectionState, ConnectionStateMachine
from .observer import (
    EventKind,
    ConnectionEvent,
    ConnectionObserver,
    EventSubscription,
    AsyncEventBus,
)
