"""
Connection status tracking for voice sessions.

Connection lifecycle is tracked separately from the controller phase.
connection_status: DOWN | UP

This is pure data owned by SessionGateway, not by controller state.
"""
from enum import Enum

class ConnectionStatus(Enum):
    """
    Connection lifecycle status.

    Separate from and independent of the controller Phase.
    IDLE can occur with any ConnectionStatus.
    """
    DOWN = "DOWN"  # Not connected
    UP = "UP"      # Active WebSocket connection
