"""
API-level type definitions.

This module contains types and enums that belong to the API layer:
- Transport kinds accepted by the configuration
- Connection lifecycle states
- Constants used by the API layer
"""

from enum import Enum


class TransportKind(Enum):
    DIRECT = "direct"   # TCP dial to host:port
    CUSTOM = "custom"   # Caller supplied transport factory


class ConnectionState(Enum):
    DISCONNECTED = 0
    CONNECTING = 1
    AUTHENTICATING = 2
    READY = 3
    RECONNECTING = 4


class Const:

    # Delay between a lost connection and the next connect attempt, in seconds
    RECONNECT_DELAY = 0.3

    # Timeout used by the console front-end when waiting for auth, in seconds
    READY_TIMEOUT = 10.0

    # Default RCON port (Minecraft)
    DEFAULT_PORT = 25575
