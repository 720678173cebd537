"""
RCON API layer.

This module contains the protocol state machine and the models it works with:
- RConProtocol - Packet classification, auth results, response stitching
- CorrelationTable - Pending command futures keyed by packet id
- RConConfig - Connection configuration
"""

from .protocol import RConProtocol, CorrelationTable
from .models import RConConfig, TransportFactory
from .types import TransportKind, ConnectionState, Const

__all__ = [
    "RConProtocol",
    "CorrelationTable",
    "RConConfig",
    "TransportFactory",
    "TransportKind",
    "ConnectionState",
    "Const",
]
