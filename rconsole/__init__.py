"""
rconsole Python Library

An asyncio client for the RCON remote console protocol.

This library provides three distinct layers of abstraction:

1. **io**: Wire-level protocol implementation (packet framing, stream reassembly)
2. **api**: RCON protocol state machine (auth handshake, response stitching)
3. **interface**: Connection lifecycle (connect, commands, reconnect)

Example usage:
    import rconsole

    async with rconsole.RCon({"host": "127.0.0.1", "port": 25575, "password": "secret"}) as rcon:
        await rcon.wait_until_ready()
        print(await rcon.run_command("list"))
"""

# High-level interface (recommended for most users)
from .interface import RCon

# API-level models
from .api import RConProtocol, CorrelationTable, RConConfig, TransportKind, ConnectionState

# Low-level models
from .io import Packet, PacketType, PacketConst, IdGenerator, PacketReassembler, RConStreamProtocol, encode_packet, decode_packet

# Exceptions
from .exceptions import RConError, RConTimeoutError, RConProtocolError, RConAuthError, RConConnectionError, RConConfigurationError

# Utilities
from .utils import run_with_keyboard_interrupt

__version__ = "0.1.0"

# Public API - these are the main classes users should import
__all__ = [
    # High-level interface (recommended)
    "RCon",

    # API-level models (for advanced users)
    "RConProtocol",
    "CorrelationTable",
    "RConConfig",
    "TransportKind",
    "ConnectionState",

    # Low-level models (for advanced users)
    "Packet",
    "PacketType",
    "PacketConst",
    "IdGenerator",
    "PacketReassembler",
    "RConStreamProtocol",
    "encode_packet",
    "decode_packet",

    # Exceptions
    "RConError",
    "RConTimeoutError",
    "RConProtocolError",
    "RConAuthError",
    "RConConnectionError",
    "RConConfigurationError",

    # Utilities
    "run_with_keyboard_interrupt",
]
