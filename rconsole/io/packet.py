"""
RCON wire-level packet codec.

This module implements the framing of RCON packets.

Terms:
- Packet = One framed message: [int32 size][int32 id][int32 type][body][0x00][0x00]
- Payload = Everything after the size field (id + type + body + 2 NUL bytes)
- Sentinel = An empty packet of an unused type, sent after every command so the
  server's "Unknown request" reply marks the end of a multi-packet response

Example usage:
ids = IdGenerator()
packet = encode_packet(PacketType.EXECCOMMAND, "list", ids.next())
writer.write(packet.raw)
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from ..exceptions import RConProtocolError

# Constants
class PacketConst:
    """Constants for RCON packet framing"""
    HEADER = struct.Struct("<ii")       # id, type
    SIZE = struct.Struct("<i")          # size prefix
    SIZE_LEN = 4
    HEADER_LEN = 8
    TERMINATOR = b"\x00\x00"
    MIN_PAYLOAD = 10                    # id + type + 2 NUL bytes
    MAX_PAYLOAD = 1024 * 1024           # anything bigger is a desynced stream
    MAX_ID = 2147483647                 # signed int32 max
    AUTH_FAILED_ID = -1
    SENTINEL_RESPONSE = "Unknown request 9"
    ENCODING = "utf-8"

class PacketType(IntEnum):
    """Packet type field values"""
    RESPONSE_VALUE = 0  # server -> client, response fragment
    EXECCOMMAND = 2     # client -> server
    AUTH_RESPONSE = 2   # server -> client, shares its value with EXECCOMMAND
    AUTH = 3            # client -> server, body is the password
    SENTINEL = 9        # client -> server, unused type that provokes "Unknown request 9"

@dataclass
class Packet:
    """Represents a single RCON packet"""
    id: int
    type: int
    body: str = ""
    size: Optional[int] = None
    raw: Optional[bytes] = None

    def __post_init__(self):
        if self.size is None:
            self.size = PacketConst.MIN_PAYLOAD + len(self.body.encode(PacketConst.ENCODING))

    def to_bytes(self) -> bytes:
        """Convert packet to wire format"""
        body = self.body.encode(PacketConst.ENCODING)
        self.size = PacketConst.MIN_PAYLOAD + len(body)
        self.raw = (PacketConst.SIZE.pack(self.size)
                    + PacketConst.HEADER.pack(self.id, self.type)
                    + body
                    + PacketConst.TERMINATOR)
        return self.raw


def encode_packet(packet_type: int, body: str | bytes, packet_id: int) -> Packet:
    """Build a packet and serialise it. The wire bytes are kept on packet.raw"""
    if isinstance(body, bytes):
        body = body.decode(PacketConst.ENCODING)
    packet = Packet(id=packet_id, type=int(packet_type), body=body)
    packet.to_bytes()
    return packet


def decode_header(payload: bytes) -> tuple[int, int]:
    """Read (id, type) from a size-stripped payload"""
    if len(payload) < PacketConst.HEADER_LEN:
        raise RConProtocolError(f"Payload too short for header: {len(payload)} bytes")
    return PacketConst.HEADER.unpack_from(payload, 0)


def decode_body(payload: bytes) -> str:
    """Decode the body of a size-stripped payload, excluding the two trailing NUL bytes"""
    return payload[PacketConst.HEADER_LEN:-2].decode(PacketConst.ENCODING, errors="replace")


def decode_packet(payload: bytes) -> Packet:
    if len(payload) < PacketConst.MIN_PAYLOAD:
        raise RConProtocolError(f"Packet payload too short: {len(payload)} bytes")
    packet_id, packet_type = decode_header(payload)
    return Packet(
        id=packet_id,
        type=packet_type,
        body=decode_body(payload),
        size=len(payload),
        raw=PacketConst.SIZE.pack(len(payload)) + bytes(payload),
    )


class IdGenerator:
    """
    Allocates packet ids for correlation.

    Ids start at 0 and count up by one. When the counter reaches the ceiling it
    wraps back to 0, so the negative id the server uses to reject a password is
    never handed out.
    """

    def __init__(self, ceiling: int = PacketConst.MAX_ID):
        if ceiling < 1 or ceiling > PacketConst.MAX_ID:
            raise ValueError(f"Id ceiling must be between 1 and {PacketConst.MAX_ID}")
        self.ceiling = ceiling
        self._next_id: int = 0

    def next(self) -> int:
        proposed_id = self._next_id
        self._next_id = proposed_id + 1
        if self._next_id >= self.ceiling:
            self._next_id = 0
        return proposed_id
