"""
Wire-level protocol implementation.

This module contains the lowest-level communication components:
- Packet, PacketType - Packet model and type values
- encode_packet, decode_packet - Message framing and parsing
- IdGenerator - Packet id allocation
- PacketReassembler, RConStreamProtocol - TCP stream reassembly
"""

from .packet import Packet, PacketType, PacketConst, IdGenerator, encode_packet, decode_packet, decode_header, decode_body
from .stream import PacketReassembler, RConStreamProtocol

__all__ = [
    "Packet",
    "PacketType",
    "PacketConst",
    "IdGenerator",
    "encode_packet",
    "decode_packet",
    "decode_header",
    "decode_body",
    "PacketReassembler",
    "RConStreamProtocol",
]
