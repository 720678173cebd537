"""
RCON wire-level stream handling.

This module turns the TCP byte stream into whole packets using asyncio.
It contains PacketReassembler, which tolerates packets split across or
coalesced within reads, and RConStreamProtocol, the asyncio.Protocol that
feeds it.

Terms:
- Chunk = Whatever bytes a single read happened to deliver
- Partial packet = Bytes received so far for a packet that isn't complete yet

Example usage:
reassembler = PacketReassembler()
for chunk in chunks:
    for packet in reassembler.feed(chunk):
        print(packet.id, packet.type, packet.body)
"""

import asyncio
import logging
from typing import Callable, Optional

from .packet import Packet, PacketConst, decode_packet
from ..exceptions import RConProtocolError


class PacketReassembler:
    """
    Reconstructs complete packets from an arbitrarily chunked byte stream.

    Holds one partial packet between calls: the declared size once the 4-byte
    prefix has arrived, and the bytes buffered so far. If not enough bytes are
    available it simply returns and waits for the next feed().

    An impossible size prefix means the stream is desynchronised: the buffer is
    dropped, the packets completed before it are still returned, and the error
    is kept for take_error().
    """

    def __init__(self, max_payload: int = PacketConst.MAX_PAYLOAD):
        self.max_payload = max_payload
        self._buffer = bytearray()
        self._size: Optional[int] = None
        self._error: Optional[RConProtocolError] = None

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet part of a complete packet"""
        return len(self._buffer)

    def reset(self):
        self._buffer.clear()
        self._size = None

    def take_error(self) -> Optional[RConProtocolError]:
        """Return and clear the desync error from the last feed(), if any"""
        error, self._error = self._error, None
        return error

    def feed(self, data: bytes) -> list[Packet]:
        self._buffer.extend(data)
        packets: list[Packet] = []
        while True:
            # Size prefix
            if self._size is None:
                if len(self._buffer) < PacketConst.SIZE_LEN:
                    break
                (size,) = PacketConst.SIZE.unpack_from(self._buffer, 0)
                if size < PacketConst.MIN_PAYLOAD or size > self.max_payload:
                    self.reset()
                    self._error = RConProtocolError(f"Invalid packet size {size}")
                    break
                del self._buffer[:PacketConst.SIZE_LEN]
                self._size = size
            # Payload
            if len(self._buffer) < self._size:
                break
            payload = bytes(self._buffer[:self._size])
            del self._buffer[:self._size]
            self._size = None
            packets.append(decode_packet(payload))
        return packets


class RConStreamProtocol(asyncio.Protocol):
    """Forwards transport notifications to the connection that owns it"""

    def __init__(self,
                 packet_handler: Callable[[Packet], None],
                 error_handler: Callable[[Exception], None],
                 close_handler: Callable[["RConStreamProtocol", Optional[Exception]], None],
                 logger: Optional[logging.Logger] = None):
        self.packet_handler = packet_handler
        self.error_handler = error_handler
        self.close_handler = close_handler
        self.logger = logger or logging.getLogger(__name__)
        self.transport: Optional[asyncio.Transport] = None
        self.reassembler = PacketReassembler()

    def connection_made(self, transport):
        self.transport = transport

    def data_received(self, data):
        for packet in self.reassembler.feed(data):
            # One bad packet must not stop the ones behind it
            try:
                self.packet_handler(packet)
            except RConProtocolError as e:
                self.logger.error(f"Protocol error: {e}")
                self.error_handler(e)
        error = self.reassembler.take_error()
        if error:
            self.logger.error(f"Stream desynchronised: {error}")
            self.error_handler(error)

    def eof_received(self):
        self.logger.debug("Server closed its side of the stream")
        return False

    def connection_lost(self, exc):
        if exc:
            self.logger.error(f"Connection lost: {exc}")
        else:
            self.logger.info("Connection closed")
        if self.reassembler.pending:
            self.logger.debug(f"Discarding {self.reassembler.pending} bytes of partial packet")
        self.reassembler.reset()
        self.transport = None
        self.close_handler(self, exc)
