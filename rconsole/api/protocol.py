import asyncio
import logging
from typing import Callable, Optional

from ..io import Packet, PacketType, PacketConst, IdGenerator, encode_packet
from ..exceptions import RConProtocolError

"""
===================================================================================
This module implements the RCON request/response protocol on top of rconsole.io.
===================================================================================

RCON never says when a multi-packet response is finished. Every command is
therefore followed by a SENTINEL packet of an unused type; the server answers
it with a RESPONSE_VALUE whose body is "Unknown request 9", and everything
buffered before that reply belongs to the command.
"""


class CorrelationTable:
    """Pending command futures keyed by the id of the EXECCOMMAND packet"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._pending: dict[int, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, packet_id: int) -> bool:
        return packet_id in self._pending

    def register(self, packet_id: int) -> asyncio.Future:
        if packet_id in self._pending:
            raise RuntimeError(f"id {packet_id} already pending, which shouldn't be possible because we just allocated it")
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[packet_id] = fut
        return fut

    def resolve(self, packet_id: int, result: str) -> bool:
        fut = self._pending.pop(packet_id, None)
        if fut is None:
            self.logger.warning(f"Response for id {packet_id} has no pending command, dropping it")
            return False
        if not fut.done():
            fut.set_result(result)
        return True

    def discard(self, packet_id: int):
        fut = self._pending.pop(packet_id, None)
        if fut and not fut.done():
            fut.cancel()

    def fail_all(self, exc: Exception):
        pending, self._pending = self._pending, {}
        for fut in pending.values():
            if not fut.done():
                fut.set_exception(exc)
        if pending:
            self.logger.debug(f"Failed {len(pending)} pending command(s): {exc}")


class RConProtocol:

    def __init__(self,
                 auth_handler: Callable[[bool], None],
                 logger: Optional[logging.Logger] = None,
                 id_ceiling: int = PacketConst.MAX_ID):
        self.auth_handler = auth_handler
        self.logger = logger or logging.getLogger(__name__)
        self.ids = IdGenerator(ceiling=id_ceiling)
        self.correlations = CorrelationTable(logger=self.logger)
        # Response fragments waiting for the sentinel reply
        self.buffered: list[Packet] = []

    def reset(self):
        """Forget any half-received response"""
        self.buffered = []

    # ============================
    # PACKET BUILDING
    # ============================

    def build_auth(self, password: str) -> Packet:
        return encode_packet(PacketType.AUTH, password, self.ids.next())

    def build_command(self, command: str | bytes) -> tuple[Packet, Packet]:
        """Build the EXECCOMMAND packet and the SENTINEL that follows it"""
        packet = encode_packet(PacketType.EXECCOMMAND, command, self.ids.next())
        sentinel = encode_packet(PacketType.SENTINEL, "", self.ids.next())
        return packet, sentinel

    # ============================
    # PACKET HANDLING
    # ============================

    def handle_packet(self, packet: Packet):
        match packet.type:
            case PacketType.RESPONSE_VALUE:
                self._handle_response(packet)
            case PacketType.AUTH_RESPONSE:
                self.buffered = []
                success = packet.id != PacketConst.AUTH_FAILED_ID
                self.logger.debug(f"Auth response id {packet.id}: {'accepted' if success else 'rejected'}")
                self.auth_handler(success)
            case _:
                raise RConProtocolError(f"Received unknown packet type {packet.type} (id {packet.id})")

    def _handle_response(self, packet: Packet):
        if packet.body == PacketConst.SENTINEL_RESPONSE and self.buffered:
            response = "".join(p.body for p in self.buffered)
            packet_id = self.buffered[0].id
            self.logger.debug(f"Response for id {packet_id} complete: {len(self.buffered)} packet(s), {len(response)} chars")
            self.buffered = []
            self.correlations.resolve(packet_id, response)
        else:
            # A sentinel reply on an empty buffer is kept as data too
            self.buffered.append(packet)
