import asyncio

import pytest

from rconsole import PacketReassembler, encode_packet


class FakeTransport(asyncio.Transport):
    """In-memory transport: records what the client writes, lets tests play the server"""

    def __init__(self, protocol):
        super().__init__()
        self.protocol = protocol
        self.written = bytearray()
        self.closed = False

    def write(self, data):
        self.written.extend(data)

    def is_closing(self):
        return self.closed

    def close(self):
        if not self.closed:
            self.closed = True
            asyncio.get_running_loop().call_soon(self.protocol.connection_lost, None)

    def drop(self, exc=None):
        """Simulate the server side going away"""
        self.closed = True
        self.protocol.connection_lost(exc)

    def sent_packets(self):
        return PacketReassembler().feed(bytes(self.written))

    def reply(self, packet_type, body, packet_id):
        self.protocol.data_received(encode_packet(packet_type, body, packet_id).raw)


class FakeFactory:
    """Custom transport factory handing out FakeTransports"""

    def __init__(self):
        self.transports: list[FakeTransport] = []
        self.fail_with = None

    def __call__(self, protocol_factory):
        if self.fail_with:
            raise self.fail_with
        protocol = protocol_factory()
        transport = FakeTransport(protocol)
        protocol.connection_made(transport)
        self.transports.append(transport)
        return transport, protocol

    @property
    def transport(self) -> FakeTransport:
        return self.transports[-1]


@pytest.fixture
def factory():
    return FakeFactory()


@pytest.fixture
def config(factory):
    return {"transport": "custom", "factory": factory, "password": "secret"}
