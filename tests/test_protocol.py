import asyncio

import pytest

from rconsole import CorrelationTable, Packet, PacketType, RConProtocol, RConProtocolError


class Recorder:
    def __init__(self):
        self.auth = []

    def __call__(self, success):
        self.auth.append(success)


def _response(packet_id, body):
    return Packet(id=packet_id, type=PacketType.RESPONSE_VALUE, body=body)


@pytest.mark.asyncio
async def test_multi_packet_stitching():
    proto = RConProtocol(Recorder())
    fut = proto.correlations.register(4)
    proto.handle_packet(_response(4, "foo"))
    proto.handle_packet(_response(4, "bar"))
    assert not fut.done()
    proto.handle_packet(_response(5, "Unknown request 9"))
    assert fut.result() == "foobar"
    assert proto.buffered == []
    assert 4 not in proto.correlations


@pytest.mark.asyncio
async def test_resolves_by_first_buffered_id():
    proto = RConProtocol(Recorder())
    fut = proto.correlations.register(10)
    proto.handle_packet(_response(10, "a"))
    proto.handle_packet(_response(11, "b"))
    proto.handle_packet(_response(12, "Unknown request 9"))
    assert fut.result() == "ab"


@pytest.mark.asyncio
async def test_sentinel_reply_on_empty_buffer_is_buffered():
    proto = RConProtocol(Recorder())
    proto.handle_packet(_response(3, "Unknown request 9"))
    assert [p.body for p in proto.buffered] == ["Unknown request 9"]
    fut = proto.correlations.register(3)
    proto.handle_packet(_response(4, "Unknown request 9"))
    assert fut.result() == "Unknown request 9"


def test_auth_success_and_failure():
    rec = Recorder()
    proto = RConProtocol(rec)
    proto.handle_packet(Packet(id=5, type=PacketType.AUTH_RESPONSE))
    proto.handle_packet(Packet(id=-1, type=PacketType.AUTH_RESPONSE))
    assert rec.auth == [True, False]


def test_auth_clears_buffer():
    proto = RConProtocol(Recorder())
    proto.handle_packet(_response(0, ""))
    proto.handle_packet(Packet(id=0, type=PacketType.AUTH_RESPONSE))
    assert proto.buffered == []


def test_unknown_type_raises():
    proto = RConProtocol(Recorder())
    with pytest.raises(RConProtocolError):
        proto.handle_packet(Packet(id=1, type=99, body="?"))


def test_build_command_ids():
    proto = RConProtocol(Recorder())
    auth = proto.build_auth("pw")
    packet, sentinel = proto.build_command("help")
    assert (auth.id, auth.type, auth.body) == (0, PacketType.AUTH, "pw")
    assert (packet.id, packet.type, packet.body) == (1, PacketType.EXECCOMMAND, "help")
    assert (sentinel.id, sentinel.type, sentinel.body) == (2, PacketType.SENTINEL, "")


@pytest.mark.asyncio
async def test_correlation_table():
    table = CorrelationTable()
    a = table.register(1)
    b = table.register(2)
    with pytest.raises(RuntimeError):
        table.register(1)
    assert table.resolve(1, "ok")
    assert a.result() == "ok"
    assert not table.resolve(1, "again")
    table.fail_all(ConnectionError("gone"))
    with pytest.raises(ConnectionError):
        b.result()
    assert len(table) == 0


@pytest.mark.asyncio
async def test_correlation_discard_cancels():
    table = CorrelationTable()
    fut = table.register(7)
    table.discard(7)
    assert fut.cancelled()
    assert 7 not in table
    await asyncio.sleep(0)
