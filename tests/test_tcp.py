import asyncio

import pytest

from rconsole import PacketReassembler, PacketType, RCon, RConAuthError, RConConnectionError, encode_packet

PASSWORD = "hunter2"


async def _handle(reader, writer):
    """Tiny RCON server: echoes ids, splits every response across writes"""
    reassembler = PacketReassembler()
    while data := await reader.read(4096):
        for packet in reassembler.feed(data):
            match packet.type:
                case PacketType.AUTH:
                    packet_id = packet.id if packet.body == PASSWORD else -1
                    writer.write(encode_packet(PacketType.AUTH_RESPONSE, "", packet_id).raw)
                case PacketType.EXECCOMMAND:
                    raw = (encode_packet(PacketType.RESPONSE_VALUE, "Available: ", packet.id).raw
                           + encode_packet(PacketType.RESPONSE_VALUE, f"{packet.body}, bar", packet.id).raw)
                    writer.write(raw[:5])
                    await writer.drain()
                    writer.write(raw[5:])
                case _:
                    writer.write(encode_packet(PacketType.RESPONSE_VALUE, f"Unknown request {packet.type:x}", packet.id).raw)
            await writer.drain()
    writer.close()


async def _server():
    server = await asyncio.start_server(_handle, "127.0.0.1", 0)
    return server, server.sockets[0].getsockname()[1]


@pytest.mark.asyncio
async def test_direct_connection_end_to_end():
    server, port = await _server()
    async with server:
        async with RCon({"host": "127.0.0.1", "port": port, "password": PASSWORD}) as rcon:
            await rcon.wait_until_ready(timeout=2)
            assert await rcon.run_command("foo", timeout=2) == "Available: foo, bar"
            assert await rcon.run_command("baz", timeout=2) == "Available: baz, bar"


@pytest.mark.asyncio
async def test_direct_connection_wrong_password():
    server, port = await _server()
    async with server:
        rcon = RCon({"host": "127.0.0.1", "port": port, "password": "wrong"})
        auth = []
        rcon.on_auth = auth.append
        await rcon.connect()
        with pytest.raises(RConAuthError):
            await rcon.wait_until_ready(timeout=2)
        assert auth == [False]
        assert rcon.config.reconnect is False
        await rcon.close()


@pytest.mark.asyncio
async def test_direct_connection_refused():
    server, port = await _server()
    server.close()
    await server.wait_closed()

    rcon = RCon({"host": "127.0.0.1", "port": port, "password": PASSWORD, "reconnect": False})
    errors = []
    rcon.on_error = errors.append
    await rcon.connect()
    assert len(errors) == 1
    assert isinstance(errors[0], RConConnectionError)
    assert errors[0].refused
