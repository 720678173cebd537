import random

from rconsole import PacketReassembler, PacketType, RConProtocolError, encode_packet


def _stream(*packets):
    return b"".join(p.raw for p in packets)


def test_single_chunk():
    p = encode_packet(PacketType.RESPONSE_VALUE, "hello", 5)
    packets = PacketReassembler().feed(p.raw)
    assert len(packets) == 1
    assert (packets[0].id, packets[0].type, packets[0].body) == (5, 0, "hello")


def test_one_byte_chunks():
    p = encode_packet(PacketType.RESPONSE_VALUE, "There are 3 of a max of 20 players online", 9)
    r = PacketReassembler()
    out = []
    for i in range(len(p.raw)):
        out.extend(r.feed(p.raw[i:i + 1]))
        if i < len(p.raw) - 1:
            assert out == []
    assert len(out) == 1
    assert out[0].raw == p.raw
    assert r.pending == 0


def test_random_splits():
    rng = random.Random(1234)
    sent = [encode_packet(PacketType.RESPONSE_VALUE, "x" * rng.randint(0, 300), i) for i in range(20)]
    data = _stream(*sent)
    for _ in range(25):
        r = PacketReassembler()
        out = []
        pos = 0
        while pos < len(data):
            step = rng.randint(1, 64)
            out.extend(r.feed(data[pos:pos + step]))
            pos += step
        assert [(p.id, p.body) for p in out] == [(p.id, p.body) for p in sent]


def test_coalesced_packets():
    a = encode_packet(PacketType.RESPONSE_VALUE, "foo", 1)
    b = encode_packet(PacketType.RESPONSE_VALUE, "Unknown request 9", 2)
    out = PacketReassembler().feed(_stream(a, b))
    assert [p.body for p in out] == ["foo", "Unknown request 9"]


def test_partial_size_prefix_waits():
    p = encode_packet(PacketType.AUTH_RESPONSE, "", 0)
    r = PacketReassembler()
    assert r.feed(p.raw[:3]) == []
    assert r.pending == 3
    assert len(r.feed(p.raw[3:])) == 1


def test_invalid_size_resets():
    r = PacketReassembler()
    assert r.feed(b"\x02\x00\x00\x00garbage") == []
    assert isinstance(r.take_error(), RConProtocolError)
    assert r.take_error() is None
    assert r.pending == 0
    p = encode_packet(PacketType.RESPONSE_VALUE, "ok", 3)
    assert [x.body for x in r.feed(p.raw)] == ["ok"]
    assert r.take_error() is None


def test_good_packet_before_invalid_size_is_kept():
    r = PacketReassembler()
    packets = r.feed(encode_packet(PacketType.RESPONSE_VALUE, "foo", 1).raw + b"\x02\x00\x00\x00")
    assert [(p.id, p.body) for p in packets] == [(1, "foo")]
    assert "Invalid packet size 2" in str(r.take_error())
    assert r.pending == 0


def test_oversize_rejected():
    r = PacketReassembler(max_payload=64)
    assert r.feed(encode_packet(PacketType.RESPONSE_VALUE, "y" * 100, 1).raw) == []
    assert isinstance(r.take_error(), RConProtocolError)
