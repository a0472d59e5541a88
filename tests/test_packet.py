import pytest

from overlayroute.packet import (
    Packet,
    calc_relative_offsets,
    get_request_positions,
    ip_to_uint32,
    is_common_backward_path,
    new_merged_packet,
    new_packet,
    uint32_to_ip,
)

HOPS = ["10.0.0.1", "10.0.0.2", "10.0.0.3"]


def test_new_packet_defaults():
    packet = new_packet(HOPS, 7)
    assert packet.length == 50
    assert packet.timestamp == 1617916800
    assert packet.packet_count == 1
    assert packet.packet_ids == [7]
    assert [uint32_to_ip(h) for h in packet.hop_list] == HOPS


def test_pack_sets_header_len_and_length():
    packet = new_packet(HOPS, 7)
    data = packet.pack()
    assert len(data) == packet.header_len
    assert packet.header_len % 4 == 0
    assert packet.length == 50 + packet.header_len


def test_pack_unpack_round_trip():
    packet = new_packet(HOPS, 42)
    data = packet.pack()
    assert Packet.unpack(data) == packet


def test_unpack_ignores_body():
    packet = new_packet(HOPS, 3)
    data = packet.pack()
    assert Packet.unpack(data + b"payload bytes") == packet


def test_merged_packet_round_trip():
    packet = new_merged_packet([1, 2, 3], [10, 20, 30], [ip_to_uint32(h) for h in HOPS], 2)
    data = packet.pack()
    decoded = Packet.unpack(data)
    assert decoded == packet
    assert decoded.offsets == [10, 20]
    assert decoded.packet_ids == [1, 2, 3]
    assert decoded.length == 60 + decoded.header_len


def test_pack_rejects_packet_id_mismatch():
    packet = Packet(packet_count=2, packet_ids=[1], offsets=[5])
    with pytest.raises(ValueError):
        packet.pack()


def test_pack_rejects_offset_mismatch():
    packet = Packet(packet_count=2, packet_ids=[1, 2], offsets=[])
    with pytest.raises(ValueError):
        packet.pack()


def test_unpack_truncated_raises():
    data = new_packet(HOPS, 1).pack()
    with pytest.raises(ValueError):
        Packet.unpack(data[:10])


def test_calc_relative_offsets_clamps():
    assert calc_relative_offsets([100, 70000, 5]) == [100, 65535]
    assert calc_relative_offsets([9]) == []
    assert calc_relative_offsets([]) == []


def test_request_positions_follow_sizes():
    sizes = [10, 20, 30]
    packet = new_merged_packet([1, 2, 3], sizes, [], 1)
    positions = get_request_positions(packet, sum(sizes))
    assert positions[0] == 0
    assert positions[-1] == sum(sizes)
    assert [b - a for a, b in zip(positions, positions[1:])] == sizes


def test_common_backward_path():
    assert is_common_backward_path([1, 2, 3], [1, 2, 4])
    assert not is_common_backward_path([1, 2, 3], [1, 3, 3])
    assert not is_common_backward_path([1, 2], [1, 2, 3])
    assert not is_common_backward_path([], [1])


def test_ip_conversion():
    assert ip_to_uint32("1.2.3.4") == 0x01020304
    assert uint32_to_ip(ip_to_uint32("192.168.10.20")) == "192.168.10.20"


def test_ip_conversion_errors():
    with pytest.raises(ValueError, match="invalid IP address"):
        ip_to_uint32("not-an-ip")
    with pytest.raises(ValueError, match="not an IPv4 address"):
        ip_to_uint32("2001:db8::1")


def test_next_hop_progression():
    packet = new_packet(HOPS, 1)
    assert packet.next_hop() == (HOPS[1], False)
    packet.increment_hop_counts()
    assert packet.next_hop() == (HOPS[2], True)
    packet.increment_hop_counts()
    assert packet.next_hop() == (None, False)
    packet.increment_hop_counts()
    with pytest.raises(ValueError):
        packet.next_hop()


def test_previous_hop():
    packet = new_packet(HOPS, 1)
    assert packet.previous_hop() == (None, False)
    packet.increment_hop_counts()
    assert packet.previous_hop() == (HOPS[0], True)
    packet.increment_hop_counts()
    assert packet.previous_hop() == (HOPS[1], True)


def test_previous_hop_zero_count():
    packet = new_packet(HOPS, 1)
    packet.decrement_hop_counts()
    assert packet.previous_hop() == (HOPS[0], True)
    empty = Packet(hop_counts=0)
    with pytest.raises(ValueError):
        empty.previous_hop()


def test_hop_counts_wrap_as_byte():
    packet = Packet(hop_counts=255)
    packet.increment_hop_counts()
    assert packet.hop_counts == 0
    packet.decrement_hop_counts()
    assert packet.hop_counts == 255