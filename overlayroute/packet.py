"""Binary header of overlay packets and the hop-list helpers built on it."""

from __future__ import annotations

import ipaddress
import logging
import struct
from dataclasses import dataclass, field
from itertools import accumulate

logger = logging.getLogger(__name__)

FIXED_HEADER_LEN = 13
DEFAULT_TIMESTAMP = 1617916800
MAX_OFFSET = 65535

_FIXED = struct.Struct(">HHIBBBBB")


def _padding_for(length: int) -> int:
    return (4 - length % 4) % 4


def _expected_offsets(packet_count: int) -> int:
    return packet_count - 1 if packet_count > 1 else 0


@dataclass
class Packet:
    """Packet header: fixed fields, request offsets, packet ids and hop list."""

    length: int = 0
    header_len: int = 0
    timestamp: int = 0
    packet_type: int = 0
    priority: int = 0
    property: int = 0
    hop_counts: int = 0
    packet_count: int = 0
    offsets: list[int] = field(default_factory=list)
    padding: bytes = b""
    packet_ids: list[int] = field(default_factory=list)
    hop_list: list[int] = field(default_factory=list)

    def pack(self) -> bytes:
        """Encode the header; sets header_len and adds it to length."""
        if len(self.packet_ids) != self.packet_count:
            raise ValueError(
                f"packet id count {len(self.packet_ids)} does not match "
                f"packet count {self.packet_count}"
            )
        expected = _expected_offsets(self.packet_count)
        if len(self.offsets) != expected:
            raise ValueError(
                f"offset count {len(self.offsets)} does not match expected {expected}"
            )

        header_len = (
            FIXED_HEADER_LEN
            + len(self.offsets) * 2
            + len(self.packet_ids) * 4
            + len(self.hop_list) * 4
        )
        padding_len = _padding_for(header_len)
        self.header_len = (header_len + padding_len) & 0xFFFF
        self.length = (self.length + self.header_len) & 0xFFFF
        self.padding = bytes(padding_len)

        try:
            parts = [
                _FIXED.pack(
                    self.length,
                    self.header_len,
                    self.timestamp,
                    self.packet_type,
                    self.priority,
                    self.property,
                    self.hop_counts,
                    self.packet_count,
                ),
                struct.pack(f">{len(self.offsets)}H", *self.offsets),
                self.padding,
                struct.pack(f">{len(self.packet_ids)}I", *self.packet_ids),
                struct.pack(f">{len(self.hop_list)}I", *self.hop_list),
            ]
        except struct.error as exc:
            raise ValueError(f"header field out of range: {exc}") from exc
        return b"".join(parts)

    @classmethod
    def unpack(cls, data: bytes) -> Packet:
        """Decode a header from the start of data; trailing bytes are ignored."""
        reader = _Reader(data)
        (
            length,
            header_len,
            timestamp,
            packet_type,
            priority,
            prop,
            hop_counts,
            packet_count,
        ) = reader.read(_FIXED.format)

        offsets = list(reader.read(f">{_expected_offsets(packet_count)}H"))
        padding_size = _padding_for(FIXED_HEADER_LEN + len(offsets) * 2)
        padding = reader.take(padding_size)
        packet_ids = list(reader.read(f">{packet_count}I"))

        remaining = header_len - (
            FIXED_HEADER_LEN + len(offsets) * 2 + padding_size + len(packet_ids) * 4
        )
        hop_count = remaining // 4 if remaining > 0 else 0
        hop_list = list(reader.read(f">{hop_count}I"))

        return cls(
            length=length,
            header_len=header_len,
            timestamp=timestamp,
            packet_type=packet_type,
            priority=priority,
            property=prop,
            hop_counts=hop_counts,
            packet_count=packet_count,
            offsets=offsets,
            padding=padding,
            packet_ids=packet_ids,
            hop_list=hop_list,
        )

    def next_hop(self) -> tuple[str | None, bool]:
        """Return the next hop address and whether it is the last hop.

        The address is None when the hop list is exhausted.
        """
        self._check_hop_counts()
        logger.debug(
            "next hop lookup: hop_counts=%d, hops=%d", self.hop_counts, len(self.hop_list)
        )
        if self.hop_counts >= len(self.hop_list):
            logger.debug("no next hop")
            return None, False
        next_ip = uint32_to_ip(self.hop_list[self.hop_counts])
        is_last = self.hop_counts == len(self.hop_list) - 1
        logger.debug("next hop %s, last: %s", next_ip, is_last)
        return next_ip, is_last

    def previous_hop(self) -> tuple[str | None, bool]:
        """Return the previous hop address and whether one exists."""
        self._check_hop_counts()
        if self.hop_counts == 1:
            return None, False
        index = self.hop_counts - 2
        if index < 0 or index >= len(self.hop_list):
            if self.hop_list:
                return uint32_to_ip(self.hop_list[0]), True
            raise ValueError(
                f"previous hop index {index} out of range (hops={len(self.hop_list)})"
            )
        return uint32_to_ip(self.hop_list[index]), True

    def increment_hop_counts(self) -> None:
        self.hop_counts = (self.hop_counts + 1) & 0xFF

    def decrement_hop_counts(self) -> None:
        self.hop_counts = (self.hop_counts - 1) & 0xFF

    def _check_hop_counts(self) -> None:
        if self.hop_counts > len(self.hop_list):
            raise ValueError(
                f"hop count {self.hop_counts} exceeds the length of the hop list "
                f"{len(self.hop_list)}"
            )


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise ValueError("packet data is truncated")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def read(self, fmt: str) -> tuple[int, ...]:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))


def new_packet(hop_list: list[str], packet_id: int) -> Packet:
    """Build a single-request packet routed over the given addresses."""
    hops = [ip_to_uint32(ip) for ip in hop_list]
    return Packet(
        length=50,
        timestamp=DEFAULT_TIMESTAMP,
        packet_type=1,
        priority=0,
        property=0,
        hop_counts=1,
        packet_count=1,
        offsets=[],
        packet_ids=[packet_id],
        hop_list=hops,
    )


def new_merged_packet(
    packet_ids: list[int],
    request_sizes: list[int],
    hop_list: list[int],
    packet_type: int,
) -> Packet:
    """Build a packet carrying several requests back to back."""
    return Packet(
        length=sum(request_sizes) & 0xFFFF,
        timestamp=DEFAULT_TIMESTAMP,
        packet_type=packet_type,
        priority=0,
        property=0,
        hop_counts=1,
        packet_count=len(packet_ids) & 0xFF,
        offsets=calc_relative_offsets(request_sizes),
        packet_ids=list(packet_ids),
        hop_list=list(hop_list),
    )


def calc_relative_offsets(body_sizes: list[int]) -> list[int]:
    """Offsets between consecutive request bodies, clamped to 16 bits."""
    offsets = []
    for size in body_sizes[:-1]:
        if size > MAX_OFFSET:
            logger.warning("body size %d exceeds 16 bits, clamped to %d", size, MAX_OFFSET)
            size = MAX_OFFSET
        offsets.append(size & 0xFFFF)
    return offsets


def get_request_positions(packet: Packet, body_length: int) -> list[int]:
    """Start positions of every request in the body, plus the body length."""
    count = packet.packet_count
    starts = list(accumulate(packet.offsets[: max(count - 1, 0)], initial=0))
    return starts + [body_length] if count > 0 else [body_length]


def is_common_backward_path(hop_list1: list[int], hop_list2: list[int]) -> bool:
    """True when both hop lists agree on every hop except the last."""
    if not hop_list1 or not hop_list2:
        return False
    return hop_list1[:-1] == hop_list2[:-1]


def ip_to_uint32(ip: str) -> int:
    """Convert a dotted IPv4 address to its 32-bit big-endian value."""
    try:
        address = ipaddress.ip_address(ip)
    except ValueError as exc:
        raise ValueError("invalid IP address") from exc
    if isinstance(address, ipaddress.IPv6Address):
        mapped = address.ipv4_mapped
        if mapped is None:
            raise ValueError("not an IPv4 address")
        address = mapped
    return int(address)


def uint32_to_ip(value: int) -> str:
    """Convert a 32-bit value to a dotted IPv4 address."""
    return str(ipaddress.IPv4Address(value & 0xFFFFFFFF))