"""Mesh network-on-chip packets and the reference router model."""

from __future__ import annotations

import dataclasses
import enum
import logging
import threading
import time

from . import memmap
from .address import AddressSpace, get_dmem_id, get_tile_id

log = logging.getLogger(__name__)

MAX_DESTINATIONS = 16
PAYLOAD_SIZE = memmap.NOC_LINK_WIDTH_BITS // 8
DEFAULT_DELAY_PER_BYTE = 10e-6  # 10 microseconds per byte


class PacketType(enum.IntEnum):
    READ_REQ = 0
    READ_RESP = 1
    WRITE_REQ = 2
    WRITE_ACK = 3
    DMA_TRANSFER = 4


def xy_hops(src_x: int, src_y: int, dst_x: int, dst_y: int) -> int:
    """Number of hops of dimension-ordered (XY) routing between two nodes."""
    return abs(dst_x - src_x) + abs(dst_y - src_y)


def destination_lock_index(dst_addr: int) -> int | None:
    """Arbitration slot guarding ``dst_addr``.

    Tiles 0-7 use slots 0-7 and DMEM modules 0-7 use slots 8-15. Any other
    address needs no arbitration and yields None.
    """
    tile = get_tile_id(dst_addr)
    if tile is not None and 0 <= tile < 8:
        return tile
    dmem = get_dmem_id(dst_addr)
    if dmem is not None and 0 <= dmem < 8:
        return 8 + dmem
    return None


def _check_byte(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} {value} does not fit in a byte")


@dataclasses.dataclass
class PacketHeader:
    """Header of a NoC packet."""

    dest_x: int = 0
    dest_y: int = 0
    src_x: int = 0
    src_y: int = 0
    kind: PacketType = PacketType.READ_REQ
    length: int = 0
    hop_count: int = 0
    src_addr: int = 0
    dst_addr: int = 0

    def __post_init__(self) -> None:
        for name in ("dest_x", "dest_y", "src_x", "src_y", "hop_count"):
            _check_byte(name, getattr(self, name))
        if not 0 <= self.length <= 0xFFFF:
            raise ValueError(f"length {self.length} does not fit in 16 bits")
        self.kind = PacketType(self.kind)

    @property
    def src_node(self) -> int:
        return self.src_y * memmap.MESH_COLUMNS + self.src_x

    @property
    def dst_node(self) -> int:
        return self.dest_y * memmap.MESH_COLUMNS + self.dest_x

    @property
    def hops(self) -> int:
        return xy_hops(self.src_x, self.src_y, self.dest_x, self.dest_y)


@dataclasses.dataclass
class NocPacket:
    """A single-flit packet: header plus one link-width payload."""

    hdr: PacketHeader = dataclasses.field(default_factory=PacketHeader)
    payload: bytes = bytes(PAYLOAD_SIZE)

    def __post_init__(self) -> None:
        if len(self.payload) != PAYLOAD_SIZE:
            raise ValueError(
                f"payload must be {PAYLOAD_SIZE} bytes, got {len(self.payload)}"
            )


class MeshRouter:
    """Blocking reference router that carries DMA packets between memories.

    Packets headed for the same tile or DMEM are serialised by per-destination
    arbitration; the winner holds the destination for a time proportional to
    the packet length while its data is copied.
    """

    def __init__(self, memory: AddressSpace,
                 delay_per_byte: float = DEFAULT_DELAY_PER_BYTE) -> None:
        if delay_per_byte < 0:
            raise ValueError("delay_per_byte must not be negative")
        self._memory = memory
        self._delay = delay_per_byte
        self._locks = [threading.Lock() for _ in range(MAX_DESTINATIONS)]
        self._counters = [0] * MAX_DESTINATIONS

    def _copy(self, hdr: PacketHeader) -> None:
        data = self._memory.read(hdr.src_addr, hdr.length)
        self._memory.write(hdr.dst_addr, data)

    def send(self, packet: NocPacket) -> int:
        """Route ``packet`` and carry out its transfer.

        Returns the number of bytes moved: zero for packets that carry no
        DMA transfer, whose addresses are zero or unmapped, or whose length
        is zero.
        """
        hdr = packet.hdr
        log.debug("packet node %d -> node %d, %d hops",
                  hdr.src_node, hdr.dst_node, hdr.hops)
        if hdr.kind is not PacketType.DMA_TRANSFER or not hdr.src_addr or not hdr.dst_addr:
            return 0
        if not (self._memory.contains(hdr.src_addr)
                and self._memory.contains(hdr.dst_addr)) or hdr.length == 0:
            return 0

        lock_index = destination_lock_index(hdr.dst_addr)
        if lock_index is None:
            self._copy(hdr)
            return hdr.length

        log.debug("node %d requests arbitration for destination %d",
                  hdr.src_node, lock_index)
        start = time.monotonic()
        with self._locks[lock_index]:
            won = time.monotonic()
            self._counters[lock_index] += 1
            log.debug("node %d won destination %d (access #%d)",
                      hdr.src_node, lock_index, self._counters[lock_index])
            if self._delay:
                time.sleep(hdr.length * self._delay)
            self._copy(hdr)
            end = time.monotonic()
        log.debug("node %d released destination %d (waited %.0f us, total %.0f us)",
                  hdr.src_node, lock_index, (won - start) * 1e6, (end - start) * 1e6)
        return hdr.length

    def access_count(self, lock_index: int) -> int:
        """How many transfers have won arbitration for ``lock_index``."""
        if not 0 <= lock_index < MAX_DESTINATIONS:
            raise ValueError(
                f"lock index {lock_index} out of range 0..{MAX_DESTINATIONS - 1}"
            )
        with self._locks[lock_index]:
            return self._counters[lock_index]