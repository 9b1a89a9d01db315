"""Address decoding and the simulated physical address space."""

from __future__ import annotations

import bisect
import enum
import threading

from . import memmap


class AddressError(Exception):
    """Raised when an address does not map to simulated memory."""


class AddressRegion(enum.Enum):
    TILE_DLM64 = enum.auto()
    TILE_DLM1_512 = enum.auto()
    TILE_DMA_REG = enum.auto()
    DMEM_512 = enum.auto()
    C0_MASTER = enum.auto()
    PLIC_C0C1 = enum.auto()
    PLIC_NXY = enum.auto()
    INVALID = enum.auto()


_TILE_SUBREGIONS = (
    (memmap.DLM_64_OFFSET, memmap.DLM_64_SIZE, AddressRegion.TILE_DLM64),
    (memmap.DLM1_512_OFFSET, memmap.DLM1_512_SIZE, AddressRegion.TILE_DLM1_512),
    (memmap.DMA_REG_OFFSET, memmap.DMA_REG_SIZE, AddressRegion.TILE_DMA_REG),
)


def get_tile_id(address: int) -> int | None:
    """Tile whose address window holds ``address``, or None."""
    offset = address - memmap.TILE0_BASE
    if 0 <= offset < memmap.NUM_TILES * memmap.TILE_STRIDE:
        return offset // memmap.TILE_STRIDE
    return None


def get_dmem_id(address: int) -> int | None:
    """DMEM module that holds ``address``, or None."""
    for dmem, base in enumerate(memmap.DMEM_BASES):
        if base <= address < base + memmap.DMEM_512_SIZE:
            return dmem
    return None


def get_address_region(address: int) -> AddressRegion:
    """Classify an address into the region of the memory map it falls in."""
    tile = get_tile_id(address)
    if tile is not None:
        offset = address - memmap.tile_base(tile)
        for start, size, region in _TILE_SUBREGIONS:
            if start <= offset < start + size:
                return region
        return AddressRegion.INVALID
    if get_dmem_id(address) is not None:
        return AddressRegion.DMEM_512
    if memmap.C0_MASTER_BASE <= address < memmap.C0_MASTER_BASE + memmap.C0_MASTER_SIZE:
        return AddressRegion.C0_MASTER
    return AddressRegion.INVALID


def validate_address(address: int, size: int) -> bool:
    """True if ``size`` bytes from ``address`` lie in one valid region."""
    if size <= 0:
        return False
    region = get_address_region(address)
    if region is AddressRegion.INVALID:
        return False
    return get_address_region(address + size - 1) is region


class AddressSpace:
    """Maps physical address ranges onto writable byte buffers."""

    def __init__(self) -> None:
        self._bases: list[int] = []
        self._buffers: list[memoryview] = []
        self._lock = threading.Lock()

    def map(self, base: int, buffer) -> None:
        """Back the range starting at ``base`` with ``buffer``."""
        view = memoryview(buffer).cast("B")
        if view.readonly:
            raise AddressError("backing buffer must be writable")
        if len(view) == 0:
            raise AddressError("backing buffer must not be empty")
        end = base + len(view)
        with self._lock:
            index = bisect.bisect_right(self._bases, base)
            if index > 0:
                prev_base = self._bases[index - 1]
                if prev_base + len(self._buffers[index - 1]) > base:
                    raise AddressError(f"range at 0x{base:x} overlaps 0x{prev_base:x}")
            if index < len(self._bases) and self._bases[index] < end:
                raise AddressError(
                    f"range at 0x{base:x} overlaps 0x{self._bases[index]:x}"
                )
            self._bases.insert(index, base)
            self._buffers.insert(index, view)

    def _locate(self, address: int) -> tuple[memoryview, int] | None:
        index = bisect.bisect_right(self._bases, address) - 1
        if index < 0:
            return None
        buffer = self._buffers[index]
        offset = address - self._bases[index]
        if offset >= len(buffer):
            return None
        return buffer, offset

    def contains(self, address: int) -> bool:
        """True if ``address`` is backed by mapped memory."""
        return self._locate(address) is not None

    def view(self, address: int, size: int) -> memoryview:
        """Writable view of ``size`` bytes of mapped memory at ``address``."""
        if size < 0:
            raise AddressError(f"negative size {size}")
        found = self._locate(address)
        if found is None:
            raise AddressError(f"address 0x{address:x} is not mapped")
        buffer, offset = found
        if offset + size > len(buffer):
            raise AddressError(
                f"{size} bytes at 0x{address:x} run past the end of the mapping"
            )
        return buffer[offset:offset + size]

    def read(self, address: int, size: int) -> bytes:
        """Copy ``size`` bytes out of mapped memory."""
        return bytes(self.view(address, size))

    def write(self, address: int, data) -> None:
        """Copy ``data`` into mapped memory at ``address``."""
        source = memoryview(data).cast("B")
        self.view(address, len(source))[:] = source