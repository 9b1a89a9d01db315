"""Per-tile DMA engines that move data inside one tile's memories."""

from __future__ import annotations

import threading

from . import memmap
from .address import AddressSpace, get_tile_id, validate_address


class DmaError(ValueError):
    """Raised for a bad tile id or a transfer the engine cannot perform."""


def _check_tile(tile_id: int) -> None:
    if not 0 <= tile_id < memmap.NUM_TILES:
        raise DmaError(f"tile id {tile_id} out of range 0..{memmap.NUM_TILES - 1}")


class TileDma:
    """The DMA controllers of all tiles, sharing one address space."""

    def __init__(self, memory: AddressSpace) -> None:
        self._memory = memory
        self._initialized = [False] * memmap.NUM_TILES
        self._lock = threading.Lock()

    def init_tile(self, tile_id: int) -> None:
        """Bring up the DMA controller of ``tile_id``; repeated calls are harmless."""
        _check_tile(tile_id)
        with self._lock:
            self._initialized[tile_id] = True

    def is_initialized(self, tile_id: int) -> bool:
        """True once the DMA controller of ``tile_id`` has been brought up."""
        if not 0 <= tile_id < memmap.NUM_TILES:
            return False
        return self._initialized[tile_id]

    def transfer(self, tile_id: int, src_addr: int, dst_addr: int, size: int) -> None:
        """Copy ``size`` bytes between two memories of ``tile_id``.

        Both ranges must lie inside the tile's own window and each within a
        single memory region. The controller is brought up on first use.
        """
        _check_tile(tile_id)
        if get_tile_id(src_addr) != tile_id or get_tile_id(dst_addr) != tile_id:
            raise DmaError(f"transfer addresses are not inside tile {tile_id}")
        if not validate_address(src_addr, size) or not validate_address(dst_addr, size):
            raise DmaError(
                f"invalid transfer of {size} bytes from 0x{src_addr:x} to 0x{dst_addr:x}"
            )
        if not self._initialized[tile_id]:
            self.init_tile(tile_id)
        self._memory.write(dst_addr, self._memory.read(src_addr, size))

    def copy(self, dst_addr: int, src_addr: int, size: int) -> bool:
        """Copy between any two mapped, valid ranges.

        Returns False, leaving memory untouched, when either range is
        unmapped or not a valid region.
        """
        if not (self._memory.contains(dst_addr) and self._memory.contains(src_addr)):
            return False
        if not validate_address(src_addr, size) or not validate_address(dst_addr, size):
            return False
        self._memory.write(dst_addr, self._memory.read(src_addr, size))
        return True