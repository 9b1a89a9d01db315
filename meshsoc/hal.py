"""Reference hardware abstraction layer over the simulated platform."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from . import memmap
from .address import (AddressRegion, get_address_region, get_dmem_id,
                      get_tile_id, validate_address)
from .noc import NocPacket, PacketHeader, PacketType
from .tile_dma import DmaError

if TYPE_CHECKING:
    from .platform import Platform

_MAX_PACKET_LENGTH = 0xFFFF


class HalError(Exception):
    """Raised when a HAL operation is rejected."""


class Hal:
    """Thread-safe HAL operations; each call runs under one shared lock."""

    def __init__(self, platform: "Platform") -> None:
        if platform is None:
            raise HalError("a platform is required")
        self._platform = platform
        self._memory = platform.memory
        self._lock = threading.Lock()

    def _check_range(self, address: int, size: int) -> None:
        if not self._memory.contains(address):
            raise HalError(f"address 0x{address:x} is not backed by memory")
        if not validate_address(address, size):
            raise HalError(f"{size} bytes at 0x{address:x} is not a valid range")

    def _copy(self, src_addr: int, dst_addr: int, size: int) -> None:
        self._memory.write(dst_addr, self._memory.read(src_addr, size))

    def cpu_local_move(self, src_addr: int, dst_addr: int, size: int) -> None:
        """Copy ``size`` bytes as the CPU would; overlapping ranges are safe."""
        with self._lock:
            self._check_range(src_addr, size)
            self._check_range(dst_addr, size)
            self._copy(src_addr, dst_addr, size)

    def dma_local_transfer(self, tile_id: int, src_addr: int, dst_addr: int,
                           size: int) -> None:
        """Copy within one tile's memories using that tile's DMA engine."""
        with self._lock:
            try:
                self._platform.tile_dma.transfer(tile_id, src_addr, dst_addr, size)
            except DmaError as exc:
                raise HalError(str(exc)) from exc

    def dma_remote_transfer(self, src_addr: int, dst_addr: int, size: int) -> int:
        """Move data between a tile's DLM1_512 and a DMEM over the NoC.

        Returns the number of bytes transferred.
        """
        with self._lock:
            if not validate_address(src_addr, size) or not validate_address(dst_addr, size):
                raise HalError(
                    f"invalid remote transfer of {size} bytes "
                    f"from 0x{src_addr:x} to 0x{dst_addr:x}")
            regions = (get_address_region(src_addr), get_address_region(dst_addr))
            if regions not in ((AddressRegion.TILE_DLM1_512, AddressRegion.DMEM_512),
                               (AddressRegion.DMEM_512, AddressRegion.TILE_DLM1_512)):
                raise HalError("remote transfers must be between tile DLM1_512 and DMEM")
            if size > _MAX_PACKET_LENGTH:
                raise HalError(f"{size} bytes exceed the packet length field")

            src_x = src_y = dest_x = dest_y = 0
            src_tile = get_tile_id(src_addr)
            if src_tile is not None:
                src_x, src_y = src_tile % memmap.MESH_COLUMNS, src_tile // memmap.MESH_COLUMNS
            dst_tile = get_tile_id(dst_addr)
            if dst_tile is not None:
                dest_x, dest_y = dst_tile % memmap.MESH_COLUMNS, dst_tile // memmap.MESH_COLUMNS

            packet = NocPacket(PacketHeader(
                dest_x=dest_x, dest_y=dest_y, src_x=src_x, src_y=src_y,
                kind=PacketType.DMA_TRANSFER, length=size,
                src_addr=src_addr, dst_addr=dst_addr))
            self._platform.router.send(packet)
            return size

    def dmem_to_dmem_transfer(self, src_addr: int, dst_addr: int, size: int) -> None:
        """Copy ``size`` bytes from one DMEM range to another."""
        with self._lock:
            if not validate_address(src_addr, size) or not validate_address(dst_addr, size):
                raise HalError(
                    f"invalid DMEM transfer of {size} bytes "
                    f"from 0x{src_addr:x} to 0x{dst_addr:x}")
            if (get_address_region(src_addr) is not AddressRegion.DMEM_512
                    or get_address_region(dst_addr) is not AddressRegion.DMEM_512):
                raise HalError("both addresses must lie in DMEM")
            self._copy(src_addr, dst_addr, size)

    def node_sync(self, mask: int) -> None:
        """Wait until no HAL operation is in flight for the nodes in ``mask``."""
        with self._lock:
            pass

    def get_dmem_status(self, dmem_base_addr: int) -> int:
        """Status of the DMEM holding ``dmem_base_addr``; 0 means idle.

        Transfers complete synchronously under the HAL lock, so a module is
        always idle by the time its status can be read.
        """
        with self._lock:
            if get_address_region(dmem_base_addr) is not AddressRegion.DMEM_512:
                raise HalError(f"0x{dmem_base_addr:x} is not a DMEM address")
            if get_dmem_id(dmem_base_addr) is None:
                raise HalError(f"no DMEM module at 0x{dmem_base_addr:x}")
            return 0

    def mesh_route_optimal(self, src_addr: int, dst_addr: int) -> int:
        """Manhattan hop count between the tiles owning two addresses."""
        with self._lock:
            src_tile = get_tile_id(src_addr)
            dst_tile = get_tile_id(dst_addr)
            if src_tile is None or dst_tile is None:
                raise HalError("both addresses must belong to tiles")
            cols = memmap.MESH_COLUMNS
            return (abs(dst_tile % cols - src_tile % cols)
                    + abs(dst_tile // cols - src_tile // cols))

    def memory_read(self, addr: int, size: int) -> bytes:
        """Read ``size`` bytes of memory."""
        with self._lock:
            if size <= 0:
                raise HalError("read size must be positive")
            self._check_range(addr, size)
            return self._memory.read(addr, size)

    def memory_write(self, addr: int, data) -> int:
        """Write ``data`` to memory; returns the number of bytes written."""
        with self._lock:
            if data is None or len(data) == 0:
                raise HalError("nothing to write")
            size = len(data)
            self._check_range(addr, size)
            self._memory.write(addr, data)
            return size

    def memory_fill(self, addr: int, value: int, size: int) -> int:
        """Fill with the ramp ``value``, ``value + 1``, ... (mod 256)."""
        with self._lock:
            if size <= 0:
                raise HalError("fill size must be positive")
            self._check_range(addr, size)
            self._memory.write(addr, bytes((value + i) & 0xFF for i in range(size)))
            return size

    def memory_set(self, addr: int, value: int, size: int) -> int:
        """Set ``size`` bytes to ``value``."""
        with self._lock:
            if size <= 0:
                raise HalError("set size must be positive")
            self._check_range(addr, size)
            self._memory.write(addr, bytes([value & 0xFF]) * size)
            return size