"""Assembly of the simulated mesh platform and its command-line entry point."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
from typing import Callable

from . import memmap
from .address import AddressSpace
from .hal import Hal, HalError
from .noc import DEFAULT_DELAY_PER_BYTE, MeshRouter
from .plic import PlicController
from .tile_dma import TileDma

log = logging.getLogger(__name__)


@dataclasses.dataclass
class Tile:
    """One processing tile: its mesh position, memories and task state."""

    id: int
    x: int
    y: int
    dlm64_base_addr: int
    dlm1_512_base_addr: int
    dma_reg_base_addr: int
    dlm64: bytearray = dataclasses.field(
        default_factory=lambda: bytearray(memmap.DLM_64_SIZE), repr=False)
    dlm1_512: bytearray = dataclasses.field(
        default_factory=lambda: bytearray(memmap.DLM1_512_SIZE), repr=False)
    dma_regs: bytearray = dataclasses.field(
        default_factory=lambda: bytearray(memmap.DMA_REG_SIZE), repr=False)
    running: bool = False
    initialized: bool = False
    current_task: object = None
    task_pending: bool = False
    idle: bool = True
    tasks_completed: int = 0
    total_execution_time: float = 0.0
    dmac512_initialized: bool = False

    @classmethod
    def at(cls, tile_id: int) -> "Tile":
        """Tile ``tile_id`` placed according to the memory map."""
        x, y = memmap.tile_coordinates(tile_id)
        log.debug("Init Node%d at (%d,%d)", tile_id, x, y)
        return cls(
            id=tile_id,
            x=x,
            y=y,
            dlm64_base_addr=memmap.tile_dlm64_base(tile_id),
            dlm1_512_base_addr=memmap.tile_dlm1_512_base(tile_id),
            dma_reg_base_addr=memmap.tile_dma_reg_base(tile_id),
        )


@dataclasses.dataclass
class DmemModule:
    """One shared data memory module."""

    id: int
    base_addr: int
    size: int = memmap.DMEM_512_SIZE
    memory: bytearray = dataclasses.field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.memory = bytearray(self.size)


class Platform:
    """The whole SoC: tiles, DMEMs, C0 window, router, DMA engines and PLICs."""

    def __init__(self, delay_per_byte: float = DEFAULT_DELAY_PER_BYTE) -> None:
        self.memory = AddressSpace()
        self.router = MeshRouter(self.memory, delay_per_byte)
        self.tile_dma = TileDma(self.memory)
        self.plic = PlicController()

        self.tiles = [Tile.at(i) for i in range(memmap.NUM_TILES)]
        for tile in self.tiles:
            self.memory.map(tile.dlm64_base_addr, tile.dlm64)
            self.memory.map(tile.dlm1_512_base_addr, tile.dlm1_512)
            self.memory.map(tile.dma_reg_base_addr, tile.dma_regs)
            try:
                self.tile_dma.init_tile(tile.id)
            except ValueError:
                log.warning("failed to initialise DMA controller of tile %d", tile.id)
            else:
                tile.dmac512_initialized = True

        self.dmems = [DmemModule(i, memmap.dmem_base(i)) for i in range(memmap.NUM_DMEMS)]
        for dmem in self.dmems:
            self.memory.map(dmem.base_addr, dmem.memory)

        self.c0_master = bytearray(memmap.C0_MASTER_SIZE)
        self.memory.map(memmap.C0_MASTER_BASE, self.c0_master)

        self.platform_running = False
        self.next_task_id = 1
        self.active_tasks = 0
        self.completed_tasks = 0

        for hart in range(memmap.NUM_TILES):
            self.plic.init_hart(hart)
        self.plic.setup_bidirectional()
        log.info("platform setup complete with bidirectional interrupt support")

    @property
    def node_count(self) -> int:
        return len(self.tiles)

    @property
    def dmem_count(self) -> int:
        return len(self.dmems)

    def tile(self, tile_id: int) -> Tile:
        """Tile with id ``tile_id``."""
        if not 0 <= tile_id < len(self.tiles):
            raise ValueError(f"tile id {tile_id} out of range 0..{len(self.tiles) - 1}")
        return self.tiles[tile_id]

    def dmem(self, dmem_id: int) -> DmemModule:
        """DMEM module with id ``dmem_id``."""
        if not 0 <= dmem_id < len(self.dmems):
            raise ValueError(f"dmem id {dmem_id} out of range 0..{len(self.dmems) - 1}")
        return self.dmems[dmem_id]


def platform_setup(delay_per_byte: float = DEFAULT_DELAY_PER_BYTE) -> Platform:
    """Build and initialise a complete platform."""
    return Platform(delay_per_byte)


_CHUNK = 256


def _check_cpu_local_move(hal: Hal, platform: Platform) -> bool:
    src = platform.tile(0).dlm1_512_base_addr
    dst = src + _CHUNK
    hal.memory_fill(src, 0x55, _CHUNK)
    hal.memory_set(dst, 0, _CHUNK)
    hal.cpu_local_move(src, dst, _CHUNK)
    return hal.memory_read(src, _CHUNK) == hal.memory_read(dst, _CHUNK)


def _check_dma_local_transfer(hal: Hal, platform: Platform) -> bool:
    src = platform.tile(1).dlm1_512_base_addr
    dst = src + _CHUNK
    hal.memory_fill(src, 0xAA, _CHUNK)
    hal.memory_set(dst, 0, _CHUNK)
    hal.dma_local_transfer(1, src, dst, _CHUNK)
    return hal.memory_read(src, _CHUNK) == hal.memory_read(dst, _CHUNK)


def _check_dma_remote_transfer(hal: Hal, platform: Platform) -> bool:
    src = platform.tile(2).dlm1_512_base_addr
    dst = platform.dmem(5).base_addr
    hal.memory_fill(src, 0x5A, _CHUNK)
    hal.memory_set(dst, 0, _CHUNK)
    hal.dma_remote_transfer(src, dst, _CHUNK)
    return hal.memory_read(src, _CHUNK) == hal.memory_read(dst, _CHUNK)


def _check_c0_gather(hal: Hal, platform: Platform) -> bool:
    for dmem in platform.dmems:
        hal.memory_fill(dmem.base_addr, 0x10 | dmem.id, _CHUNK)
    passed = 0
    for dmem in platform.dmems:
        dst = platform.tile(0).dlm1_512_base_addr + dmem.id * _CHUNK
        hal.dma_remote_transfer(dmem.base_addr, dst, _CHUNK)
        passed += hal.memory_read(dmem.base_addr, _CHUNK) == hal.memory_read(dst, _CHUNK)
    return passed == len(platform.dmems)


def _check_c0_distribute(hal: Hal, platform: Platform) -> bool:
    src = platform.tile(0).dlm1_512_base_addr
    for d in range(len(platform.dmems)):
        hal.memory_fill(src + d * _CHUNK, 0xE0 | d, _CHUNK)
    passed = 0
    for dmem in platform.dmems:
        hal.dma_remote_transfer(src, dmem.base_addr, _CHUNK)
        passed += hal.memory_read(src, _CHUNK) == hal.memory_read(dmem.base_addr, _CHUNK)
    return passed == len(platform.dmems)


def _check_random_dma_remote(hal: Hal, platform: Platform) -> bool:
    passed = 0
    for src_node, dst_dmem, seed in ((0, 5, 0xA5), (4, 7, 0x5A)):
        tile = platform.tile(src_node)
        dmem = platform.dmem(dst_dmem)
        tile.dlm1_512[:_CHUNK] = bytes((seed ^ i) & 0xFF for i in range(_CHUNK))
        dmem.memory[:_CHUNK] = bytes(_CHUNK)
        hal.dma_remote_transfer(tile.dlm1_512_base_addr, dmem.base_addr, _CHUNK)
        passed += tile.dlm1_512[:_CHUNK] == dmem.memory[:_CHUNK]
    return passed == 2


_SELF_CHECKS: tuple[tuple[str, Callable[[Hal, Platform], bool]], ...] = (
    ("cpu_local_move", _check_cpu_local_move),
    ("dma_local_transfer", _check_dma_local_transfer),
    ("dma_remote_transfer", _check_dma_remote_transfer),
    ("c0_gather", _check_c0_gather),
    ("c0_distribute", _check_c0_distribute),
    ("random_dma_remote", _check_random_dma_remote),
)


def main(argv: list[str] | None = None) -> int:
    """Build the platform and run its HAL self-checks; returns the exit status."""
    parser = argparse.ArgumentParser(
        prog="meshsoc", description="Run the mesh SoC platform self-checks.")
    parser.add_argument("--trace", action="store_true",
                        help="log every NoC, PLIC and platform event")
    parser.add_argument("--delay-per-byte", type=float, default=DEFAULT_DELAY_PER_BYTE,
                        help="simulated NoC transfer time per byte, in seconds")
    args = parser.parse_args(argv)

    if args.trace or os.environ.get("TRACE"):
        logging.basicConfig(level=logging.DEBUG)

    platform = platform_setup(args.delay_per_byte)
    hal = Hal(platform)
    passed = 0
    for name, check in _SELF_CHECKS:
        try:
            ok = check(hal, platform)
        except HalError as exc:
            log.debug("%s failed: %s", name, exc)
            ok = False
        passed += ok
        print(f"[Test] {name}: {'PASS' if ok else 'FAIL'}")
    print(f"Summary: {passed}/{len(_SELF_CHECKS)} tests passed")
    return 0 if passed == len(_SELF_CHECKS) else 1