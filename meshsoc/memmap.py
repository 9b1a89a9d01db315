"""Physical memory map of the simulated mesh SoC.

Every address the rest of the package uses is derived from the constants
in this module. Tiles occupy a contiguous window with one stride per tile;
the eight DMEM modules sit above them, followed by the C0 master window.
"""

NUM_TILES = 8
NUM_DMEMS = 8
MESH_COLUMNS = 4

TILE0_BASE = 0x0000_0000
TILE_STRIDE = 0x0010_0000

DLM_64_OFFSET = 0x0000_0000
DLM_64_SIZE = 0x0000_8000          # 32 KiB scratchpad
DLM1_512_OFFSET = 0x0002_0000
DLM1_512_SIZE = 0x0002_0000        # 128 KiB buffer
DMA_REG_OFFSET = 0x0008_0000
DMA_REG_SIZE = 0x0000_1000         # 4 KiB register block

DMEM0_512_BASE = 0x2000_0000
DMEM_STRIDE = 0x0080_0000
DMEM_512_SIZE = 0x0008_0000        # 512 KiB per module

C0_MASTER_BASE = 0x2500_0000
C0_MASTER_SIZE = 0x0100_0000

PLIC_SIZE = 0x0040_0000
PLIC_0_C0C1_BASE = 0x9000_0000
PLIC_0_NXY_BASE = 0x9040_0000
PLIC_1_C0C1_BASE = 0x9080_0000
PLIC_1_NXY_BASE = 0x90C0_0000
PLIC_2_C0C1_BASE = 0x9100_0000
PLIC_2_NXY_BASE = 0x9140_0000

NOC_LINK_WIDTH_BITS = 512

DMEM_BASES = tuple(DMEM0_512_BASE + i * DMEM_STRIDE for i in range(NUM_DMEMS))


def _check_tile(tile: int) -> None:
    if not 0 <= tile < NUM_TILES:
        raise ValueError(f"tile id {tile} out of range 0..{NUM_TILES - 1}")


def tile_base(tile: int) -> int:
    """Base address of a tile's address window."""
    _check_tile(tile)
    return TILE0_BASE + tile * TILE_STRIDE


def tile_dlm64_base(tile: int) -> int:
    """Base address of a tile's 64-bit local memory."""
    return tile_base(tile) + DLM_64_OFFSET


def tile_dlm1_512_base(tile: int) -> int:
    """Base address of a tile's 512-bit buffer memory."""
    return tile_base(tile) + DLM1_512_OFFSET


def tile_dma_reg_base(tile: int) -> int:
    """Base address of a tile's DMA register block."""
    return tile_base(tile) + DMA_REG_OFFSET


def dmem_base(dmem: int) -> int:
    """Base address of a DMEM module."""
    if not 0 <= dmem < NUM_DMEMS:
        raise ValueError(f"dmem id {dmem} out of range 0..{NUM_DMEMS - 1}")
    return DMEM_BASES[dmem]


def tile_coordinates(tile: int) -> tuple[int, int]:
    """Mesh (x, y) position of a tile; tiles sit on rows 0 and 2."""
    _check_tile(tile)
    return tile % MESH_COLUMNS, (tile // MESH_COLUMNS) * 2