import pytest

from meshsoc import memmap
from meshsoc.plic import IrqSource, calculate_source_id
from meshsoc.platform import Platform, main, platform_setup


@pytest.fixture
def platform():
    return Platform(delay_per_byte=0)


def test_tiles_follow_memory_map(platform):
    for i in range(memmap.NUM_TILES):
        tile = platform.tile(i)
        assert tile.id == i
        assert (tile.x, tile.y) == memmap.tile_coordinates(i)
        assert tile.dlm64_base_addr == memmap.tile_dlm64_base(i)
        assert tile.dlm1_512_base_addr == memmap.tile_dlm1_512_base(i)
        assert tile.dma_reg_base_addr == memmap.tile_dma_reg_base(i)
        assert len(tile.dlm64) == memmap.DLM_64_SIZE
        assert len(tile.dlm1_512) == memmap.DLM1_512_SIZE


def test_dmems_follow_memory_map(platform):
    assert platform.dmem_count == memmap.NUM_DMEMS
    for i in range(memmap.NUM_DMEMS):
        dmem = platform.dmem(i)
        assert dmem.base_addr == memmap.dmem_base(i)
        assert dmem.size == memmap.DMEM_512_SIZE
        assert len(dmem.memory) == memmap.DMEM_512_SIZE


def test_tile_memory_backs_address_space(platform):
    tile = platform.tile(3)
    platform.memory.write(tile.dlm1_512_base_addr + 10, b"abc")
    assert bytes(tile.dlm1_512[10:13]) == b"abc"
    tile.dlm64[:2] = b"xy"
    assert platform.memory.read(tile.dlm64_base_addr, 2) == b"xy"


def test_dmem_and_c0_memory_back_address_space(platform):
    dmem = platform.dmem(6)
    dmem.memory[5:8] = b"def"
    assert platform.memory.read(dmem.base_addr + 5, 3) == b"def"
    platform.memory.write(memmap.C0_MASTER_BASE, b"c0")
    assert bytes(platform.c0_master[:2]) == b"c0"


def test_initial_state(platform):
    assert platform.next_task_id == 1
    assert platform.active_tasks == 0
    assert platform.completed_tasks == 0
    assert platform.platform_running is False
    assert all(t.idle and not t.running for t in platform.tiles)


def test_dma_engines_initialised(platform):
    for tile in platform.tiles:
        assert tile.dmac512_initialized
        assert platform.tile_dma.is_initialized(tile.id)


def test_plic_bidirectional_setup(platform):
    for hart in range(memmap.NUM_TILES):
        plic, target = platform.plic.select(hart)
        assert target == hart
        assert plic.threshold_read(target) == 1
        other = (hart + 1) % memmap.NUM_TILES
        assert plic.target_read(target, calculate_source_id(other, IrqSource.MESH_NODE))


def test_bad_ids_rejected(platform):
    with pytest.raises(ValueError):
        platform.tile(memmap.NUM_TILES)
    with pytest.raises(ValueError):
        platform.dmem(-1)


def test_platform_setup_builds_platform():
    built = platform_setup(0)
    assert built.node_count == memmap.NUM_TILES
    assert built.router.access_count(0) == 0


def test_negative_delay_rejected():
    with pytest.raises(ValueError):
        Platform(delay_per_byte=-1.0)


def test_main_runs_self_checks(capsys):
    assert main(["--delay-per-byte", "0"]) == 0
    out = capsys.readouterr().out
    assert "tests passed" in out
    assert "FAIL" not in out