# meshsoc

A software model of a small system-on-chip built around a mesh
network-on-chip. It models:

- eight processing tiles, each with a DLM_64 scratchpad (32 KiB), a
  DLM1_512 buffer (128 KiB) and a 4 KiB DMA register block,
- eight DMEM modules of 512 KiB each, and a C0 master window,
- the memory map and an address space that backs platform addresses with
  byte buffers (`meshsoc.memmap`, `meshsoc.address.AddressSpace`),
- a PLIC interrupt controller with priorities, thresholds, enables and
  claim/complete (`meshsoc.plic`),
- a mesh router that carries DMA packets between memories with
  per-destination arbitration (`meshsoc.noc.MeshRouter`),
- per-tile DMA engines (`meshsoc.tile_dma.TileDma`),
- a thread-safe hardware abstraction layer over all of it
  (`meshsoc.hal.Hal`).

The package has no dependencies outside the standard library.

## Installing

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Command line

```
meshsoc
```

builds the platform (memories, DMA engines, PLIC instances with every hart
set up to receive interrupts from every other hart) and runs a set of HAL
self-checks: a CPU local move, a tile-local DMA transfer, a tile-to-DMEM
remote transfer, a gather of eight DMEMs into tile 0, a distribute from
tile 0 to eight DMEMs, and two fixed-pattern remote transfers. Each check
prints `[Test] <name>: PASS` or `FAIL`, followed by a summary line. The exit
status is 0 when every check passes and 1 otherwise.

Options:

- `--trace` turns on debug logging of every NoC, PLIC and platform event
  (setting the environment variable `TRACE` does the same).
- `--delay-per-byte SECONDS` sets the simulated NoC transfer time per byte
  (default `1e-05`, i.e. 10 microseconds per byte); `0` disables the delay.

## Using the library

```python
from meshsoc.platform import platform_setup
from meshsoc.hal import Hal, HalError
from meshsoc.memmap import tile_dlm1_512_base, dmem_base

platform = platform_setup(delay_per_byte=0.0)
hal = Hal(platform)

src = tile_dlm1_512_base(2)
dst = dmem_base(5)

hal.memory_fill(src, 0x5A, 256)   # bytes 0x5A, 0x5B, 0x5C, ... (mod 256)
hal.memory_set(dst, 0, 256)

hal.dma_remote_transfer(src, dst, 256)   # returns 256
assert hal.memory_read(src, 256) == hal.memory_read(dst, 256)

# Copies between DMEM modules
hal.dmem_to_dmem_transfer(dmem_base(0), dmem_base(1), 1024)

# Copies inside one tile, through that tile's DMA engine
base = tile_dlm1_512_base(1)
hal.dma_local_transfer(1, base, base + 256, 256)

# Manhattan hop count between the tiles owning two addresses
hops = hal.mesh_route_optimal(tile_dlm1_512_base(0), tile_dlm1_512_base(5))
```

`Platform` exposes its parts directly: `tiles` and `dmems` (also reachable
with `tile(id)` and `dmem(id)`), `memory` (the `AddressSpace`), `router`,
`tile_dma` and `plic`. Each `Tile` holds its mesh position (`x`, `y`; tiles
sit on rows 0 and 2), its base addresses and its memories as `bytearray`s;
each `DmemModule` holds `base_addr`, `size` and `memory`.

### Errors

`Hal` raises `HalError` for rejected requests: unmapped addresses, ranges
that leave their region, non-positive sizes, remote transfers that do not
pair a tile DLM1_512 with a DMEM, DMEM transfers outside DMEM, local DMA
transfers outside the named tile, and status queries of non-DMEM addresses.
`get_dmem_status` returns 0 (idle) for any DMEM address, because transfers
complete synchronously. `node_sync` waits for any HAL call in progress.

### Addresses

`meshsoc.memmap` holds the memory-map constants and helpers such as
`tile_base`, `tile_dlm64_base`, `tile_dlm1_512_base`, `tile_dma_reg_base`,
`dmem_base` and `tile_coordinates`.

`meshsoc.address` classifies any address with `get_address_region`
(returning an `AddressRegion`), finds the owning tile or DMEM with
`get_tile_id` and `get_dmem_id` (None when there is none), and
`validate_address(address, size)` checks that a whole range lies in one
region. `AddressSpace` maps ranges onto writable buffers with `map`, and
offers `view`, `read`, `write` and `contains`; it raises `AddressError`
for unmapped or overlapping ranges.

### Network-on-chip

`meshsoc.noc` defines `PacketType`, `PacketHeader` and `NocPacket` (one
64-byte flit payload). `MeshRouter.send` carries out `DMA_TRANSFER`
packets by copying `length` bytes from `src_addr` to `dst_addr` and
returns the bytes moved; other packet kinds, zero addresses, unmapped
addresses and zero lengths move nothing and return 0. Transfers to a tile
or DMEM are serialised per destination (`destination_lock_index`), and
`access_count` reports how many transfers each destination has served.
`xy_hops` gives the XY-routing hop count.

### Interrupts

```python
from meshsoc.plic import IrqSource, calculate_source_id

plic = platform.plic          # a configured PlicController
source_id = plic.trigger_typed(1, 0, IrqSource.TASK_COMPLETE)
instance, target = plic.select(0)
assert instance.claim(target) == source_id
```

Each source hart owns a block of 32 interrupt sources starting at 32;
`calculate_source_id(source_hart, irq_type)` gives the source number.
Harts 0 and 1 share one `Plic` instance and harts 2 to 7 another. After
setup, error and shutdown interrupts have priority 7, task-assign and
sync-request 5, task-complete and DMA-complete 3, the rest 2, and every
hart's threshold is 1. `trigger` raises a `MESH_NODE` interrupt.
Invalid harts, self-interrupts and out-of-range sources raise `PlicError`.

`Plic` models the register behaviour exactly, including three quirks:
`pending_write` overwrites the whole 32-bit pending word, `target_disable`
clears the whole 32-bit enable word holding the source, and
`feature_clear` clears the whole feature register.

## What the package does not do

- Tiles do not run threads or tasks. `Tile` and `Platform` carry task
  bookkeeping fields (`current_task`, `tasks_completed`, `next_task_id`
  and so on), but nothing schedules or executes tasks.
- Interrupts are not delivered over the NoC and no handler is invoked;
  raising one only marks a source pending in the PLIC model, to be claimed
  by whoever polls it.
- The router models arbitration and transfer time only, not link-level
  flits, buffering or congestion beyond one transfer per destination.