"""Software model of a mesh network-on-chip SoC: memory map, tiles, DMEMs, router, tile DMA, PLIC and HAL."""

__version__ = "0.1.0"

__all__ = ["address", "hal", "memmap", "noc", "platform", "plic", "tile_dma"]