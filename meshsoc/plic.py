"""Platform-level interrupt controller model for the mesh SoC."""

from __future__ import annotations

import enum
import logging

log = logging.getLogger(__name__)

NR_HARTS = 8
SOURCE_BASE_ID = 32
SLOT_PER_TARGET = 8

MAX_SOURCE = 1023
N_SPRIO_REGS = 1023
N_PEND_REGS = 32
N_TRIG_REGS = 32
N_TAR_ENB_REG = 32
N_TARGET_EN = 16
N_TARGET_PC = 16
N_TAR_PREEMPT_STACK = 8

# First hart served by each PLIC instance, and how many harts it serves.
PLIC_TARGET_BASE = (0, 8, 16)
PLIC_TARGET_COUNT = (8, 0, 0)

# PLIC instance index used by each hart: harts 0 and 1 use C0C1, the rest NXY.
HART_PLIC_INDEX = tuple(0 if hart < 2 else 1 for hart in range(NR_HARTS))

_WORD = 0xFFFF_FFFF


class PlicError(ValueError):
    """Raised for an invalid source, target, hart or controller state."""


class FeatureType(enum.IntEnum):
    PREEMPT = 0
    VECTORED = 1


class IrqSource(enum.IntEnum):
    WDT = 0
    RTC_PERIOD = 1
    RTC_ALARM = 2
    PIT = 3
    SPI1 = 4
    SPI2 = 5
    I2C = 6
    GPIO = 7
    UART1 = 8
    USB_HOST = 9
    DMA = 10
    DMA512 = 11
    MESH_NODE = 20
    FX3 = 21
    TASK_COMPLETE = 22
    TASK_ASSIGN = 23
    ERROR_REPORT = 24
    DMA_COMPLETE = 25
    SYNC_REQUEST = 26
    SYNC_RESPONSE = 27
    SHUTDOWN_REQUEST = 28


SUPPORTED_TYPES = (
    IrqSource.MESH_NODE,
    IrqSource.TASK_COMPLETE,
    IrqSource.TASK_ASSIGN,
    IrqSource.ERROR_REPORT,
    IrqSource.DMA_COMPLETE,
    IrqSource.SYNC_REQUEST,
    IrqSource.SYNC_RESPONSE,
    IrqSource.SHUTDOWN_REQUEST,
)

_TYPE_PRIORITY = {
    IrqSource.ERROR_REPORT: 7,
    IrqSource.SHUTDOWN_REQUEST: 7,
    IrqSource.TASK_ASSIGN: 5,
    IrqSource.SYNC_REQUEST: 5,
    IrqSource.TASK_COMPLETE: 3,
    IrqSource.DMA_COMPLETE: 3,
}
_DEFAULT_PRIORITY = 2


def _check_source(source: int) -> None:
    if not 0 < source <= MAX_SOURCE:
        raise PlicError(f"interrupt source {source} out of range 1..{MAX_SOURCE}")


def _check_target(target: int) -> None:
    if not 0 <= target < N_TARGET_EN:
        raise PlicError(f"target {target} out of range 0..{N_TARGET_EN - 1}")


def _bit(source: int) -> tuple[int, int]:
    return source // 32, 1 << (source % 32)


def calculate_source_id(source_hart: int, irq_type: int) -> int:
    """Source id for an interrupt of ``irq_type`` raised by ``source_hart``.

    Each hart owns a block of 32 ids starting at SOURCE_BASE_ID.
    """
    source_id = SOURCE_BASE_ID + source_hart * 32 + int(irq_type)
    if not 0 < source_id <= MAX_SOURCE:
        raise PlicError(f"source id {source_id} exceeds the PLIC limit")
    return source_id


class Plic:
    """Register state of one PLIC instance."""

    def __init__(self, version: int = 0, max_priority: int = 0,
                 num_targets: int = 0, num_interrupts: int = 0) -> None:
        self._ver_max_prio = ((max_priority & 0xFFFF) << 16) | (version & 0xFFFF)
        self._num_tar_intp = ((num_targets & 0xFFFF) << 16) | (num_interrupts & 0xFFFF)
        self._reset_registers()

    def _reset_registers(self) -> None:
        self.feature_enable = 0
        self._sprio = [0] * N_SPRIO_REGS
        self._pending = [0] * N_PEND_REGS
        self._trigger = [0] * N_TRIG_REGS
        self._enable = [[0] * N_TAR_ENB_REG for _ in range(N_TARGET_EN)]
        self._threshold = [0] * N_TARGET_PC
        self.claim_complete = [0] * N_TARGET_PC
        self.preempt_stack = [[0] * N_TAR_PREEMPT_STACK for _ in range(N_TARGET_PC)]

    @property
    def version(self) -> int:
        return self._ver_max_prio & 0xFFFF

    @property
    def max_priority(self) -> int:
        return (self._ver_max_prio >> 16) & 0xFFFF

    @property
    def num_targets(self) -> int:
        return (self._num_tar_intp >> 16) & 0xFFFF

    @property
    def num_interrupts(self) -> int:
        return self._num_tar_intp & 0xFFFF

    def clear(self) -> None:
        """Zero every register of the instance."""
        self._ver_max_prio = 0
        self._num_tar_intp = 0
        self._reset_registers()

    def feature_set(self, feature: FeatureType) -> None:
        """Set the bit of ``feature`` in the feature enable register."""
        self.feature_enable |= 1 << int(feature)

    def feature_clear(self, feature: FeatureType) -> None:
        """Clear the feature enable register (all features at once)."""
        # The hardware driver masks with a logical negation, which wipes the
        # whole register whatever feature is named.
        self.feature_enable &= int(not (1 << int(feature)))

    def priority_set(self, source: int, priority: int) -> None:
        """OR ``priority`` into the priority register of ``source``."""
        _check_source(source)
        self._sprio[source - 1] |= priority & 0xFF

    def priority_clear(self, source: int) -> None:
        """Reset the priority of ``source`` to zero."""
        _check_source(source)
        self._sprio[source - 1] = 0

    def priority(self, source: int) -> int:
        """Current priority register value of ``source``."""
        _check_source(source)
        return self._sprio[source - 1]

    def pending_read(self, source: int) -> bool:
        """True if ``source`` is pending."""
        _check_source(source)
        index, mask = _bit(source)
        return bool(self._pending[index] & mask)

    def pending_write(self, source: int) -> None:
        """Mark ``source`` pending; the 32-bit pending word is overwritten."""
        _check_source(source)
        index, mask = _bit(source)
        self._pending[index] = mask

    def trigger_type_read(self, source: int) -> bool:
        """True if ``source`` is edge triggered."""
        _check_source(source)
        index, mask = _bit(source)
        return bool(self._trigger[index] & mask)

    def trigger_type_write(self, source: int) -> None:
        """Make ``source`` edge triggered."""
        _check_source(source)
        index, mask = _bit(source)
        self._trigger[index] |= mask

    def target_enable(self, target: int, source: int) -> None:
        """Enable ``source`` for ``target``."""
        _check_target(target)
        _check_source(source)
        index, mask = _bit(source)
        self._enable[target][index] = (self._enable[target][index] | mask) & _WORD

    def target_read(self, target: int, source: int) -> bool:
        """True if ``source`` is enabled for ``target``."""
        _check_target(target)
        _check_source(source)
        index, mask = _bit(source)
        return bool(self._enable[target][index] & mask)

    def target_disable(self, target: int, source: int) -> None:
        """Disable ``source`` for ``target``.

        The driver masks with a logical negation, so every source sharing
        the 32-bit enable word with ``source`` is disabled as well.
        """
        _check_target(target)
        _check_source(source)
        index, mask = _bit(source)
        self._enable[target][index] &= int(not mask)

    def claim(self, target: int) -> int:
        """Claim the highest-priority pending, enabled interrupt of ``target``.

        Only priorities above the target's threshold count; ties go to the
        lowest source id. The claimed source stops pending and is latched in
        the claim register. Returns 0 when nothing qualifies.
        """
        _check_target(target)
        threshold = self._threshold[target] & 0xFFFF
        enabled = self._enable[target]
        best_source = 0
        best_priority = 0
        for source in range(1, MAX_SOURCE + 1):
            index, mask = _bit(source)
            if not (self._pending[index] & mask and enabled[index] & mask):
                continue
            priority = self._sprio[source - 1] & 0xFF
            if priority > threshold and priority > best_priority:
                best_source, best_priority = source, priority
        if best_source:
            index, mask = _bit(best_source)
            self._pending[index] &= ~mask & _WORD
            self.claim_complete[target] = best_source
        return best_source

    def complete(self, target: int, interrupt_id: int) -> None:
        """Signal completion of ``interrupt_id`` for ``target``."""
        _check_target(target)
        self.claim_complete[target] = interrupt_id & _WORD

    def threshold_write(self, target: int, threshold: int) -> None:
        """Set the priority threshold of ``target`` (low 16 bits kept)."""
        _check_target(target)
        self._threshold[target] = threshold & 0xFFFF

    def threshold_read(self, target: int) -> int:
        """Priority threshold of ``target``."""
        _check_target(target)
        return self._threshold[target] & 0xFFFF


class PlicController:
    """Routes harts to PLIC instances and sets up hart-to-hart interrupts.

    Harts 0 and 1 use the C0C1 instance; harts 2 to 7 use the NXY instance.
    Within an instance a hart's target index is its hart id.
    """

    def __init__(self) -> None:
        self._instances: list[Plic | None] = [None, None, None]

    def init_hart(self, hart: int) -> Plic:
        """Attach the PLIC instance that serves ``hart`` and return it."""
        if not 0 <= hart < NR_HARTS:
            raise PlicError(f"hart {hart} out of range 0..{NR_HARTS - 1}")
        index = HART_PLIC_INDEX[hart]
        instance = self._instances[index]
        if instance is None:
            instance = Plic()
            self._instances[index] = instance
        log.debug("hart %d uses PLIC instance %d", hart, index)
        return instance

    def select(self, hart: int) -> tuple[Plic | None, int]:
        """PLIC instance and local target index for ``hart``.

        The instance is None for an unknown hart or one not yet initialised.
        """
        if not 0 <= hart < NR_HARTS:
            return None, 0
        return self._instances[HART_PLIC_INDEX[hart]], hart

    def _require(self, hart: int) -> tuple[Plic, int]:
        plic, target = self.select(hart)
        if plic is None:
            raise PlicError(f"no PLIC instance for hart {hart}")
        return plic, target

    def enable_interrupt(self, irq: int, hart: int) -> None:
        """Enable source ``irq`` for ``hart``."""
        plic, target = self._require(hart)
        log.debug("hart %d: enabling source %d on target %d", hart, irq, target)
        plic.target_enable(target, int(irq))

    def set_priority(self, irq: int, hart: int, priority: int) -> None:
        """Set the priority of source ``irq`` on the instance of ``hart``."""
        plic, _ = self._require(hart)
        plic.priority_set(int(irq), priority)

    def set_threshold(self, hart: int, threshold: int) -> None:
        """Set the priority threshold of ``hart``."""
        plic, target = self._require(hart)
        plic.threshold_write(target, threshold)

    def setup_bidirectional(self) -> int:
        """Let every hart receive every supported interrupt from every other.

        Returns the number of (target hart, source id) enables made.
        """
        enabled = 0
        for target_hart in range(NR_HARTS):
            self.set_threshold(target_hart, 1)
            for source_hart in range(NR_HARTS):
                if source_hart == target_hart:
                    continue
                for irq_type in SUPPORTED_TYPES:
                    source_id = calculate_source_id(source_hart, irq_type)
                    self.enable_interrupt(source_id, target_hart)
                    priority = _TYPE_PRIORITY.get(irq_type, _DEFAULT_PRIORITY)
                    self.set_priority(source_id, target_hart, priority)
                    log.debug("hart %d: source %d (hart %d, %s) priority %d",
                              target_hart, source_id, source_hart,
                              irq_type.name, priority)
                    enabled += 1
        return enabled

    def trigger_typed(self, source_hart: int, target_hart: int,
                      irq_type: IrqSource) -> int:
        """Raise ``irq_type`` from ``source_hart`` at ``target_hart``.

        Returns the source id made pending.
        """
        if not (0 <= source_hart < NR_HARTS and 0 <= target_hart < NR_HARTS):
            raise PlicError(f"invalid hart ids: source {source_hart}, target {target_hart}")
        if source_hart == target_hart:
            raise PlicError("self-interrupts are not supported")
        source_id = calculate_source_id(source_hart, irq_type)
        if not any(base <= target_hart < base + count
                   for base, count in zip(PLIC_TARGET_BASE[:1], PLIC_TARGET_COUNT[:1])):
            raise PlicError(f"no PLIC instance serves hart {target_hart}")
        plic, _ = self._require(target_hart)
        log.debug("trigger: hart %d -> hart %d, %s, source %d",
                  source_hart, target_hart, IrqSource(irq_type).name, source_id)
        plic.pending_write(source_id)
        return source_id

    def trigger(self, source_hart: int, target_hart: int) -> int:
        """Raise a mesh-node interrupt from ``source_hart`` at ``target_hart``."""
        return self.trigger_typed(source_hart, target_hart, IrqSource.MESH_NODE)