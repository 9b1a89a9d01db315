import pytest

from meshsoc.plic import (
    NR_HARTS,
    SOURCE_BASE_ID,
    FeatureType,
    IrqSource,
    Plic,
    PlicController,
    PlicError,
    calculate_source_id,
)


@pytest.fixture
def ready_controller():
    controller = PlicController()
    for hart in range(NR_HARTS):
        controller.init_hart(hart)
    controller.setup_bidirectional()
    return controller


def test_identification_fields_and_clear():
    plic = Plic(version=0x12, max_priority=7, num_targets=16, num_interrupts=1023)
    assert plic.version == 0x12
    assert plic.max_priority == 7
    assert plic.num_targets == 16
    assert plic.num_interrupts == 1023
    plic.clear()
    assert (plic.version, plic.max_priority, plic.num_targets, plic.num_interrupts) == (0, 0, 0, 0)


def test_clear_resets_registers():
    plic = Plic()
    plic.priority_set(5, 3)
    plic.pending_write(5)
    plic.target_enable(2, 5)
    plic.clear()
    assert plic.priority(5) == 0
    assert not plic.pending_read(5)
    assert not plic.target_read(2, 5)


def test_feature_set_and_clear():
    plic = Plic()
    plic.feature_set(FeatureType.VECTORED)
    assert plic.feature_enable == 1 << FeatureType.VECTORED
    plic.feature_set(FeatureType.PREEMPT)
    plic.feature_clear(FeatureType.PREEMPT)
    assert plic.feature_enable == 0


def test_priority_set_ors_and_clear_resets():
    plic = Plic()
    plic.priority_set(10, 0x0F)
    plic.priority_set(10, 0xF0)
    assert plic.priority(10) == 0xFF
    plic.priority_clear(10)
    assert plic.priority(10) == 0


@pytest.mark.parametrize("source", [0, 1024, -1])
def test_invalid_source_rejected(source):
    plic = Plic()
    with pytest.raises(PlicError):
        plic.pending_write(source)
    with pytest.raises(PlicError):
        plic.priority_set(source, 1)


@pytest.mark.parametrize("target", [16, -1])
def test_invalid_target_rejected(target):
    plic = Plic()
    with pytest.raises(PlicError):
        plic.target_enable(target, 1)
    with pytest.raises(PlicError):
        plic.claim(target)
    with pytest.raises(PlicError):
        plic.threshold_write(target, 1)


def test_pending_write_overwrites_word():
    plic = Plic()
    plic.pending_write(33)
    assert plic.pending_read(33)
    plic.pending_write(34)
    assert plic.pending_read(34)
    assert not plic.pending_read(33)
    plic.pending_write(70)
    assert plic.pending_read(34)


def test_trigger_type_round_trip():
    plic = Plic()
    assert not plic.trigger_type_read(1023)
    plic.trigger_type_write(1023)
    plic.trigger_type_write(1)
    assert plic.trigger_type_read(1023)
    assert plic.trigger_type_read(1)


def test_target_enable_and_disable_whole_word():
    plic = Plic()
    plic.target_enable(3, 40)
    plic.target_enable(3, 41)
    plic.target_enable(3, 70)
    assert plic.target_read(3, 40) and plic.target_read(3, 41)
    assert not plic.target_read(4, 40)
    plic.target_disable(3, 40)
    assert not plic.target_read(3, 40)
    assert not plic.target_read(3, 41)
    assert plic.target_read(3, 70)


def test_threshold_round_trip_keeps_low_bits():
    plic = Plic()
    plic.threshold_write(5, 0x1_0003)
    assert plic.threshold_read(5) == 0x0003


def test_claim_picks_highest_priority_and_clears_pending():
    plic = Plic()
    for source, priority in ((40, 2), (100, 7)):
        plic.target_enable(0, source)
        plic.priority_set(source, priority)
        plic.pending_write(source)
    assert plic.claim(0) == 100
    assert not plic.pending_read(100)
    assert plic.claim_complete[0] == 100
    assert plic.claim(0) == 40
    assert plic.claim(0) == 0


def test_claim_respects_threshold_and_enable():
    plic = Plic()
    plic.priority_set(50, 3)
    plic.pending_write(50)
    assert plic.claim(1) == 0
    plic.target_enable(1, 50)
    plic.threshold_write(1, 3)
    assert plic.claim(1) == 0
    assert plic.pending_read(50)
    plic.threshold_write(1, 2)
    assert plic.claim(1) == 50


def test_claim_tie_goes_to_lowest_source():
    plic = Plic()
    for source in (100, 200):
        plic.target_enable(0, source)
        plic.priority_set(source, 4)
        plic.pending_write(source)
    assert plic.claim(0) == 100
    assert plic.claim(0) == 200


def test_complete_writes_claim_register():
    plic = Plic()
    plic.complete(2, 77)
    assert plic.claim_complete[2] == 77


def test_calculate_source_id_layout():
    assert calculate_source_id(0, IrqSource.MESH_NODE) == SOURCE_BASE_ID + IrqSource.MESH_NODE
    ids = {calculate_source_id(h, t) for h in range(NR_HARTS) for t in IrqSource}
    assert len(ids) == NR_HARTS * len(IrqSource)
    assert calculate_source_id(3, IrqSource.WDT) - calculate_source_id(2, IrqSource.WDT) == 32


def test_calculate_source_id_over_limit():
    with pytest.raises(PlicError):
        calculate_source_id(40, IrqSource.SHUTDOWN_REQUEST)


def test_select_before_and_after_init():
    controller = PlicController()
    assert controller.select(0) == (None, 0)
    c0c1 = controller.init_hart(0)
    assert controller.select(1) == (c0c1, 1)
    nxy = controller.init_hart(5)
    assert nxy is not c0c1
    assert controller.select(2) == (nxy, 2)
    assert controller.select(8) == (None, 0)


def test_init_hart_rejects_unknown_hart():
    with pytest.raises(PlicError):
        PlicController().init_hart(NR_HARTS)


def test_operations_without_instance_raise():
    controller = PlicController()
    with pytest.raises(PlicError):
        controller.set_threshold(0, 1)
    with pytest.raises(PlicError):
        controller.trigger(1, 0)


def test_setup_bidirectional_configures_targets(ready_controller):
    plic, target = ready_controller.select(0)
    assert plic.threshold_read(target) == 1
    error_id = calculate_source_id(1, IrqSource.ERROR_REPORT)
    assert plic.target_read(0, error_id)
    assert plic.priority(error_id) == 7
    assert plic.priority(calculate_source_id(1, IrqSource.TASK_ASSIGN)) == 5
    assert plic.priority(calculate_source_id(1, IrqSource.DMA_COMPLETE)) == 3
    assert plic.priority(calculate_source_id(1, IrqSource.MESH_NODE)) == 2
    assert not plic.target_read(0, calculate_source_id(0, IrqSource.MESH_NODE))


def test_setup_bidirectional_counts_enables():
    controller = PlicController()
    for hart in range(NR_HARTS):
        controller.init_hart(hart)
    assert controller.setup_bidirectional() == NR_HARTS * (NR_HARTS - 1) * 8


def test_trigger_then_claim_on_c0c1(ready_controller):
    source_id = ready_controller.trigger(1, 0)
    assert source_id == calculate_source_id(1, IrqSource.MESH_NODE)
    plic, target = ready_controller.select(0)
    assert plic.pending_read(source_id)
    assert plic.claim(target) == source_id


def test_trigger_typed_to_nxy_hart(ready_controller):
    source_id = ready_controller.trigger_typed(0, 3, IrqSource.SHUTDOWN_REQUEST)
    plic, target = ready_controller.select(3)
    assert plic.claim(target) == source_id
    assert plic.claim(target) == 0


@pytest.mark.parametrize("source_hart,target_hart", [(2, 2), (8, 0), (0, 8), (-1, 0)])
def test_trigger_typed_rejects_bad_harts(ready_controller, source_hart, target_hart):
    with pytest.raises(PlicError):
        ready_controller.trigger_typed(source_hart, target_hart, IrqSource.TASK_COMPLETE)