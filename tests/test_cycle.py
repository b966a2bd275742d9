import pytest

from sensorfilt import (
    ChannelInput,
    DerivedSignalStage,
    FilterBank,
    FilteringConfig,
    InvalidSpec,
    PreconditionViolation,
    ProcessingCycle,
    ResultRecord,
    RoleConfig,
    VARIANTS,
    build_cycle,
)


class FakeClock:
    def __init__(self, start=0.0, step=0.0025):
        self.t = start
        self.step = step

    def __call__(self):
        v = self.t
        self.t += self.step
        return v


def passthrough_cycle(channels=("accel",), output=None, clock=None):
    stages = {
        name: DerivedSignalStage(FilterBank.passthrough(), FilterBank.passthrough(), 0.01)
        for name in channels
    }
    return ProcessingCycle(stages, output=output, clock=clock or FakeClock())


def test_channel_input_fresh_and_stale():
    inp = ChannelInput("accel", clock=FakeClock())
    assert inp.read() == ((0.0, 0.0, 0.0), False)

    assert inp.push((1.0, 2.0, 3.0))
    assert inp.updated
    assert inp.read() == ((1.0, 2.0, 3.0), True)
    assert not inp.updated
    assert inp.read() == ((1.0, 2.0, 3.0), False)


@pytest.mark.parametrize("bad", [
    (1.0, 2.0),
    ("a", 1.0, 2.0),
    None,
    (1.0, 2.0, 3.0, 4.0),
    (float("nan"), 0.0, 0.0),
    (float("inf"), 0.0, 0.0),
    (0.0, float("-inf"), 0.0),
])
def test_channel_input_drops_malformed(bad):
    inp = ChannelInput("gyro", clock=FakeClock())
    inp.push((0.1, 0.2, 0.3))
    inp.read()
    assert not inp.push(bad)
    assert inp.read() == ((0.1, 0.2, 0.3), False)


def test_channel_input_units():
    assert ChannelInput("accel").units == "m/s^2"
    assert ChannelInput("gyro").units == "rad/s"


def test_run_once_publishes_record():
    published = []
    cycle = passthrough_cycle(output=published.append, clock=FakeClock(start=10.0))
    cycle.inputs["accel"].push((1.0, 2.0, 3.0), timestamp=9.0)

    record = cycle.run_once()
    assert published == [record]
    assert cycle.inputs["accel"].latest.timestamp == 9.0
    assert record.timestamp == 10.0
    assert record.accel_mps2 == (1.0, 2.0, 3.0)
    assert record.jerk_mps3 == (0.0, 0.0, 0.0)
    assert record.angrate_radps is None
    assert record.angacc_radps2 is None


def test_stale_data_is_reused():
    cycle = passthrough_cycle()
    cycle.inputs["accel"].push((1.0, 1.0, 1.0))
    cycle.run_once()
    cycle.inputs["accel"].push((2.0, 2.0, 2.0))
    cycle.run_once()

    record = cycle.run_once()
    assert record.accel_mps2 == (2.0, 2.0, 2.0)
    assert record.jerk_mps3 == (0.0, 0.0, 0.0)
    assert cycle.stats.stale_reads["accel"] == 1
    assert cycle.stats.cycles == 3


def test_combined_channels():
    cycle = passthrough_cycle(channels=("accel", "gyro"))
    cycle.inputs["accel"].push((0.0, 0.0, 9.81))
    cycle.inputs["gyro"].push((0.1, 0.0, 0.0))
    record = cycle.run_once()
    assert record.accel_mps2 == (0.0, 0.0, 9.81)
    assert record.angrate_radps == (0.1, 0.0, 0.0)

    cycle.inputs["gyro"].push((0.2, 0.0, 0.0))
    record = cycle.run_once()
    # accel stale, gyro fresh
    assert record.jerk_mps3 == (0.0, 0.0, 0.0)
    assert record.angacc_radps2 == pytest.approx((10.0, 0.0, 0.0))
    assert cycle.stats.stale_reads == {"accel": 1, "gyro": 0}


def test_record_to_dict_skips_inactive():
    record = ResultRecord(timestamp=1.5, accel_mps2=(1.0, 2.0, 3.0), jerk_mps3=(0.0, 0.0, 0.0))
    assert record.to_dict() == {
        "timestamp": 1.5,
        "accel_mps2": [1.0, 2.0, 3.0],
        "jerk_mps3": [0.0, 0.0, 0.0],
    }


def test_reset_restarts_all_stages():
    cycle = passthrough_cycle()
    cycle.inputs["accel"].push((1.0, 1.0, 1.0))
    cycle.run_once()
    cycle.reset()
    assert not cycle.stages["accel"].primed


def test_status_reports_orders_and_counts():
    cycle = build_cycle(FilteringConfig(), VARIANTS["combined"], clock=FakeClock())
    cycle.run_once()
    st = cycle.status()
    assert st["channels"] == ["accel", "gyro"]
    assert st["cycles"] == 1
    assert st["orders"]["accel"] == {"primary": 2, "derived": 2}
    assert st["step_interval_s"]["gyro"] == pytest.approx(1.0 / 800.0)


def test_build_cycle_uses_variant_channels():
    cycle = build_cycle(FilteringConfig(), VARIANTS["gyro"])
    assert cycle.channels == ("gyro",)
    assert set(cycle.inputs) == {"gyro"}
    assert cycle.stages["gyro"].step_interval_s == pytest.approx(0.0025)


def test_build_cycle_converges_on_constant_input():
    cycle = build_cycle(FilteringConfig(), VARIANTS["accel"], clock=FakeClock())
    record = None
    for _ in range(400):
        cycle.inputs["accel"].push((0.0, 0.0, 9.81))
        record = cycle.run_once()
    assert record.accel_mps2 == pytest.approx((0.0, 0.0, 9.81), abs=1e-9)
    assert record.jerk_mps3 == pytest.approx((0.0, 0.0, 0.0), abs=1e-6)


def test_build_cycle_rejects_invalid_config():
    cfg = FilteringConfig(accel=RoleConfig(order=11, cutoff_radps=70.0))
    with pytest.raises(InvalidSpec):
        build_cycle(cfg, VARIANTS["accel"])


def test_cycle_requires_stages():
    with pytest.raises(PreconditionViolation):
        ProcessingCycle({})


def test_cycle_rejects_unknown_channel():
    stage = DerivedSignalStage(FilterBank.passthrough(), FilterBank.passthrough(), 0.01)
    with pytest.raises(PreconditionViolation):
        ProcessingCycle({"magnetometer": stage})


def test_non_finite_sample_does_not_poison_filters():
    cycle = build_cycle(FilteringConfig(), VARIANTS["accel"], clock=FakeClock())
    for _ in range(50):
        cycle.inputs["accel"].push((0.0, 0.0, 9.81))
        cycle.run_once()

    assert not cycle.inputs["accel"].push((float("nan"), 0.0, 9.81))
    cycle.run_once()
    assert cycle.stats.stale_reads["accel"] == 1

    record = None
    for _ in range(400):
        cycle.inputs["accel"].push((0.0, 0.0, 9.81))
        record = cycle.run_once()
    assert record.accel_mps2 == pytest.approx((0.0, 0.0, 9.81), abs=1e-9)
    assert record.jerk_mps3 == pytest.approx((0.0, 0.0, 0.0), abs=1e-6)
