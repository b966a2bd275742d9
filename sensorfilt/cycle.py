"""
Processing cycle for sensorfilt.

One cycle pulls the latest raw vector of every active channel, runs the
channel's DerivedSignalStage and hands a ResultRecord to the output callable.
The cycle never waits for data: a channel without a new sample is filtered
against its previous value.
"""

import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from .butterworth import synthesize_spec
from .config import CHANNEL_ROLES, FilteringConfig, Variant
from .derivative import DerivedSignalStage
from .errors import PreconditionViolation
from .iir import FilterBank

Vector = Tuple[float, ...]

CHANNEL_UNITS = {
    "accel": "m/s^2",
    "gyro": "rad/s",
}

# channel -> (filtered primary field, derived field) on ResultRecord
CHANNEL_OUTPUT_FIELDS = {
    "accel": ("accel_mps2", "jerk_mps3"),
    "gyro": ("angrate_radps", "angacc_radps2"),
}


@dataclass
class SampleRecord:
    """Raw sensor vector with its arrival timestamp (seconds, monotonic)."""
    vector: Vector
    timestamp: float


@dataclass
class ResultRecord:
    """Filtered output of one cycle. Signals of inactive channels stay None."""
    timestamp: float
    accel_mps2: Optional[Vector] = None
    jerk_mps3: Optional[Vector] = None
    angrate_radps: Optional[Vector] = None
    angacc_radps2: Optional[Vector] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"timestamp": float(self.timestamp)}
        for name in ("accel_mps2", "jerk_mps3", "angrate_radps", "angacc_radps2"):
            value = getattr(self, name)
            if value is not None:
                out[name] = [float(v) for v in value]
        return out


class ChannelInput:
    """
    Latest-value mailbox for one raw sensor channel.

    The transport pushes samples as they arrive; the cycle reads whatever is
    newest and learns whether it is fresh.
    """

    def __init__(self, name: str, axes: int = 3, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.units = CHANNEL_UNITS.get(name, "")
        self.axes = axes
        self._clock = clock
        self.latest: Optional[SampleRecord] = None
        self._updated = False

    @property
    def updated(self) -> bool:
        """True if a sample arrived since the last read()."""
        return self._updated

    def push(self, vector: Sequence[float], timestamp: Optional[float] = None) -> bool:
        """
        Store a new raw sample.

        Malformed samples (wrong length, non-numeric, NaN or infinite) are
        dropped and the channel keeps its previous value.

        Returns:
            True if the sample was accepted
        """
        try:
            values = tuple(float(v) for v in vector)
            ts = self._clock() if timestamp is None else float(timestamp)
        except (TypeError, ValueError):
            return False
        if len(values) != self.axes:
            return False
        if not all(math.isfinite(v) for v in values):
            return False
        self.latest = SampleRecord(vector=values, timestamp=ts)
        self._updated = True
        return True

    def read(self) -> Tuple[Vector, bool]:
        """
        Read the newest sample and clear the updated flag.

        Returns:
            Tuple of (vector, fresh). Before any sample arrives the vector is zero.
        """
        fresh = self._updated
        self._updated = False
        if self.latest is None:
            return (0.0,) * self.axes, False
        return self.latest.vector, fresh


@dataclass
class CycleStats:
    cycles: int = 0
    stale_reads: Dict[str, int] = field(default_factory=dict)
    last_timestamp: Optional[float] = None


class ProcessingCycle:
    """
    Orchestrates one filtering step across all active channels.

    Usage:
        cycle = build_cycle(FilteringConfig(), VARIANTS["accel"], output=publish)
        cycle.inputs["accel"].push((ax, ay, az))
        record = cycle.run_once()
    """

    def __init__(
        self,
        stages: Dict[str, DerivedSignalStage],
        inputs: Optional[Dict[str, ChannelInput]] = None,
        output: Optional[Callable[[ResultRecord], Any]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not stages:
            raise PreconditionViolation("ProcessingCycle needs at least one channel stage")
        for name in stages:
            if name not in CHANNEL_OUTPUT_FIELDS:
                raise PreconditionViolation(f"Unknown channel {name!r}")

        self.stages = stages
        self.inputs = inputs if inputs is not None else {
            name: ChannelInput(name, axes=stage.axes, clock=clock) for name, stage in stages.items()
        }
        missing = set(stages) - set(self.inputs)
        if missing:
            raise PreconditionViolation(f"No input for channel(s): {', '.join(sorted(missing))}")

        self.output = output
        self.clock = clock
        self.stats = CycleStats(stale_reads={name: 0 for name in stages})
        self.last_record: Optional[ResultRecord] = None

    @property
    def channels(self) -> Tuple[str, ...]:
        return tuple(self.stages)

    def run_once(self) -> ResultRecord:
        """Run one cycle and publish its ResultRecord."""
        record = ResultRecord(timestamp=self.clock())

        for name, stage in self.stages.items():
            raw, fresh = self.inputs[name].read()
            if not fresh:
                self.stats.stale_reads[name] += 1
            filtered, derived = stage.step(raw)
            primary_field, derived_field = CHANNEL_OUTPUT_FIELDS[name]
            setattr(record, primary_field, filtered)
            setattr(record, derived_field, derived)

        self.stats.cycles += 1
        self.stats.last_timestamp = record.timestamp
        self.last_record = record

        if self.output is not None:
            self.output(record)
        return record

    def reset(self, value: float = 0.0) -> None:
        """Cold-restart every stage (e.g. after sensor recalibration)."""
        for stage in self.stages.values():
            stage.reset(value)

    def status(self) -> Dict[str, Any]:
        return {
            "channels": list(self.stages),
            "cycles": self.stats.cycles,
            "stale_reads": dict(self.stats.stale_reads),
            "last_timestamp": self.stats.last_timestamp,
            "orders": {
                name: {
                    "primary": stage.primary_bank.order,
                    "derived": stage.derived_bank.order,
                }
                for name, stage in self.stages.items()
            },
            "step_interval_s": {name: stage.step_interval_s for name, stage in self.stages.items()},
        }


def build_stage(config: FilteringConfig, channel: str, variant: Variant, axes: int = 3) -> DerivedSignalStage:
    """Synthesize both coefficient sets of a channel and wire its stage."""
    primary_role, derived_role = CHANNEL_ROLES[channel]
    rate = variant.sample_rate_hz
    primary = synthesize_spec(config.role(primary_role).spec(rate))
    derived = synthesize_spec(config.role(derived_role).spec(rate))
    return DerivedSignalStage(
        FilterBank(primary, axes=axes),
        FilterBank(derived, axes=axes),
        step_interval_s=variant.step_interval_s,
    )


def build_cycle(
    config: FilteringConfig,
    variant: Variant,
    output: Optional[Callable[[ResultRecord], Any]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> ProcessingCycle:
    """
    Build a ProcessingCycle for a host variant.

    All coefficient sets are synthesized here, so InvalidSpec surfaces
    before the first cycle can run.
    """
    config.validate()
    stages = {channel: build_stage(config, channel, variant) for channel in variant.channels}
    return ProcessingCycle(stages, output=output, clock=clock)
