"""
Scheduling strategies that decide when a ProcessingCycle runs.

Two drivers are provided and injected by the host:
- OnNewDataDriver: runs a cycle whenever the primary channel receives data
- FixedPeriodDriver: self-paced asyncio loop at a fixed step interval

Both serialise cycles; a cycle always runs to completion.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from .config import DRIVER_FIXED_PERIOD, DRIVER_ON_NEW_DATA, Variant
from .cycle import ProcessingCycle
from .errors import InvalidSpec


def sleep_duration(step_interval_s: float, elapsed_s: float) -> float:
    """Time left in the period after processing; never negative."""
    return max(0.0, step_interval_s - elapsed_s)


class OnNewDataDriver:
    """
    Edge-triggered driver: one cycle per sample on the primary channel.

    Usage:
        driver = OnNewDataDriver(cycle, primary_channel="accel")
        # from the transport, after pushing a sample:
        driver.on_sample("accel")
    """

    def __init__(self, cycle: ProcessingCycle, primary_channel: str):
        if primary_channel not in cycle.inputs:
            raise InvalidSpec(f"Primary channel {primary_channel!r} is not an input of this cycle")
        self.cycle = cycle
        self.primary_channel = primary_channel
        self.cycles = 0
        self._stop_event: Optional[asyncio.Event] = None
        self._stopped = False

    def notify(self) -> None:
        """New primary data is available: run one cycle."""
        self.cycle.run_once()
        self.cycles += 1

    def on_sample(self, channel: str) -> None:
        if self._stopped:
            return
        if channel == self.primary_channel and self.cycle.inputs[channel].updated:
            self.notify()

    async def run(self) -> None:
        """Idle until stop(); cycles are driven by on_sample()."""
        self._stop_event = asyncio.Event()
        if self._stopped:
            return
        await self._stop_event.wait()

    def stop(self) -> None:
        self._stopped = True
        if self._stop_event is not None:
            self._stop_event.set()


class FixedPeriodDriver:
    """
    Self-paced driver: run a cycle, then sleep for what is left of the period.

    If processing overran the period, the next cycle starts immediately.
    """

    def __init__(
        self,
        cycle: ProcessingCycle,
        step_interval_s: float,
        max_cycles: Optional[int] = None,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            cycle: Cycle to run
            step_interval_s: Loop period in seconds (> 0)
            max_cycles: Stop after this many cycles (None = until stop())
            clock: High-resolution time source used to measure processing
            sleep: Coroutine used to wait out the period
        """
        if not step_interval_s > 0.0:
            raise InvalidSpec(f"Step interval must be positive, got {step_interval_s}")
        self.cycle = cycle
        self.step_interval_s = float(step_interval_s)
        self.max_cycles = max_cycles
        self.clock = clock
        self.sleep = sleep

        self.cycles = 0
        self.overruns = 0
        self._running = False
        self._stop_requested = False

    @property
    def running(self) -> bool:
        return self._running

    def on_sample(self, channel: str) -> None:
        # Samples are picked up on the next period
        return None

    async def run(self) -> None:
        if self._stop_requested:
            return
        self._running = True
        try:
            while not self._stop_requested:
                start = self.clock()
                self.cycle.run_once()
                self.cycles += 1

                if self.max_cycles is not None and self.cycles >= self.max_cycles:
                    break

                elapsed = self.clock() - start
                if elapsed > self.step_interval_s:
                    self.overruns += 1
                await self.sleep(sleep_duration(self.step_interval_s, elapsed))
        finally:
            self._running = False

    def stop(self) -> None:
        self._stop_requested = True


def make_driver(variant: Variant, cycle: ProcessingCycle, max_cycles: Optional[int] = None):
    """Pick the scheduling strategy a host variant runs with."""
    if variant.driver == DRIVER_ON_NEW_DATA:
        return OnNewDataDriver(cycle, primary_channel=variant.primary_channel)
    if variant.driver == DRIVER_FIXED_PERIOD:
        return FixedPeriodDriver(cycle, variant.step_interval_s, max_cycles=max_cycles)
    raise InvalidSpec(f"Unknown driver {variant.driver!r}")
