"""
Smoothed derivative channels for sensorfilt.

Jerk is derived from filtered acceleration and angular acceleration from
filtered angular rate, each through its own FilterBank.
"""

from typing import Sequence, Tuple

from .errors import InvalidSpec
from .iir import FilterBank


class DerivedSignalStage:
    """
    Primary low-pass plus finite-difference derivative with its own low-pass.

    The derivative uses a fixed step interval, not measured time between
    calls, so the driver is expected to keep a constant cadence.

    Usage:
        stage = DerivedSignalStage(accel_bank, jerk_bank, step_interval_s=0.0025)
        accel, jerk = stage.step((ax, ay, az))
    """

    def __init__(self, primary_bank: FilterBank, derived_bank: FilterBank, step_interval_s: float):
        """
        Args:
            primary_bank: Filters the raw vector
            derived_bank: Filters the finite difference of the primary output
            step_interval_s: Cycle period in seconds (> 0)
        """
        if primary_bank.axes != derived_bank.axes:
            raise InvalidSpec(
                f"Primary bank has {primary_bank.axes} axes, derived bank {derived_bank.axes}"
            )
        if not step_interval_s > 0.0:
            raise InvalidSpec(f"Step interval must be positive, got {step_interval_s}")

        self.primary_bank = primary_bank
        self.derived_bank = derived_bank
        self.step_interval_s = float(step_interval_s)

        self.previous_filtered = [0.0] * primary_bank.axes
        self.primed = False

    @property
    def axes(self) -> int:
        return self.primary_bank.axes

    def step(self, raw: Sequence[float]) -> Tuple[Tuple[float, ...], Tuple[float, ...]]:
        """
        Run one cycle.

        Args:
            raw: Raw sensor vector

        Returns:
            Tuple of (filtered_primary, derived)
        """
        filtered = self.primary_bank.process_vector(raw)

        if not self.primed:
            # No previous value yet: record it and hold the derivative at zero
            self.previous_filtered = list(filtered)
            self.primed = True
            return filtered, (0.0,) * self.axes

        raw_derivative = [
            (cur - prev) / self.step_interval_s
            for cur, prev in zip(filtered, self.previous_filtered)
        ]
        derived = self.derived_bank.process_vector(raw_derivative)
        self.previous_filtered = list(filtered)

        return filtered, derived

    def reset(self, value: float = 0.0) -> None:
        """Reset both banks and require priming again."""
        self.primary_bank.reset(value)
        self.derived_bank.reset(0.0)
        self.previous_filtered = [0.0] * self.axes
        self.primed = False
