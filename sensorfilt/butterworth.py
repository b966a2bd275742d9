"""
Butterworth low-pass coefficient synthesis for sensorfilt.

Designs the analog prototype, pre-warps the cutoff, maps the poles to the
z-plane with the bilinear transform and expands them into recursive filter
coefficients with unity DC gain.
"""

import math
import numbers
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .errors import InvalidSpec

MAX_ORDER = 10
MAX_COEFFS = MAX_ORDER + 1

# |a[0] - 1| above this means the expansion itself is broken
LEADING_COEFF_TOLERANCE = 1e-9


@dataclass(frozen=True)
class FilterSpec:
    """
    Requested low-pass response for one signal role.

    The cutoff is expressed in rad/s (as configured); the synthesizer works
    in Hz, see `cutoff_hz`.
    """
    order: int
    cutoff_radps: float
    sample_rate_hz: float

    @property
    def cutoff_hz(self) -> float:
        return self.cutoff_radps / (2.0 * math.pi)

    def validate(self) -> None:
        """Raise InvalidSpec if this spec cannot be synthesized."""
        _check_spec(self.order, self.cutoff_hz, self.sample_rate_hz)


@dataclass(frozen=True)
class FilterCoefficients:
    """
    Recursive filter coefficients, highest-power coefficient first.

    `a` is the normalized denominator (a[0] == 1), `b` the numerator.
    Both hold order + 1 values.
    """
    a: Tuple[float, ...]
    b: Tuple[float, ...]
    order: int

    @property
    def dc_gain(self) -> float:
        return sum(self.b) / sum(self.a)


def _check_spec(order: int, cutoff_hz: float, sample_rate_hz: float) -> None:
    if not isinstance(order, numbers.Integral) or isinstance(order, bool):
        raise InvalidSpec(f"Filter order must be an integer, got {order!r}")
    if order < 1 or order > MAX_ORDER:
        raise InvalidSpec(f"Filter order {order} outside supported range 1..{MAX_ORDER}")
    if not sample_rate_hz > 0.0:
        raise InvalidSpec(f"Sample rate must be positive, got {sample_rate_hz}")
    if not cutoff_hz > 0.0:
        raise InvalidSpec(f"Cutoff frequency must be positive, got {cutoff_hz}")
    if cutoff_hz >= sample_rate_hz / 2.0:
        raise InvalidSpec(
            f"Cutoff {cutoff_hz:.3f} Hz must be below Nyquist ({sample_rate_hz / 2.0:.3f} Hz)"
        )


def poly_from_roots(roots: Sequence[complex]) -> List[complex]:
    """
    Coefficients of the monic polynomial with the given roots.

    Multiplies out (z - r) for every root, keeping full complex precision.

    Returns:
        Coefficients, highest power first (length len(roots) + 1)
    """
    # Built lowest power first, reversed at the end
    result = [complex(1.0, 0.0)]
    for root in roots:
        factor = (-root, complex(1.0, 0.0))
        product = [complex(0.0, 0.0)] * (len(result) + 1)
        for i, p in enumerate(result):
            for j, q in enumerate(factor):
                product[i + j] += p * q
        result = product
    result.reverse()
    return result


def analog_poles(order: int) -> List[complex]:
    """Unit-circle Butterworth poles in the left half-plane."""
    poles = []
    for k in range(1, order + 1):
        theta = (2 * k - 1) * math.pi / (2 * order)
        poles.append(complex(-math.sin(theta), math.cos(theta)))
    return poles


def synthesize(order: int, cutoff_hz: float, sample_rate_hz: float) -> FilterCoefficients:
    """
    Design a digital Butterworth low-pass filter.

    Args:
        order: Filter order N (1..MAX_ORDER)
        cutoff_hz: Cutoff frequency in Hz, below sample_rate_hz / 2
        sample_rate_hz: Rate at which the filter will be stepped

    Returns:
        FilterCoefficients with a[0] == 1 and unity DC gain

    Raises:
        InvalidSpec: order out of range or cutoff at/above Nyquist
    """
    _check_spec(order, cutoff_hz, sample_rate_hz)
    order = int(order)
    fs = float(sample_rate_hz)

    # Pre-warp so the digital cutoff lands on the requested frequency
    warped = fs / math.pi * math.tan(math.pi * cutoff_hz / fs)
    scale = 2.0 * math.pi * warped

    digital_poles = []
    for p in analog_poles(order):
        p = p * scale
        digital_poles.append((1.0 + p / (2.0 * fs)) / (1.0 - p / (2.0 * fs)))

    a_complex = poly_from_roots(digital_poles)
    b_complex = poly_from_roots([complex(-1.0, 0.0)] * order)

    gain = sum(a_complex) / sum(b_complex)
    b_complex = [c * gain for c in b_complex]

    a = tuple(c.real for c in a_complex)
    b = tuple(c.real for c in b_complex)

    assert abs(a[0] - 1.0) <= LEADING_COEFF_TOLERANCE, f"a[0] = {a[0]!r}"
    return FilterCoefficients(a=a, b=b, order=order)


def synthesize_spec(spec: FilterSpec) -> FilterCoefficients:
    """Synthesize coefficients for a FilterSpec (cutoff given in rad/s)."""
    return synthesize(spec.order, spec.cutoff_hz, spec.sample_rate_hz)


if __name__ == "__main__":
    print("Testing synthesize:")

    for n in (1, 2, 4):
        c = synthesize(n, 70.0, 400.0)
        print(f"\nOrder {n}, fc=70 Hz, fs=400 Hz")
        print("   a =", ", ".join(f"{v:+.6f}" for v in c.a))
        print("   b =", ", ".join(f"{v:+.6f}" for v in c.b))
        print(f"   DC gain = {c.dc_gain:.9f}")
