"""
Direct-form IIR filtering for sensorfilt.

DirectFormIIRFilter applies a FilterCoefficients set to a scalar stream,
one sample at a time. FilterBank runs one independent filter per vector
axis with a shared coefficient set.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from .butterworth import FilterCoefficients, LEADING_COEFF_TOLERANCE, MAX_ORDER
from .errors import PreconditionViolation

# Order-0 coefficients: process(x) == x
PASSTHROUGH = FilterCoefficients(a=(1.0,), b=(1.0,), order=0)


class DirectFormIIRFilter:
    """
    Recursive filter with fixed-capacity history.

    Storage for coefficients and history is sized once for max_order and
    never reallocated; only the first order + 1 slots are active.

    Coefficients are stored highest-power first, which after dividing the
    transfer function by z^N makes index k the z^-k term. Histories are
    newest first, so coefficient k always pairs with the sample k steps old:

        y[n] = sum(b[k] * x[n-k], k=0..N) - sum(a[k] * y[n-k], k=1..N)

    Usage:
        filt = DirectFormIIRFilter(synthesize(2, 70.0, 400.0))
        filt.reset(first_sample)
        smoothed = filt.process(sample)
    """

    def __init__(self, coefficients: Optional[FilterCoefficients] = None, max_order: int = MAX_ORDER):
        if max_order < 0:
            raise PreconditionViolation(f"max_order must be >= 0, got {max_order}")
        self.max_order = max_order
        size = max_order + 1

        self._a: List[float] = [0.0] * size
        self._b: List[float] = [0.0] * size
        self._x_hist: List[float] = [0.0] * size
        self._y_hist: List[float] = [0.0] * size
        self._order = 0
        self._ready = False

        if coefficients is not None:
            self.set_coefficients(coefficients)

    @property
    def order(self) -> int:
        return self._order

    @property
    def is_ready(self) -> bool:
        return self._ready

    def set_coefficients(self, coefficients: FilterCoefficients) -> None:
        """
        Load a coefficient set and clear all history.

        Every slot of the backing storage is rewritten, so nothing from a
        previous (possibly higher-order) configuration survives.

        Raises:
            PreconditionViolation: order above max_order, length mismatch,
                                   or a[0] != 1
        """
        order = coefficients.order
        if order < 0 or order > self.max_order:
            raise PreconditionViolation(
                f"Filter order {order} outside 0..{self.max_order}"
            )
        if len(coefficients.a) != order + 1 or len(coefficients.b) != order + 1:
            raise PreconditionViolation(
                f"Expected {order + 1} coefficients, got a={len(coefficients.a)} b={len(coefficients.b)}"
            )
        if abs(coefficients.a[0] - 1.0) > LEADING_COEFF_TOLERANCE:
            raise PreconditionViolation(f"Expected a[0] == 1.0, got {coefficients.a[0]!r}")

        for i in range(self.max_order + 1):
            active = i <= order
            self._a[i] = float(coefficients.a[i]) if active else 0.0
            self._b[i] = float(coefficients.b[i]) if active else 0.0
            self._x_hist[i] = 0.0
            self._y_hist[i] = 0.0

        self._order = order
        self._ready = True

    def reset(self, value: float = 0.0) -> None:
        """Fill the active input and output history with value."""
        self._require_ready()
        value = float(value)
        for i in range(self._order + 1):
            self._x_hist[i] = value
            self._y_hist[i] = value

    def process(self, x: float) -> float:
        """
        Filter one sample.

        Args:
            x: New input sample

        Returns:
            Filtered output sample
        """
        self._require_ready()
        n = self._order
        a, b = self._a, self._b
        xh, yh = self._x_hist, self._y_hist

        for i in range(n, 0, -1):
            xh[i] = xh[i - 1]
        xh[0] = float(x)

        y = 0.0
        for k in range(n + 1):
            y += b[k] * xh[k]
        # yh[0] still holds y[n-1] here
        for k in range(1, n + 1):
            y -= a[k] * yh[k - 1]

        for i in range(n, 0, -1):
            yh[i] = yh[i - 1]
        yh[0] = y

        return y

    def process_buffer(self, samples: Iterable[float]) -> List[float]:
        """Filter a sequence of samples in order."""
        return [self.process(x) for x in samples]

    def get_history(self) -> Tuple[Tuple[float, ...], Tuple[float, ...]]:
        """
        Get the active history.

        Returns:
            Tuple of (input_history, output_history), newest first
        """
        n = self._order + 1
        return (tuple(self._x_hist[:n]), tuple(self._y_hist[:n]))

    def _require_ready(self) -> None:
        if not self._ready:
            raise PreconditionViolation("Filter used before set_coefficients()")


class FilterBank:
    """
    One DirectFormIIRFilter per vector axis, sharing one coefficient set.

    Axes never interact.
    """

    def __init__(self, coefficients: FilterCoefficients, axes: int = 3):
        if axes < 1:
            raise PreconditionViolation(f"FilterBank needs at least one axis, got {axes}")
        self.coefficients = coefficients
        self.filters = [DirectFormIIRFilter(coefficients) for _ in range(axes)]

    @classmethod
    def passthrough(cls, axes: int = 3) -> "FilterBank":
        """Bank of order-0 filters (output equals input)."""
        return cls(PASSTHROUGH, axes=axes)

    @property
    def axes(self) -> int:
        return len(self.filters)

    @property
    def order(self) -> int:
        return self.coefficients.order

    def process_vector(self, vector: Sequence[float]) -> Tuple[float, ...]:
        if len(vector) != len(self.filters):
            raise PreconditionViolation(
                f"Expected a {len(self.filters)}-vector, got {len(vector)} values"
            )
        return tuple(f.process(v) for f, v in zip(self.filters, vector))

    def reset(self, value: float = 0.0) -> None:
        for f in self.filters:
            f.reset(value)


if __name__ == "__main__":
    import random

    from .butterworth import synthesize

    print("Testing DirectFormIIRFilter:")
    filt = DirectFormIIRFilter(synthesize(2, 11.1, 400.0))

    true_value = 9.81
    filt.reset(true_value)
    print(f"True value: {true_value}")
    print("Measurement -> Filtered:")
    for _ in range(20):
        m = true_value + random.gauss(0, 0.5)
        print(f"  {m:.3f} -> {filt.process(m):.3f}")
