import math

import numpy as np
import pytest
from scipy import signal

from sensorfilt import FilterSpec, InvalidSpec, MAX_ORDER, synthesize, synthesize_spec
from sensorfilt.butterworth import poly_from_roots

VALID_GRID = [
    (order, fc, 400.0)
    for order in range(1, 7)
    for fc in (10.0, 40.0, 70.0, 120.0, 180.0)
]


def test_poly_from_roots_highest_power_first():
    """(z - 1)(z - 2) = z^2 - 3z + 2"""
    coeffs = poly_from_roots([1.0, 2.0])
    assert [c.real for c in coeffs] == [1.0, -3.0, 2.0]


def test_poly_from_roots_conjugate_pair_is_real():
    coeffs = poly_from_roots([complex(0.5, 0.5), complex(0.5, -0.5)])
    assert all(abs(c.imag) < 1e-15 for c in coeffs)
    assert np.allclose([c.real for c in coeffs], [1.0, -1.0, 0.5])


@pytest.mark.parametrize("order,fc,fs", VALID_GRID)
def test_leading_coefficient_and_dc_gain(order, fc, fs):
    c = synthesize(order, fc, fs)
    assert len(c.a) == order + 1
    assert len(c.b) == order + 1
    assert c.order == order
    assert abs(c.a[0] - 1.0) <= 1e-9
    assert sum(c.b) / sum(c.a) == pytest.approx(1.0, rel=1e-6)


@pytest.mark.parametrize("order,fc,fs", VALID_GRID + [(MAX_ORDER, 70.0, 400.0), (MAX_ORDER, 150.0, 800.0)])
def test_poles_inside_unit_circle(order, fc, fs):
    c = synthesize(order, fc, fs)
    poles = np.roots(c.a)
    assert len(poles) == order
    assert np.all(np.abs(poles) < 1.0), f"Unstable poles: {np.abs(poles)}"


@pytest.mark.parametrize("order,fc,fs", [(1, 20.0, 400.0), (2, 70.0, 400.0), (3, 50.0, 800.0), (4, 11.1, 400.0)])
def test_matches_scipy_reference(order, fc, fs):
    """Same design as scipy's digital Butterworth (pre-warped bilinear)."""
    b_ref, a_ref = signal.butter(order, fc, btype='low', fs=fs)
    c = synthesize(order, fc, fs)
    np.testing.assert_allclose(c.a, a_ref, rtol=1e-8, atol=1e-12)
    np.testing.assert_allclose(c.b, b_ref, rtol=1e-8, atol=1e-12)


def test_numerator_is_binomial_times_gain():
    c = synthesize(3, 40.0, 400.0)
    k = c.b[0]
    np.testing.assert_allclose(c.b, [k, 3 * k, 3 * k, k], rtol=1e-12)


def test_synthesize_is_deterministic():
    assert synthesize(4, 33.0, 400.0) == synthesize(4, 33.0, 400.0)


def test_synthesize_spec_converts_rad_per_sec():
    spec = FilterSpec(order=2, cutoff_radps=2 * math.pi * 70.0, sample_rate_hz=400.0)
    assert spec.cutoff_hz == pytest.approx(70.0)
    c = synthesize_spec(spec)
    ref = synthesize(2, 70.0, 400.0)
    np.testing.assert_allclose(c.a, ref.a, rtol=1e-12)
    np.testing.assert_allclose(c.b, ref.b, rtol=1e-12)


@pytest.mark.parametrize("order,fc,fs", [
    (0, 10.0, 400.0),
    (-1, 10.0, 400.0),
    (MAX_ORDER + 1, 10.0, 400.0),
    (2, 200.0, 400.0),
    (2, 250.0, 400.0),
    (2, 0.0, 400.0),
    (2, 10.0, 0.0),
    (2.0, 10.0, 400.0),
])
def test_invalid_spec_rejected(order, fc, fs):
    with pytest.raises(InvalidSpec):
        synthesize(order, fc, fs)


def test_invalid_spec_is_value_error():
    with pytest.raises(ValueError):
        synthesize(2, 300.0, 400.0)


def test_filter_spec_validate():
    FilterSpec(2, 70.0, 400.0).validate()
    with pytest.raises(InvalidSpec):
        # 1300 rad/s ~ 207 Hz, above Nyquist at 400 Hz
        FilterSpec(2, 1300.0, 400.0).validate()


def test_numpy_integer_order_accepted():
    c = synthesize(np.int64(3), 20.0, 400.0)
    assert c.order == 3
    assert type(c.order) is int
    assert c.a == synthesize(3, 20.0, 400.0).a
    FilterSpec(np.int32(2), 70.0, 400.0).validate()
