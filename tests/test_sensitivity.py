import numpy as np
import pytest

from lorenztraj.analysis.divergence import growth_rate, perturb, sensitivity, separation
from lorenztraj.core.chaos.lorenz import Parameters
from lorenztraj.core.errors import InvalidArgument
from lorenztraj.core.integrator import integrate


def test_nearby_starts_diverge():
    result = sensitivity(Parameters.classic(), (0.1, 0.1, 0.1), 0.01, 3000, delta=1e-5)
    assert result.initial_distance == pytest.approx(1e-5, rel=1e-6)
    assert result.max_distance > 1e3 * 1e-5
    assert result.diverged
    assert result.first_exceed_index > 0
    assert result.growth_factor > 1e3
    assert result.growth_rate is not None and result.growth_rate > 0
    assert result.reference.is_finite() and result.perturbed.is_finite()


def test_separation_matches_manual_norm():
    params = Parameters.classic()
    a = integrate(params, (0.1, 0.1, 0.1), 0.01, 50)
    b = integrate(params, (0.2, 0.1, 0.1), 0.01, 50)
    d = separation(a, b)
    assert d.shape == (51,)
    assert d[0] == pytest.approx(0.1)
    assert d[10] == pytest.approx(np.sqrt(((a.states[10] - b.states[10]) ** 2).sum()))


def test_separation_rejects_length_mismatch():
    params = Parameters.classic()
    a = integrate(params, (0.1, 0.1, 0.1), 0.01, 10)
    b = integrate(params, (0.1, 0.1, 0.1), 0.01, 11)
    with pytest.raises(InvalidArgument):
        separation(a, b)


def test_identical_starts_do_not_separate():
    params = Parameters.classic()
    a = integrate(params, (0.1, 0.1, 0.1), 0.01, 100)
    b = integrate(params, (0.1, 0.1, 0.1), 0.01, 100)
    assert not separation(a, b).any()


def test_perturb_axis():
    assert perturb((1.0, 2.0, 3.0), 0.5, axis=2) == (1.0, 2.0, 3.5)
    with pytest.raises(InvalidArgument):
        perturb((1.0, 2.0, 3.0), 0.5, axis=3)


def test_zero_delta_rejected():
    with pytest.raises(InvalidArgument):
        sensitivity(Parameters.classic(), (0.1, 0.1, 0.1), 0.01, 10, delta=0.0)


def test_growth_rate_recovers_exponential_slope():
    times = np.arange(50) * 0.1
    distances = 1e-6 * np.exp(0.9 * times)
    assert growth_rate(distances, times) == pytest.approx(0.9, rel=1e-6)


def test_growth_rate_needs_two_points():
    assert growth_rate(np.array([0.0, 0.0]), np.array([0.0, 1.0])) is None
    assert growth_rate(np.array([2.0, 3.0]), np.array([0.0, 1.0])) is None
