import math

import numpy as np
import pytest

from cortical_column.integrator import SRK4Integrator, combine, A, WEIGHTS
from cortical_column.noise import FixedSequenceNoise, GaussianNoise


def zero_rhs(y):
    return np.zeros_like(y)


def test_coefficients():
    assert A == (0.5, 0.5, 1.0, 1.0)
    np.testing.assert_array_equal(WEIGHTS, [-3, 2, 4, 2, 1])
    assert WEIGHTS.sum() / 6 == 1.0


def test_combine_single_buffer():
    c = 2.0
    # stage values for k1..k4 = 1
    buffer = np.array([c, c + 0.5, c + 0.5, c + 1.0, c + 1.0])
    assert combine(buffer) == pytest.approx(c + 1.0)


def test_unit_stage_increments_advance_by_one():
    dt = 0.5
    initial = np.array([0.0, 1.0, -2.0])
    integrator = SRK4Integrator(lambda y: np.full_like(y, 1.0 / dt), initial, dt,
                                noise=FixedSequenceNoise([0.0]))
    integrator.step()
    np.testing.assert_allclose(integrator.current, initial + 1.0)


def test_matches_classical_rk4_on_linear_decay():
    dt = 0.1
    integrator = SRK4Integrator(lambda y: -y, np.array([1.0]), dt)
    integrator.step()
    expected = sum((-dt) ** k / math.factorial(k) for k in range(5))
    assert integrator.current[0] == pytest.approx(expected, rel=1e-13)


def test_stage_slots_hold_stage_values():
    dt = 0.1
    integrator = SRK4Integrator(lambda y: -y, np.array([1.0]), dt)
    integrator.step()
    buffer = integrator.buffer(0)
    assert buffer[1] == pytest.approx(0.95)
    assert buffer[2] == pytest.approx(0.9525)
    assert buffer[3] == pytest.approx(0.90475)
    assert buffer[4] == pytest.approx(0.909525)


def test_fourth_order_convergence():
    def error(dt):
        integrator = SRK4Integrator(lambda y: -y, np.array([1.0]), dt)
        for _ in range(int(round(1.0 / dt))):
            integrator.step()
        return abs(integrator.current[0] - math.exp(-1.0))

    ratio = error(0.1) / error(0.05)
    assert 12 < ratio < 20


def test_noise_added_once_after_combination():
    dt = 0.04
    initial = np.array([1.0, 2.0, 3.0])
    integrator = SRK4Integrator(zero_rhs, initial, dt, noise=FixedSequenceNoise([2.0]),
                                noise_index=1, noise_scale=3.0)
    integrator.step()

    increment = 3.0 * math.sqrt(dt) * 2.0
    assert integrator.last_increment == pytest.approx(increment)
    np.testing.assert_allclose(integrator.current, [1.0, 2.0 + increment, 3.0])
    # stages never saw the noise
    np.testing.assert_array_equal(integrator.buffer(1)[1:], [2.0, 2.0, 2.0, 2.0])


def test_one_draw_per_step():
    noise = FixedSequenceNoise([0.1, -0.2])
    integrator = SRK4Integrator(zero_rhs, np.zeros(2), 0.1, noise=noise,
                                noise_index=0, noise_scale=1.0)
    for _ in range(7):
        integrator.step()
    assert noise.n_draws == 7


def test_no_noise_without_noise_index():
    integrator = SRK4Integrator(zero_rhs, np.ones(3), 0.1, noise=FixedSequenceNoise([5.0]),
                                noise_scale=10.0)
    integrator.step()
    np.testing.assert_array_equal(integrator.current, np.ones(3))


def increment_variance(dt, scale, n_steps=20000, seed=1):
    integrator = SRK4Integrator(zero_rhs, np.zeros(1), dt, noise=GaussianNoise(seed),
                                noise_index=0, noise_scale=scale)
    trajectory = np.empty(n_steps + 1)
    trajectory[0] = 0.0
    for i in range(n_steps):
        integrator.step()
        trajectory[i + 1] = integrator.current[0]
    return np.var(np.diff(trajectory))


@pytest.mark.parametrize("dt, scale", [(0.01, 1.0), (0.1, 1.0), (0.1, 0.5)])
def test_increment_variance_matches_euler_maruyama(dt, scale):
    assert increment_variance(dt, scale) == pytest.approx(scale ** 2 * dt, rel=0.05)


def test_increment_variance_scales_linearly_with_dt():
    ratio = increment_variance(0.2, 1.0, seed=3) / increment_variance(0.05, 1.0, seed=4)
    assert ratio == pytest.approx(4.0, rel=0.08)


def test_reset_clears_stages():
    integrator = SRK4Integrator(lambda y: -y, np.array([1.0, 2.0]), 0.1)
    integrator.step()
    integrator.reset(np.array([5.0, 6.0]))
    np.testing.assert_array_equal(integrator.buffers, [[5, 0, 0, 0, 0], [6, 0, 0, 0, 0]])


@pytest.mark.parametrize("dt", [0.0, -0.1])
def test_rejects_non_positive_step(dt):
    with pytest.raises(ValueError):
        SRK4Integrator(zero_rhs, np.zeros(1), dt)


def test_non_finite_values_propagate_silently():
    integrator = SRK4Integrator(lambda y: y * np.inf, np.array([1.0]), 0.1)
    with np.errstate(all='ignore'):
        integrator.step()
    assert not np.isfinite(integrator.current[0])
