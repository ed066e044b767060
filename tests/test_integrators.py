import math
import sys

import pytest

sys.path.append("src")

from physlab.integrators import EulerIntegrator, RK4Integrator, SymplecticIntegrator, get_integrator
from physlab.matrix import Matrix, NumericalBlowup


def spring(q, dq, t):
    """Unit harmonic oscillator: a = -q."""
    return q.clone().negate()


def gravity(q, dq, t):
    return Matrix.from_vector([0.0, -9.81])


def run_oscillator(integrator, dt, steps):
    q = Matrix.from_vector([1.0])
    dq = Matrix.from_vector([0.0])
    for i in range(steps):
        integrator.advance(spring, q, dq, i * dt, dt)
    return q.at(0), dq.at(0)


# --------------------------------------------------------------------------- #
# Accuracy
# --------------------------------------------------------------------------- #


def test_rk4_tracks_exact_oscillator():
    """RK4 stays on cos(t) over a full period."""
    dt = 0.01
    steps = int(round(2 * math.pi / dt))
    q, dq = run_oscillator(RK4Integrator(), dt, steps)
    t = steps * dt
    assert math.isclose(q, math.cos(t), abs_tol=1e-6)
    assert math.isclose(dq, -math.sin(t), abs_tol=1e-6)


def test_euler_is_much_less_accurate_than_rk4():
    dt = 0.05
    steps = 200
    t = steps * dt
    q_euler, _ = run_oscillator(EulerIntegrator(), dt, steps)
    q_rk4, _ = run_oscillator(RK4Integrator(), dt, steps)
    err_euler = abs(q_euler - math.cos(t))
    err_rk4 = abs(q_rk4 - math.cos(t))
    assert err_euler > 1e-3
    assert err_rk4 < err_euler / 100


def test_symplectic_energy_stays_bounded():
    """Leapfrog keeps the oscillator energy close to 1/2 over many periods."""
    q = Matrix.from_vector([1.0])
    dq = Matrix.from_vector([0.0])
    integrator = SymplecticIntegrator()
    dt = 0.01
    worst = 0.0
    for i in range(10000):
        integrator.advance(spring, q, dq, i * dt, dt)
        energy = 0.5 * (q.at(0) ** 2 + dq.at(0) ** 2)
        worst = max(worst, abs(energy - 0.5))
    assert worst < 1e-3


@pytest.mark.parametrize("integrator", [RK4Integrator(), SymplecticIntegrator()])
def test_constant_acceleration_is_exact(integrator):
    q = Matrix.from_vector([0.0, 0.0])
    dq = Matrix.from_vector([2.0, 5.0])
    dt = 0.1
    for i in range(10):
        integrator.advance(gravity, q, dq, i * dt, dt)
    assert math.isclose(q.at(0), 2.0, abs_tol=1e-9)
    assert math.isclose(q.at(1), 5.0 - 0.5 * 9.81, abs_tol=1e-9)
    assert math.isclose(dq.at(1), 5.0 - 9.81, abs_tol=1e-9)


def test_euler_updates_velocity_before_position():
    q = Matrix.from_vector([0.0, 0.0])
    dq = Matrix.from_vector([0.0, 0.0])
    EulerIntegrator().advance(gravity, q, dq, 0.0, 0.5)
    assert dq.data.tolist() == [0.0, -9.81 * 0.5]
    assert math.isclose(q.at(1), -9.81 * 0.25)


# --------------------------------------------------------------------------- #
# Stage times and failure propagation
# --------------------------------------------------------------------------- #


def test_rk4_stage_times():
    seen = []

    def record(q, dq, t):
        seen.append(t)
        return Matrix.empty(1)

    RK4Integrator().advance(record, Matrix.empty(1), Matrix.empty(1), 1.0, 0.2)
    assert seen == pytest.approx([1.0, 1.1, 1.1, 1.2])


def test_symplectic_second_kick_uses_half_step_time():
    seen = []

    def record(q, dq, t):
        seen.append(t)
        return Matrix.empty(1)

    SymplecticIntegrator().advance(record, Matrix.empty(1), Matrix.empty(1), 0.0, 0.2)
    assert seen == pytest.approx([0.0, 0.1])


def test_integrators_do_not_touch_callback_inputs_outside_state():
    """The callback result is consumed; the caller's state is the only thing mutated."""
    q = Matrix.from_vector([1.0])
    dq = Matrix.from_vector([0.0])
    RK4Integrator().advance(spring, q, dq, 0.0, 0.1)
    assert math.isclose(q.at(0), math.cos(0.1), abs_tol=1e-6)


def test_blowup_in_callback_propagates():
    def explode(q, dq, t):
        return Matrix.from_vector([1.0]).divide(0)

    with pytest.raises(NumericalBlowup):
        RK4Integrator().advance(explode, Matrix.empty(1), Matrix.empty(1), 0.0, 0.1)


# --------------------------------------------------------------------------- #
# Lookup
# --------------------------------------------------------------------------- #


def test_get_integrator_by_name():
    assert isinstance(get_integrator("euler"), EulerIntegrator)
    assert isinstance(get_integrator(" Symplectic "), SymplecticIntegrator)
    assert isinstance(get_integrator("RK4"), RK4Integrator)


def test_get_integrator_unknown_name():
    with pytest.raises(ValueError, match="Unknown integrator"):
        get_integrator("midpoint")
