import math
import sys

import numpy as np
import pytest

sys.path.append("src")

from physlab.diffeq import SOLVERS, euler, rk4, rk4_n, symplectic, verlet


def pendulum_accel(t, acc, vel, pos, length=1.0, g=9.81):
    return np.array([-g / length * math.sin(pos[0]), 0.0])


def pendulum_energy(pos, vel, length=1.0, g=9.81):
    return 0.5 * (length * vel[0]) ** 2 - g * length * math.cos(pos[0])


def integrate(stepper, steps=1000, dt=0.01, theta=0.5):
    pos = np.array([theta, 0.0])
    vel = np.array([0.0, 0.0])
    for i in range(steps):
        pos, vel = stepper(pendulum_accel, pos, vel, i * dt, dt)
    return pos, vel


def test_rk4_energy_error_is_an_order_smaller_than_euler():
    """Undamped pendulum: RK4 drifts at least ten times less than explicit Euler."""
    e0 = pendulum_energy(np.array([0.5, 0.0]), np.array([0.0, 0.0]))
    pos_e, vel_e = integrate(euler)
    pos_r, vel_r = integrate(rk4)
    err_euler = abs(pendulum_energy(pos_e, vel_e) - e0)
    err_rk4 = abs(pendulum_energy(pos_r, vel_r) - e0)
    assert err_rk4 < err_euler / 10
    assert err_rk4 < 1e-6


def test_euler_moves_position_with_old_velocity():
    pos, vel = euler(lambda t, a, v, p: np.array([0.0, -10.0]), [0.0, 0.0], [1.0, 2.0], 0.0, 0.1)
    assert np.allclose(pos, [0.1, 0.2])
    assert np.allclose(vel, [1.0, 1.0])


def test_steppers_do_not_modify_inputs():
    pos = np.array([0.5, 0.0])
    vel = np.array([0.1, 0.0])
    for stepper in (euler, rk4, symplectic):
        stepper(pendulum_accel, pos, vel, 0.0, 0.01)
    assert pos.tolist() == [0.5, 0.0]
    assert vel.tolist() == [0.1, 0.0]


def test_rk4_n_handles_three_dimensions():
    """Projectile in 3D under constant gravity is integrated exactly."""

    def diffeq(t, p, v):
        return np.array([0.0, 0.0, -9.81])

    p = np.array([0.0, 0.0, 0.0])
    v = np.array([1.0, 2.0, 3.0])
    for i in range(10):
        p, v = rk4_n(diffeq, p, v, i * 0.1, 0.1)
    assert np.allclose(p, [1.0, 2.0, 3.0 - 0.5 * 9.81])
    assert np.allclose(v, [1.0, 2.0, 3.0 - 9.81])


def test_verlet_keeps_oscillator_energy():
    def diffeq(t, p, v):
        return -p

    p = np.array([1.0])
    v = np.array([0.0])
    for i in range(5000):
        p, v = verlet(diffeq, p, v, i * 0.01, 0.01)
    assert abs(0.5 * (p[0] ** 2 + v[0] ** 2) - 0.5) < 1e-3


def test_rk4_passes_time_to_the_motion_equation():
    """a = t integrates to v = t^2 / 2."""
    pos, vel = rk4(lambda t, a, v, p: np.array([t]), [0.0], [0.0], 0.0, 1.0)
    assert vel[0] == pytest.approx(0.5)
    assert pos[0] == pytest.approx(1 / 6)


def test_solver_lookup():
    assert SOLVERS["euler"] is euler
    assert SOLVERS["rk4"] is rk4
    assert SOLVERS["symplectic"] is symplectic
