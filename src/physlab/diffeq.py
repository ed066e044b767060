"""
Closed-form ODE steppers for unconstrained objects.

Two calling conventions are supported, both taken over from the teaching site:

* plane steppers ``euler``/``rk4`` use ``accel(t, prev_acc, vel, pos)``,
* N-dimensional steppers ``rk4_n``/``verlet`` use ``diffeq(t, pos, vel)``.

All of them return a new ``(position, velocity)`` pair of numpy arrays and never
modify their inputs. They are independent of the constraint machinery.
"""

from __future__ import annotations

from typing import Callable, Dict, Tuple

import numpy as np

State = Tuple[np.ndarray, np.ndarray]

# accel(t, previous acceleration, velocity, position) -> acceleration
MotionEq = Callable[[float, np.ndarray, np.ndarray, np.ndarray], np.ndarray]

# diffeq(t, position, velocity) -> acceleration
DiffEq = Callable[[float, np.ndarray, np.ndarray], np.ndarray]


def euler(accel: MotionEq, pos, vel, t: float, dt: float) -> State:
    """Explicit Euler: position moves with the old velocity."""
    p = np.asarray(pos, dtype=float)
    v = np.asarray(vel, dtype=float)
    acc = np.asarray(accel(t, np.zeros_like(p), v, p), dtype=float)
    return p + v * dt, v + acc * dt


def rk4(accel: MotionEq, pos, vel, t: float, dt: float) -> State:
    """Classical RK4 on the pair ``(pos, vel)`` for a plane motion equation."""
    zero = np.zeros_like(np.asarray(pos, dtype=float))
    return _rk4(lambda t_, p_, v_: accel(t_, zero, v_, p_), pos, vel, t, dt)


def symplectic(accel: MotionEq, pos, vel, t: float, dt: float) -> State:
    """Velocity Verlet for a plane motion equation."""
    zero = np.zeros_like(np.asarray(pos, dtype=float))
    return verlet(lambda t_, p_, v_: accel(t_, zero, v_, p_), pos, vel, t, dt)


def rk4_n(diffeq: DiffEq, pos, vel, t: float, dt: float) -> State:
    """Classical RK4 for an N-dimensional ``diffeq(t, pos, vel)``."""
    return _rk4(diffeq, pos, vel, t, dt)


def verlet(diffeq: DiffEq, pos, vel, t: float, dt: float) -> State:
    """Velocity Verlet; the closing acceleration is evaluated with the old velocity."""
    p = np.asarray(pos, dtype=float)
    v = np.asarray(vel, dtype=float)

    a_t = np.asarray(diffeq(t, p, v), dtype=float)
    half_v = v + a_t * (0.5 * dt)
    new_p = p + half_v * dt
    a_tdt = np.asarray(diffeq(t + dt, new_p, v), dtype=float)
    return new_p, half_v + a_tdt * (0.5 * dt)


def _rk4(diffeq: DiffEq, pos, vel, t: float, dt: float) -> State:
    p = np.asarray(pos, dtype=float)
    v = np.asarray(vel, dtype=float)
    half = 0.5 * dt

    def dzdt(t_, p_, v_):
        return v_, np.asarray(diffeq(t_, p_, v_), dtype=float)

    k1p, k1v = dzdt(t, p, v)
    k2p, k2v = dzdt(t + half, p + k1p * half, v + k1v * half)
    k3p, k3v = dzdt(t + half, p + k2p * half, v + k2v * half)
    k4p, k4v = dzdt(t + dt, p + k3p * dt, v + k3v * dt)

    new_p = p + (k1p + 2 * k2p + 2 * k3p + k4p) * (dt / 6)
    new_v = v + (k1v + 2 * k2v + 2 * k3v + k4v) * (dt / 6)
    return new_p, new_v


# Plane steppers by name, used by the simple objects
SOLVERS: Dict[str, Callable[..., State]] = {
    "euler": euler,
    "symplectic": symplectic,
    "rk4": rk4,
}
