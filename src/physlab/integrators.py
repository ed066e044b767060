"""
Fixed-step integrators for generalized coordinates.

Every integrator advances ``(q, dq)`` from ``t`` to ``t + dt`` in place, given
an acceleration callback ``accel_fn(q, dq, t) -> Matrix``. The integrators keep
no state between calls, so one instance can be shared by many systems.
``accel_fn`` must return a fresh matrix and must not modify its arguments.

If ``accel_fn`` raises (typically :class:`~physlab.matrix.NumericalBlowup`) the
exception propagates and ``q``/``dq`` may be partially updated.
"""

from __future__ import annotations

from typing import Callable, Dict, Protocol, Type

from .matrix import Matrix

# Acceleration callback: (q, dq, t) -> generalized acceleration
AccelFn = Callable[[Matrix, Matrix, float], Matrix]


class Integrator(Protocol):
    name: str

    def advance(self, accel_fn: AccelFn, q: Matrix, dq: Matrix, t: float, dt: float) -> None:
        ...


class EulerIntegrator:
    """First-order Euler step, velocity updated before position."""

    name = "euler"

    def advance(self, accel_fn: AccelFn, q: Matrix, dq: Matrix, t: float, dt: float) -> None:
        a = accel_fn(q, dq, t)
        dq.add(a.multiply(dt))
        q.add(dq.clone().multiply(dt))


class SymplecticIntegrator:
    """
    Two-stage kick-drift-kick (leapfrog) step.

    The second kick uses the acceleration at ``t + dt/2`` evaluated from the
    drifted position and the half-step velocity. Energy stays bounded over long
    runs, unlike the plain Euler step.
    """

    name = "symplectic"

    def advance(self, accel_fn: AccelFn, q: Matrix, dq: Matrix, t: float, dt: float) -> None:
        half = 0.5 * dt

        # kick
        dq.add(accel_fn(q, dq, t).multiply(half))
        # drift
        q.add(dq.clone().multiply(dt))
        # kick
        dq.add(accel_fn(q, dq, t + half).multiply(half))


class RK4Integrator:
    """
    Classical fourth-order Runge-Kutta on the combined state ``(q, dq)``.

    The derivative of the combined state is ``(dq, accel_fn(q, dq, t))``; the
    four stages are weighted 1:2:2:1 and scaled by ``dt / 6``.
    """

    name = "rk4"

    def advance(self, accel_fn: AccelFn, q: Matrix, dq: Matrix, t: float, dt: float) -> None:
        half = 0.5 * dt

        def stage(base_q: Matrix, base_dq: Matrix, kq: Matrix, kdq: Matrix, h: float):
            # state at base + h * k, returned as (position, velocity)
            return (
                base_q.clone().add(kq.clone().multiply(h)),
                base_dq.clone().add(kdq.clone().multiply(h)),
            )

        k1q, k1v = dq.clone(), accel_fn(q, dq, t)

        q2, v2 = stage(q, dq, k1q, k1v, half)
        k2q, k2v = v2, accel_fn(q2, v2, t + half)

        q3, v3 = stage(q, dq, k2q, k2v, half)
        k3q, k3v = v3, accel_fn(q3, v3, t + half)

        q4, v4 = stage(q, dq, k3q, k3v, dt)
        k4q, k4v = v4, accel_fn(q4, v4, t + dt)

        total_q = k1q.add(k2q.multiply(2)).add(k3q.multiply(2)).add(k4q)
        total_v = k1v.add(k2v.multiply(2)).add(k3v.multiply(2)).add(k4v)

        q.add(total_q.multiply(dt / 6))
        dq.add(total_v.multiply(dt / 6))


INTEGRATORS: Dict[str, Type] = {
    EulerIntegrator.name: EulerIntegrator,
    SymplecticIntegrator.name: SymplecticIntegrator,
    RK4Integrator.name: RK4Integrator,
}


def get_integrator(name: str) -> Integrator:
    """Return a new integrator for ``"euler"``, ``"symplectic"`` or ``"rk4"``."""
    try:
        return INTEGRATORS[name.strip().lower()]()
    except KeyError:
        raise ValueError(f"Unknown integrator {name!r}. Expected one of: {', '.join(sorted(INTEGRATORS))}") from None
