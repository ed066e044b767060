"""
Lagrange-multiplier constraint solver and constrained multi-body systems.

A constrained system is described by generalized coordinates ``q`` and a vector
of holonomic constraints ``C(q) = 0``. Each frame the external forces are
accumulated with :meth:`ConstrainedSystem.add_force` and consumed by
:meth:`ConstrainedSystem.tick`, which

1. computes a Baumgarte feedback term from the current residual ``C`` and its
   derivative ``dC`` (and their change since the previous tick),
2. advances the integrator with the constrained acceleration given by
   :class:`ConstraintSolver`,
3. clears the accumulated forces.

The problem-specific pieces (Jacobian, its time derivative, residuals, masses)
come from a :class:`ConstraintModel`; the pendulum, double pendulum and
cart-pole models are provided.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Union

import numpy as np

from .integrators import Integrator, RK4Integrator
from .logging_utils import get_logger
from .matrix import DimensionMismatch, Matrix

logger = get_logger("constraint")

VectorLike = Union[Matrix, Sequence[float]]


# =============================================================================
# PHYSICAL CONSTANTS AND CONFIGURATION
# =============================================================================


class PhysicalConstants:
    """Physical constants used by the bundled models."""

    # Standard gravitational acceleration
    GRAVITATIONAL_ACCELERATION = 9.81  # m/s²


@dataclass(frozen=True)
class Gains:
    """
    Stabilization gains of a constrained system.

    ``alpha`` and ``beta`` weight the residual and its derivative; ``d_alpha``
    and ``d_beta`` weight their change since the previous tick divided by
    ``dt``. Positive gains pull the state back toward ``C = 0``; all zero
    disables stabilization.
    """

    alpha: float = 0.0
    beta: float = 0.0
    d_alpha: float = 0.0
    d_beta: float = 0.0


# =============================================================================
# SOLVER
# =============================================================================


class ConstraintSolver:
    """Solves for the Lagrange multipliers and returns the constrained acceleration."""

    @staticmethod
    def solve(imass: Matrix, J: Matrix, dJ: Matrix, ctt: Matrix, forces: Matrix, velocity: Matrix, feedback: Optional[Matrix] = None) -> Matrix:
        """
        Compute the generalized acceleration under the constraints.

        The multipliers solve ``-(J W Jᵗ) λ = ctt + dJ·dq + J W Q`` and the
        acceleration is ``W (Jᵗ λ + Q + feedback)``. No argument is modified.

        Args:
            imass: Inverse mass matrix W
            J: Jacobian of the constraint vector with respect to q
            dJ: Time derivative of the Jacobian
            ctt: Second partial time derivative of the constraints at (q, t)
            forces: Applied generalized forces Q
            velocity: Generalized velocity dq
            feedback: Optional stabilization force added to Q after the solve

        Returns:
            New acceleration vector
        """
        lhs = J.clone().transpose().multiply_left(imass).multiply_left(J).negate()

        rhs = ctt.clone()
        rhs.add(velocity.clone().multiply_left(dJ))
        rhs.add(forces.clone().multiply_left(imass).multiply_left(J))

        multipliers = lhs.solve(rhs)

        acceleration = multipliers.multiply_left(J.clone().transpose())
        acceleration.add(forces)
        if feedback is not None:
            acceleration.add(feedback)
        return acceleration.multiply_left(imass)


# =============================================================================
# MODEL INTERFACE
# =============================================================================


class ConstraintModel(Protocol):
    """Problem-specific part of a constrained system."""

    dof: int
    imass: Matrix

    def jacobian(self, q: Matrix, dq: Matrix, t: float) -> Matrix:
        ...

    def jacobian_dot(self, q: Matrix, dq: Matrix, t: float) -> Matrix:
        ...

    def ctt(self, q: Matrix, t: float) -> Matrix:
        ...

    def residual(self, q: Matrix, dq: Matrix, t: float) -> Matrix:
        ...

    def residual_dot(self, q: Matrix, dq: Matrix, t: float) -> Matrix:
        ...

    def external_forces(self, q: Matrix, dq: Matrix, t: float) -> List[float]:
        ...

    def kinetic_energy(self, q: Matrix, dq: Matrix) -> float:
        ...

    def potential_energy(self, q: Matrix) -> float:
        ...


def _as_vector(values: VectorLike) -> Matrix:
    if isinstance(values, Matrix):
        if not values.is_vector:
            raise DimensionMismatch(f"Expected a column vector, got a {values.rows}x{values.cols} matrix")
        return values.clone()
    return Matrix.from_vector(list(values))


def _require_positive(name: str, value: float) -> float:
    value = float(value)
    if not value > 0 or not math.isfinite(value):
        raise ValueError(f"{name} must be a positive number, got {value}")
    return value


# =============================================================================
# CONSTRAINED SYSTEM
# =============================================================================


class ConstrainedSystem:
    """
    Holonomically constrained system advanced frame by frame.

    Forces follow a two-phase protocol: call :meth:`add_force` any number of
    times during a frame, then :meth:`tick` once; the tick consumes the sum and
    resets it to zero. :meth:`step` does both with the model's own forces.
    """

    def __init__(self, model: ConstraintModel, q: VectorLike, dq: VectorLike, integrator: Optional[Integrator] = None, gains: Optional[Gains] = None):
        self.model = model
        self.q = _as_vector(q)
        self.dq = _as_vector(dq)

        n = self.q.rows
        if self.dq.rows != n:
            raise DimensionMismatch(f"Position has {n} coordinates but velocity has {self.dq.rows}")
        if model.imass.shape != (n, n):
            raise DimensionMismatch(f"Inverse mass must be {n}x{n}, got {model.imass.rows}x{model.imass.cols}")

        self.integrator = integrator if integrator is not None else RK4Integrator()
        self.gains = gains if gains is not None else Gains()
        self.forces = Matrix.empty(n)

        self.time = 0.0
        self.ticks = 0
        self.last_c = model.residual(self.q, self.dq, self.time)
        self.last_dc = model.residual_dot(self.q, self.dq, self.time)

        logger.debug("Constructed %s with %d coordinates, integrator=%s, gains=%s", type(model).__name__, n, self.integrator.name, self.gains)

    # Gains are read-only for the lifetime of the system
    @property
    def alpha(self) -> float:
        return self.gains.alpha

    @property
    def beta(self) -> float:
        return self.gains.beta

    @property
    def d_alpha(self) -> float:
        return self.gains.d_alpha

    @property
    def d_beta(self) -> float:
        return self.gains.d_beta

    # ------------------------------------------------------------------
    # Frame protocol
    # ------------------------------------------------------------------

    def add_force(self, force: VectorLike) -> None:
        """Accumulate a generalized force for the current frame."""
        self.forces.add(force if isinstance(force, Matrix) else Matrix.from_vector(list(force)))

    def _correction(self, t: float, dt: float, c: Matrix, dc: Matrix) -> Matrix:
        correction = c.clone().multiply(self.alpha)
        correction.add(dc.clone().multiply(self.beta))
        correction.add(c.clone().subtract(self.last_c).multiply(self.d_alpha / dt))
        correction.add(dc.clone().subtract(self.last_dc).multiply(self.d_beta / dt))

        J = self.model.jacobian(self.q, self.dq, t)
        return correction.multiply_left(J.transpose()).negate()

    def feedback(self, t: float, dt: float) -> Matrix:
        """Return the stabilization force for the current state; the residual history is left as is."""
        c = self.model.residual(self.q, self.dq, t)
        dc = self.model.residual_dot(self.q, self.dq, t)
        return self._correction(t, dt, c, dc)

    def tick(self, t: float, dt: float) -> None:
        """Advance the state from ``t`` to ``t + dt`` and clear the accumulated forces."""
        if not dt > 0:
            raise ValueError(f"Time step must be positive, got {dt}")

        model = self.model
        forces = self.forces

        c = model.residual(self.q, self.dq, t)
        dc = model.residual_dot(self.q, self.dq, t)
        feedback = self._correction(t, dt, c, dc)
        self.last_c = c
        self.last_dc = dc

        def acceleration(q: Matrix, dq: Matrix, t_: float) -> Matrix:
            return ConstraintSolver.solve(model.imass, model.jacobian(q, dq, t_), model.jacobian_dot(q, dq, t_), model.ctt(q, t_), forces, dq, feedback)

        self.integrator.advance(acceleration, self.q, self.dq, t, dt)

        self.forces.clear()
        self.time = t + dt
        self.ticks += 1

    def step(self, t: float, dt: float) -> None:
        """Apply the model's external forces and tick once."""
        self.add_force(self.model.external_forces(self.q, self.dq, t))
        self.tick(t, dt)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def total_error(self) -> float:
        """Sum of the constraint residual at the current state."""
        return float(np.sum(self.model.residual(self.q, self.dq, self.time).data))

    def total_d_error(self) -> float:
        """Sum of the residual's time derivative at the current state."""
        return float(np.sum(self.model.residual_dot(self.q, self.dq, self.time).data))

    def kinetic_energy(self) -> float:
        return self.model.kinetic_energy(self.q, self.dq)

    def potential_energy(self) -> float:
        return self.model.potential_energy(self.q)

    def total_energy(self) -> float:
        return self.kinetic_energy() + self.potential_energy()

    def coordinates(self) -> List[float]:
        return self.q.data.tolist()


# =============================================================================
# MODELS
# =============================================================================


@dataclass
class PendulumConstraint:
    """Point mass at ``q = [x, y]`` held at distance ``length`` from the origin."""

    length: float = 2.0
    mass: float = 1.0
    gravity: float = PhysicalConstants.GRAVITATIONAL_ACCELERATION
    dof: int = field(default=2, init=False)
    imass: Matrix = field(init=False, repr=False)

    def __post_init__(self):
        self.length = _require_positive("length", self.length)
        self.mass = _require_positive("mass", self.mass)
        self.imass = Matrix.from_diagonal([1 / self.mass, 1 / self.mass])

    def jacobian(self, q, dq, t):
        x, y = q.data
        return Matrix.from_array([[2 * x, 2 * y]])

    def jacobian_dot(self, q, dq, t):
        dx, dy = dq.data
        return Matrix.from_array([[2 * dx, 2 * dy]])

    def ctt(self, q, t):
        return Matrix.empty(1)

    def residual(self, q, dq, t):
        x, y = q.data
        return Matrix.from_vector([x * x + y * y - self.length**2])

    def residual_dot(self, q, dq, t):
        x, y = q.data
        dx, dy = dq.data
        return Matrix.from_vector([2 * x * dx + 2 * y * dy])

    def external_forces(self, q, dq, t):
        return [0.0, -self.gravity * self.mass]

    def kinetic_energy(self, q, dq):
        dx, dy = dq.data
        return 0.5 * self.mass * (dx * dx + dy * dy)

    def potential_energy(self, q):
        return self.mass * self.gravity * q.at(1)


@dataclass
class DoublePendulumConstraint:
    """Two point masses ``q = [x1, y1, x2, y2]`` chained to the origin by rigid rods."""

    length1: float = 1.0
    length2: float = 1.0
    mass1: float = 1.0
    mass2: float = 1.0
    gravity: float = PhysicalConstants.GRAVITATIONAL_ACCELERATION
    dof: int = field(default=4, init=False)
    imass: Matrix = field(init=False, repr=False)

    def __post_init__(self):
        self.length1 = _require_positive("length1", self.length1)
        self.length2 = _require_positive("length2", self.length2)
        self.mass1 = _require_positive("mass1", self.mass1)
        self.mass2 = _require_positive("mass2", self.mass2)
        self.imass = Matrix.from_diagonal([1 / self.mass1, 1 / self.mass1, 1 / self.mass2, 1 / self.mass2])

    def jacobian(self, q, dq, t):
        x1, y1, x2, y2 = q.data
        dx, dy = x2 - x1, y2 - y1
        return Matrix.from_array([
            [2 * x1, 2 * y1, 0.0, 0.0],
            [-2 * dx, -2 * dy, 2 * dx, 2 * dy],
        ])

    def jacobian_dot(self, q, dq, t):
        vx1, vy1, vx2, vy2 = dq.data
        dvx, dvy = vx2 - vx1, vy2 - vy1
        return Matrix.from_array([
            [2 * vx1, 2 * vy1, 0.0, 0.0],
            [-2 * dvx, -2 * dvy, 2 * dvx, 2 * dvy],
        ])

    def ctt(self, q, t):
        return Matrix.empty(2)

    def residual(self, q, dq, t):
        x1, y1, x2, y2 = q.data
        return Matrix.from_vector([
            x1**2 + y1**2 - self.length1**2,
            (x2 - x1) ** 2 + (y2 - y1) ** 2 - self.length2**2,
        ])

    def residual_dot(self, q, dq, t):
        x1, y1, x2, y2 = q.data
        vx1, vy1, vx2, vy2 = dq.data
        return Matrix.from_vector([
            2 * x1 * vx1 + 2 * y1 * vy1,
            2 * (x2 - x1) * (vx2 - vx1) + 2 * (y2 - y1) * (vy2 - vy1),
        ])

    def external_forces(self, q, dq, t):
        return [0.0, -self.gravity * self.mass1, 0.0, -self.gravity * self.mass2]

    def kinetic_energy(self, q, dq):
        vx1, vy1, vx2, vy2 = dq.data
        return 0.5 * self.mass1 * (vx1**2 + vy1**2) + 0.5 * self.mass2 * (vx2**2 + vy2**2)

    def potential_energy(self, q):
        return self.gravity * (self.mass1 * q.at(1) + self.mass2 * q.at(3))


@dataclass
class CartPoleConstraint:
    """
    Cart sliding on the horizontal rail ``y = 0`` with a pendulum hanging from it.

    Coordinates are ``q = [x_cart, y_cart, x_bob, y_bob]``. The optional
    ``drive(t)`` is a horizontal force applied to the cart.
    """

    length: float = 1.0
    cart_mass: float = 1.0
    bob_mass: float = 0.5
    gravity: float = PhysicalConstants.GRAVITATIONAL_ACCELERATION
    drive: Optional[Callable[[float], float]] = None
    dof: int = field(default=4, init=False)
    imass: Matrix = field(init=False, repr=False)

    def __post_init__(self):
        self.length = _require_positive("length", self.length)
        self.cart_mass = _require_positive("cart_mass", self.cart_mass)
        self.bob_mass = _require_positive("bob_mass", self.bob_mass)
        self.imass = Matrix.from_diagonal([1 / self.cart_mass, 1 / self.cart_mass, 1 / self.bob_mass, 1 / self.bob_mass])

    def jacobian(self, q, dq, t):
        xc, yc, xb, yb = q.data
        dx, dy = xb - xc, yb - yc
        return Matrix.from_array([
            [0.0, 1.0, 0.0, 0.0],
            [-2 * dx, -2 * dy, 2 * dx, 2 * dy],
        ])

    def jacobian_dot(self, q, dq, t):
        vxc, vyc, vxb, vyb = dq.data
        dvx, dvy = vxb - vxc, vyb - vyc
        return Matrix.from_array([
            [0.0, 0.0, 0.0, 0.0],
            [-2 * dvx, -2 * dvy, 2 * dvx, 2 * dvy],
        ])

    def ctt(self, q, t):
        return Matrix.empty(2)

    def residual(self, q, dq, t):
        xc, yc, xb, yb = q.data
        return Matrix.from_vector([yc, (xb - xc) ** 2 + (yb - yc) ** 2 - self.length**2])

    def residual_dot(self, q, dq, t):
        xc, yc, xb, yb = q.data
        vxc, vyc, vxb, vyb = dq.data
        return Matrix.from_vector([vyc, 2 * (xb - xc) * (vxb - vxc) + 2 * (yb - yc) * (vyb - vyc)])

    def external_forces(self, q, dq, t):
        push = float(self.drive(t)) if self.drive is not None else 0.0
        return [push, -self.gravity * self.cart_mass, 0.0, -self.gravity * self.bob_mass]

    def kinetic_energy(self, q, dq):
        vxc, vyc, vxb, vyb = dq.data
        return 0.5 * self.cart_mass * (vxc**2 + vyc**2) + 0.5 * self.bob_mass * (vxb**2 + vyb**2)

    def potential_energy(self, q):
        return self.gravity * (self.cart_mass * q.at(1) + self.bob_mass * q.at(3))


# =============================================================================
# FACTORIES
# =============================================================================

# Stabilization used by the factories unless the caller passes its own gains
DEFAULT_GAINS = Gains(alpha=5.0, beta=5.0)
DOUBLE_PENDULUM_GAINS = Gains(alpha=0.05, beta=0.1, d_alpha=0.33, d_beta=0.05)


def _polar(length: float, angle: float) -> List[float]:
    # angle measured from the downward vertical
    return [length * math.sin(angle), -length * math.cos(angle)]


def _tangential(length: float, angle: float, angular_velocity: float) -> List[float]:
    return [length * angular_velocity * math.cos(angle), length * angular_velocity * math.sin(angle)]


def constrained_pendulum(angle: float = 0.0, length: float = 2.0, mass: float = 1.0, gravity: float = PhysicalConstants.GRAVITATIONAL_ACCELERATION, angular_velocity: float = 0.0, integrator: Optional[Integrator] = None, gains: Optional[Gains] = None) -> ConstrainedSystem:
    """Build a pendulum released at ``angle`` radians from the downward vertical."""
    model = PendulumConstraint(length=length, mass=mass, gravity=gravity)
    q = _polar(model.length, angle)
    dq = _tangential(model.length, angle, angular_velocity)
    return ConstrainedSystem(model, q, dq, integrator=integrator, gains=gains if gains is not None else DEFAULT_GAINS)


def constrained_double_pendulum(angle1: float = math.pi / 2, angle2: float = math.pi / 2, length1: float = 1.0, length2: float = 1.0, mass1: float = 1.0, mass2: float = 1.0, gravity: float = PhysicalConstants.GRAVITATIONAL_ACCELERATION, integrator: Optional[Integrator] = None, gains: Optional[Gains] = None) -> ConstrainedSystem:
    """Build a double pendulum at rest; each angle is measured from the downward vertical."""
    model = DoublePendulumConstraint(length1=length1, length2=length2, mass1=mass1, mass2=mass2, gravity=gravity)
    x1, y1 = _polar(model.length1, angle1)
    x2, y2 = _polar(model.length2, angle2)
    q = [x1, y1, x1 + x2, y1 + y2]
    return ConstrainedSystem(model, q, [0.0] * 4, integrator=integrator, gains=gains if gains is not None else DOUBLE_PENDULUM_GAINS)


def cart_pole(angle: float = math.pi / 6, length: float = 1.0, cart_mass: float = 1.0, bob_mass: float = 0.5, cart_position: float = 0.0, gravity: float = PhysicalConstants.GRAVITATIONAL_ACCELERATION, drive: Optional[Callable[[float], float]] = None, integrator: Optional[Integrator] = None, gains: Optional[Gains] = None) -> ConstrainedSystem:
    """Build a cart at rest on the rail with its pendulum released at ``angle``."""
    model = CartPoleConstraint(length=length, cart_mass=cart_mass, bob_mass=bob_mass, gravity=gravity, drive=drive)
    bx, by = _polar(model.length, angle)
    q = [cart_position, 0.0, cart_position + bx, by]
    return ConstrainedSystem(model, q, [0.0] * 4, integrator=integrator, gains=gains if gains is not None else DEFAULT_GAINS)
