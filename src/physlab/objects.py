"""
Unconstrained teaching objects driven by the plane ODE steppers.

Each object keeps a ``pos``/``vel`` pair of numpy arrays in its own generalized
coordinates (angles for the pendulums, polar coordinates for the spring
pendulum) and advances them with one of the steppers in
:data:`physlab.diffeq.SOLVERS`. The objects share the frame interface of
:class:`~physlab.constraint.ConstrainedSystem` (``step``, ``coordinates``,
energies, ``total_error``) so the simulation runner can drive either kind.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

import numpy as np

from .constraint import PhysicalConstants
from .diffeq import SOLVERS
from .logging_utils import get_logger
from .matrix import NumericalBlowup

logger = get_logger("objects")

G = PhysicalConstants.GRAVITATIONAL_ACCELERATION


def _positive(name: str, value: float) -> float:
    value = float(value)
    if not value > 0 or not math.isfinite(value):
        raise ValueError(f"{name} must be a positive number, got {value}")
    return value


class MotionObject:
    """Base class: state, stepper and the frame interface."""

    def __init__(self, pos: Sequence[float], vel: Optional[Sequence[float]] = None, solver: str = "rk4"):
        self.pos = np.array(pos, dtype=float)
        self.vel = np.zeros_like(self.pos) if vel is None else np.array(vel, dtype=float)
        if self.vel.shape != self.pos.shape:
            raise ValueError(f"Position has shape {self.pos.shape} but velocity has {self.vel.shape}")

        key = solver.strip().lower()
        if key not in SOLVERS:
            raise ValueError(f"Unknown solver {solver!r}. Expected one of: {', '.join(sorted(SOLVERS))}")
        self.solver_name = key
        self.solver = SOLVERS[key]

        self.time = 0.0
        self.ticks = 0

    def acceleration(self, t: float, acc: np.ndarray, vel: np.ndarray, pos: np.ndarray) -> np.ndarray:
        return np.zeros_like(pos)

    def update(self, t: float, dt: float) -> None:
        """Advance the state from ``t`` to ``t + dt``."""
        if not dt > 0:
            raise ValueError(f"Time step must be positive, got {dt}")

        pos, vel = self.solver(self.acceleration, self.pos, self.vel, t, dt)
        if not (np.all(np.isfinite(pos)) and np.all(np.isfinite(vel))):
            logger.error("%s diverged at t=%.4f", type(self).__name__, t)
            raise NumericalBlowup(f"{type(self).__name__}.update")

        self.pos, self.vel = pos, vel
        self.time = t + dt
        self.ticks += 1

    # Same entry point as ConstrainedSystem
    step = update

    def coordinates(self) -> List[float]:
        """Cartesian positions of the bodies, flattened."""
        return self.pos.tolist()

    def kinetic_energy(self) -> float:
        return 0.0

    def potential_energy(self) -> float:
        return 0.0

    def total_energy(self) -> float:
        return self.kinetic_energy() + self.potential_energy()

    def total_error(self) -> float:
        # No constraints to violate
        return 0.0


class Ball(MotionObject):
    """Point mass in free fall."""

    def __init__(self, pos: Sequence[float] = (0.0, 0.0), vel: Optional[Sequence[float]] = None, mass: float = 1.0, gravity: float = G, solver: str = "rk4"):
        super().__init__(pos, vel, solver)
        self.mass = _positive("mass", mass)
        self.gravity = float(gravity)

    def acceleration(self, t, acc, vel, pos):
        return np.array([0.0, -self.gravity])

    def kinetic_energy(self):
        return 0.5 * self.mass * float(self.vel @ self.vel)

    def potential_energy(self):
        return self.mass * self.gravity * float(self.pos[1])


class Oscillator(MotionObject):
    """
    Damped horizontal mass-spring oscillator.

    The equilibrium is ``rest``; the body starts displaced by ``offset``.
    """

    def __init__(self, offset: Sequence[float] = (1.0, 0.0), rest: Sequence[float] = (0.0, 0.0), mass: float = 1.0, stiffness: float = 10.0, damping: float = 0.1, solver: str = "rk4"):
        self.rest = np.array(rest, dtype=float)
        super().__init__(self.rest + np.array(offset, dtype=float), None, solver)
        self.mass = _positive("mass", mass)
        self.stiffness = _positive("stiffness", stiffness)
        self.damping = float(damping)

    def acceleration(self, t, acc, vel, pos):
        ax = (-self.stiffness * (pos[0] - self.rest[0]) - self.damping * vel[0]) / self.mass
        return np.array([ax, 0.0])

    def kinetic_energy(self):
        return 0.5 * self.mass * float(self.vel[0]) ** 2

    def potential_energy(self):
        return 0.5 * self.stiffness * float(self.pos[0] - self.rest[0]) ** 2


class Pendulum(MotionObject):
    """Simple pendulum in its angle; ``pos = [theta, 0]``, theta from the downward vertical."""

    def __init__(self, angle: float = 0.5, anchor: Sequence[float] = (0.0, 0.0), length: float = 1.0, mass: float = 1.0, damping: float = 0.2, gravity: float = G, angular_velocity: float = 0.0, solver: str = "rk4"):
        super().__init__([angle, 0.0], [angular_velocity, 0.0], solver)
        self.anchor = np.array(anchor, dtype=float)
        self.length = _positive("length", length)
        self.mass = _positive("mass", mass)
        self.damping = float(damping)
        self.gravity = float(gravity)

    def acceleration(self, t, acc, vel, pos):
        return np.array([-self.gravity / self.length * math.sin(pos[0]) - self.damping * vel[0], 0.0])

    def coordinates(self):
        theta = float(self.pos[0])
        return [float(self.anchor[0]) + self.length * math.sin(theta), float(self.anchor[1]) - self.length * math.cos(theta)]

    def kinetic_energy(self):
        return 0.5 * self.mass * (self.length * float(self.vel[0])) ** 2

    def potential_energy(self):
        return self.mass * self.gravity * self.coordinates()[1]


class DoublePendulum(MotionObject):
    """Double pendulum in its two angles; ``pos = [theta1, theta2]``."""

    def __init__(self, angle1: float = math.pi / 2, angle2: float = math.pi / 2, anchor: Sequence[float] = (0.0, 0.0), length1: float = 1.0, length2: float = 1.0, mass1: float = 1.0, mass2: float = 1.0, damping1: float = 0.4, damping2: float = 0.4, gravity: float = G, velocity: Optional[Sequence[float]] = None, solver: str = "rk4"):
        super().__init__([angle1, angle2], velocity, solver)
        self.anchor = np.array(anchor, dtype=float)
        self.length1 = _positive("length1", length1)
        self.length2 = _positive("length2", length2)
        self.mass1 = _positive("mass1", mass1)
        self.mass2 = _positive("mass2", mass2)
        self.damping1 = float(damping1)
        self.damping2 = float(damping2)
        self.gravity = float(gravity)

    def acceleration(self, t, acc, vel, pos):
        g = self.gravity
        m1, m2 = self.mass1, self.mass2
        l1, l2 = self.length1, self.length2
        v1, v2 = vel
        p1, p2 = pos

        # Equations of motion written as a 2x2 linear system in the angular accelerations
        a = (m1 + m2) * l1
        b = m2 * l2 * math.cos(p1 - p2)
        c = m2 * l2 * v2 * v2 * math.sin(p1 - p2) + (m1 + m2) * g * math.sin(p1)

        d = m2 * l2
        e = m2 * l1 * math.cos(p1 - p2)
        f = m2 * g * math.sin(p2) - m2 * l1 * v1 * v1 * math.sin(p1 - p2)

        try:
            angular = np.linalg.solve(np.array([[e, d], [a, b]]), np.array([-f, -c]))
        except np.linalg.LinAlgError:
            raise NumericalBlowup("DoublePendulum.acceleration") from None
        return angular - np.array([self.damping1 * v1, self.damping2 * v2])

    def coordinates(self):
        t1, t2 = (float(v) for v in self.pos)
        x1 = float(self.anchor[0]) + self.length1 * math.sin(t1)
        y1 = float(self.anchor[1]) - self.length1 * math.cos(t1)
        return [x1, y1, x1 + self.length2 * math.sin(t2), y1 - self.length2 * math.cos(t2)]

    def kinetic_energy(self):
        m1, m2, l1, l2 = self.mass1, self.mass2, self.length1, self.length2
        t1, t2 = (float(v) for v in self.pos)
        v1, v2 = (float(v) for v in self.vel)
        return 0.5 * m1 * l1**2 * v1**2 + 0.5 * m2 * (l1**2 * v1**2 + l2**2 * v2**2 + 2 * l1 * l2 * v1 * v2 * math.cos(t1 - t2))

    def potential_energy(self):
        _, y1, _, y2 = self.coordinates()
        return self.gravity * (self.mass1 * y1 + self.mass2 * y2)


class SpringPendulum(MotionObject):
    """
    Pendulum on a spring in polar coordinates; ``pos = [r, theta]``.

    ``rest_length`` is the unstretched spring length. The angular equation is
    frozen while the bob is within 0.1 of the pivot, where it is singular.
    """

    def __init__(self, radius: float = 2.0, angle: float = 0.5, origin: Sequence[float] = (0.0, 0.0), rest_length: float = 2.0, stiffness: float = 30.0, mass: float = 1.0, radial_damping: float = 0.0, angular_damping: float = 0.0, gravity: float = G, solver: str = "rk4"):
        super().__init__([radius, angle], None, solver)
        self.origin = np.array(origin, dtype=float)
        self.rest_length = _positive("rest_length", rest_length)
        self.stiffness = _positive("stiffness", stiffness)
        self.mass = _positive("mass", mass)
        self.radial_damping = float(radial_damping)
        self.angular_damping = float(angular_damping)
        self.gravity = float(gravity)

    def acceleration(self, t, acc, vel, pos):
        g = self.gravity
        r, theta = pos
        dr, dtheta = vel

        ddr = r * dtheta**2 + self.stiffness / self.mass * (self.rest_length - r) + g * math.cos(theta) - self.radial_damping * dr
        if abs(r) < 0.1:
            ddtheta = 0.0
        else:
            ddtheta = -(g * math.sin(theta) + 2 * dtheta * dr) / r - self.angular_damping * dtheta
        return np.array([ddr, ddtheta])

    def coordinates(self):
        r, theta = (float(v) for v in self.pos)
        return [float(self.origin[0]) + r * math.sin(theta), float(self.origin[1]) - r * math.cos(theta)]

    def kinetic_energy(self):
        r = float(self.pos[0])
        dr, dtheta = (float(v) for v in self.vel)
        return 0.5 * self.mass * (dr**2 + r**2 * dtheta**2)

    def potential_energy(self):
        r, theta = (float(v) for v in self.pos)
        spring = 0.5 * self.stiffness * (self.rest_length - r) ** 2
        return spring + self.mass * self.gravity * (float(self.origin[1]) - r * math.cos(theta))
