"""Main physlab package exposing the constrained-dynamics engine."""

from .constraint import ConstrainedSystem, ConstraintSolver, Gains, cart_pole, constrained_double_pendulum, constrained_pendulum
from .integrators import EulerIntegrator, RK4Integrator, SymplecticIntegrator, get_integrator
from .matrix import DimensionMismatch, Matrix, NumericalBlowup, Vector
from .scenarios import SCENARIOS, build_scenario
from .simulation import FixedStepClock, Results, SimulationAborted, run

__all__ = [
    "Matrix",
    "Vector",
    "NumericalBlowup",
    "DimensionMismatch",
    "EulerIntegrator",
    "SymplecticIntegrator",
    "RK4Integrator",
    "get_integrator",
    "ConstraintSolver",
    "ConstrainedSystem",
    "Gains",
    "constrained_pendulum",
    "constrained_double_pendulum",
    "cart_pole",
    "FixedStepClock",
    "Results",
    "SimulationAborted",
    "run",
    "SCENARIOS",
    "build_scenario",
]
