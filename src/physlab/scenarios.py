"""
Named, parameterized systems for the web API and quick experiments.

Every scenario has a dictionary of numeric defaults; :func:`build_scenario`
overlays caller-supplied values, rejects unknown or non-numeric ones with a
``ValueError``, and returns a ready-to-run system.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from .constraint import DEFAULT_GAINS, DOUBLE_PENDULUM_GAINS, Gains, PhysicalConstants, cart_pole, constrained_double_pendulum, constrained_pendulum
from .integrators import get_integrator
from .objects import Ball, DoublePendulum, Oscillator, Pendulum, SpringPendulum

G = PhysicalConstants.GRAVITATIONAL_ACCELERATION


@dataclass(frozen=True)
class Scenario:
    name: str
    description: str
    defaults: Dict[str, float]
    builder: Callable[[Dict[str, float], str], Any]
    constrained: bool = True


def _gains(p: Dict[str, float]) -> Gains:
    return Gains(alpha=p["alpha"], beta=p["beta"], d_alpha=p["d_alpha"], d_beta=p["d_beta"])


def _gain_defaults(gains: Gains) -> Dict[str, float]:
    return {"alpha": gains.alpha, "beta": gains.beta, "d_alpha": gains.d_alpha, "d_beta": gains.d_beta}


def _sinusoid(amplitude: float, frequency: float) -> Optional[Callable[[float], float]]:
    if amplitude == 0:
        return None
    return lambda t: amplitude * math.sin(2 * math.pi * frequency * t)


# --- Builders ---------------------------------------------------------------


def _pendulum(p, integrator):
    return constrained_pendulum(angle=p["angle"], length=p["length"], mass=p["mass"], gravity=p["gravity"], angular_velocity=p["angular_velocity"], integrator=get_integrator(integrator), gains=_gains(p))


def _double_pendulum(p, integrator):
    return constrained_double_pendulum(angle1=p["angle1"], angle2=p["angle2"], length1=p["length1"], length2=p["length2"], mass1=p["mass1"], mass2=p["mass2"], gravity=p["gravity"], integrator=get_integrator(integrator), gains=_gains(p))


def _cart_pole(p, integrator):
    drive = _sinusoid(p["drive_amplitude"], p["drive_frequency"])
    return cart_pole(angle=p["angle"], length=p["length"], cart_mass=p["cart_mass"], bob_mass=p["bob_mass"], cart_position=p["cart_position"], gravity=p["gravity"], drive=drive, integrator=get_integrator(integrator), gains=_gains(p))


def _simple_pendulum(p, integrator):
    return Pendulum(angle=p["angle"], length=p["length"], mass=p["mass"], damping=p["damping"], gravity=p["gravity"], angular_velocity=p["angular_velocity"], solver=integrator)


def _simple_double_pendulum(p, integrator):
    return DoublePendulum(angle1=p["angle1"], angle2=p["angle2"], length1=p["length1"], length2=p["length2"], mass1=p["mass1"], mass2=p["mass2"], damping1=p["damping1"], damping2=p["damping2"], gravity=p["gravity"], solver=integrator)


def _oscillator(p, integrator):
    return Oscillator(offset=(p["offset"], 0.0), mass=p["mass"], stiffness=p["stiffness"], damping=p["damping"], solver=integrator)


def _spring_pendulum(p, integrator):
    return SpringPendulum(radius=p["radius"], angle=p["angle"], rest_length=p["rest_length"], stiffness=p["stiffness"], mass=p["mass"], radial_damping=p["radial_damping"], angular_damping=p["angular_damping"], gravity=p["gravity"], solver=integrator)


def _ball(p, integrator):
    return Ball(pos=(p["x"], p["y"]), vel=(p["vx"], p["vy"]), mass=p["mass"], gravity=p["gravity"], solver=integrator)


SCENARIOS: Dict[str, Scenario] = {
    s.name: s
    for s in [
        Scenario("pendulum", "Point mass on a rigid rod, solved with Lagrange multipliers", {"angle": 0.5, "length": 2.0, "mass": 1.0, "gravity": G, "angular_velocity": 0.0, **_gain_defaults(DEFAULT_GAINS)}, _pendulum),
        Scenario("double_pendulum", "Two point masses chained by rigid rods", {"angle1": math.pi / 2, "angle2": math.pi / 2, "length1": 1.0, "length2": 1.0, "mass1": 1.0, "mass2": 1.0, "gravity": G, **_gain_defaults(DOUBLE_PENDULUM_GAINS)}, _double_pendulum),
        Scenario("cart_pole", "Cart on a horizontal rail carrying a pendulum", {"angle": math.pi / 6, "length": 1.0, "cart_mass": 1.0, "bob_mass": 0.5, "cart_position": 0.0, "gravity": G, "drive_amplitude": 0.0, "drive_frequency": 0.5, **_gain_defaults(DEFAULT_GAINS)}, _cart_pole),
        Scenario("simple_pendulum", "Damped pendulum integrated in its angle", {"angle": 0.5, "length": 1.0, "mass": 1.0, "damping": 0.2, "gravity": G, "angular_velocity": 0.0}, _simple_pendulum, constrained=False),
        Scenario("simple_double_pendulum", "Damped double pendulum integrated in its angles", {"angle1": math.pi / 2, "angle2": math.pi / 2, "length1": 1.0, "length2": 1.0, "mass1": 1.0, "mass2": 1.0, "damping1": 0.4, "damping2": 0.4, "gravity": G}, _simple_double_pendulum, constrained=False),
        Scenario("oscillator", "Damped horizontal mass-spring oscillator", {"offset": 1.0, "mass": 1.0, "stiffness": 10.0, "damping": 0.1}, _oscillator, constrained=False),
        Scenario("spring_pendulum", "Pendulum hanging from a spring", {"radius": 2.0, "angle": 0.5, "rest_length": 2.0, "stiffness": 30.0, "mass": 1.0, "radial_damping": 0.0, "angular_damping": 0.0, "gravity": G}, _spring_pendulum, constrained=False),
        Scenario("ball", "Point mass in free fall", {"x": 0.0, "y": 0.0, "vx": 1.0, "vy": 5.0, "mass": 1.0, "gravity": G}, _ball, constrained=False),
    ]
}


def _merge(scenario: Scenario, parameters: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    merged = dict(scenario.defaults)
    for key, value in (parameters or {}).items():
        if key not in merged:
            raise ValueError(f"Unknown parameter {key!r} for {scenario.name}. Expected one of: {', '.join(sorted(merged))}")
        # bool is an int subclass but never a meaningful physical value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Parameter {key!r} must be a number, got {value!r}")
        number = float(value)
        if not math.isfinite(number):
            raise ValueError(f"Parameter {key!r} must be finite, got {value!r}")
        merged[key] = number
    return merged


def build_scenario(name: str, parameters: Optional[Mapping[str, Any]] = None, integrator: str = "rk4"):
    """Build the named scenario with ``parameters`` overriding its defaults."""
    try:
        scenario = SCENARIOS[name]
    except KeyError:
        raise ValueError(f"Unknown system {name!r}. Expected one of: {', '.join(sorted(SCENARIOS))}") from None
    return scenario.builder(_merge(scenario, parameters), integrator)


def describe_scenarios() -> Dict[str, Dict[str, Any]]:
    """Scenario names with their description, defaults and kind, ready for JSON."""
    return {name: {"description": s.description, "constrained": s.constrained, "parameters": dict(s.defaults)} for name, s in SCENARIOS.items()}
