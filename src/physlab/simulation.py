"""
Headless fixed-step runner.

A :class:`FixedStepClock` converts wall-clock frame times into whole simulation
steps for interactive use; :func:`run` advances a system for a fixed duration
and records a :class:`Frame` after every step.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from .logging_utils import get_logger
from .matrix import NumericalBlowup

logger = get_logger("simulation")


class Steppable(Protocol):
    """Anything the runner can advance: a constrained system or a simple object."""

    def step(self, t: float, dt: float) -> None:
        ...

    def coordinates(self) -> List[float]:
        ...

    def kinetic_energy(self) -> float:
        ...

    def potential_energy(self) -> float:
        ...

    def total_error(self) -> float:
        ...


# =============================================================================
# CLOCK
# =============================================================================


class FixedStepClock:
    """
    Turns variable wall-clock frame times into whole fixed simulation steps.

    Elapsed wall time is accumulated; every ``step / speed`` seconds of it
    advances the simulation by exactly ``step``. The remainder is carried over
    to the next frame.
    """

    def __init__(self, step: float = 1 / 120, speed: float = 1.0):
        if not step > 0:
            raise ValueError(f"Step must be positive, got {step}")
        if not speed > 0:
            raise ValueError(f"Speed must be positive, got {speed}")
        self.step = float(step)
        self.speed = float(speed)
        self.pending = 0.0
        self.time = 0.0

    @property
    def wall_step(self) -> float:
        return self.step / self.speed

    def advance(self, elapsed: float) -> int:
        """Add ``elapsed`` wall seconds and return how many steps are now due."""
        if elapsed < 0:
            raise ValueError(f"Elapsed time cannot be negative, got {elapsed}")
        self.pending += elapsed
        due = 0
        while self.pending > self.wall_step:
            self.pending -= self.wall_step
            due += 1
        return due

    def drive(self, system: Steppable, elapsed: float) -> int:
        """Advance ``system`` by every step due after ``elapsed`` wall seconds."""
        due = self.advance(elapsed)
        for _ in range(due):
            system.step(self.time, self.step)
            self.time += self.step
        return due


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class Frame:
    """State of a system after one fixed step."""

    time: float
    coordinates: List[float]
    kinetic_energy: float
    potential_energy: float
    total_error: float

    @property
    def total_energy(self) -> float:
        return self.kinetic_energy + self.potential_energy


@dataclass
class Results:
    """Complete simulation results."""

    frames: List[Frame] = field(default_factory=list)
    final_time: float = 0.0
    total_frames: int = 0

    def get_frame_at_time(self, time: float) -> Optional[Frame]:
        """Get the frame closest to the specified time."""
        if not self.frames:
            return None
        return min(self.frames, key=lambda f: abs(f.time - time))

    def get_final_frame(self) -> Optional[Frame]:
        """Get the final frame of the simulation."""
        return self.frames[-1] if self.frames else None


class SimulationAborted(RuntimeError):
    """The run stopped on a numerical failure; ``results`` holds the frames recorded so far."""

    def __init__(self, results: Results, cause: NumericalBlowup):
        super().__init__(f"Simulation aborted at t={results.final_time:.4f}: {cause}")
        self.results = results
        self.cause = cause


# =============================================================================
# RUNNER
# =============================================================================


def _snapshot(system: Steppable, time: float) -> Frame:
    return Frame(time=round(time, 6), coordinates=system.coordinates(), kinetic_energy=system.kinetic_energy(), potential_energy=system.potential_energy(), total_error=system.total_error())


def run(system: Steppable, step: float = 0.01, simulation_time: float = 10.0, max_frames: Optional[int] = None) -> Results:
    """
    Advance ``system`` with a fixed step and record one frame per step.

    The first frame is the initial state at ``t = 0``. Raises ``ValueError``
    for a non-positive or non-finite step, a negative or non-finite duration or a run longer than
    ``max_frames``; raises :class:`SimulationAborted` on a numerical blowup.
    """
    if not (step > 0 and math.isfinite(step)):
        raise ValueError(f"Step must be a positive finite number, got {step}")
    if not (simulation_time >= 0 and math.isfinite(simulation_time)):
        raise ValueError(f"Simulation time must be a non-negative finite number, got {simulation_time}")

    # Tolerate floating point noise in simulation_time / step
    n_steps = int(simulation_time / step + 1e-9)
    if max_frames is not None and n_steps + 1 > max_frames:
        raise ValueError(f"Run needs {n_steps + 1} frames, more than the limit of {max_frames}")

    logger.info("Running %s for %d steps of %g s", type(system).__name__, n_steps, step)

    results = Results(frames=[_snapshot(system, 0.0)])
    for i in range(n_steps):
        t = i * step
        try:
            system.step(t, step)
        except NumericalBlowup as exc:
            results.total_frames = len(results.frames)
            logger.error("Numerical blowup after %d steps: %s", i, exc)
            raise SimulationAborted(results, exc) from exc
        results.frames.append(_snapshot(system, t + step))
        results.final_time = round(t + step, 6)

    results.total_frames = len(results.frames)
    return results
