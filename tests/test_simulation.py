import sys

import pytest

sys.path.append("src")

from physlab.constraint import constrained_pendulum
from physlab.objects import Ball
from physlab.simulation import FixedStepClock, Frame, Results, SimulationAborted, run


class Counter:
    """Minimal steppable that records the times it is stepped at."""

    def __init__(self):
        self.calls = []

    def step(self, t, dt):
        self.calls.append((t, dt))

    def coordinates(self):
        return [float(len(self.calls))]

    def kinetic_energy(self):
        return 1.0

    def potential_energy(self):
        return 2.0

    def total_error(self):
        return 0.0


# --------------------------------------------------------------------------- #
# FixedStepClock
# --------------------------------------------------------------------------- #


class TestFixedStepClock:
    def test_accumulates_partial_frames(self):
        clock = FixedStepClock(step=0.01)
        assert clock.advance(0.025) == 2
        assert clock.pending == pytest.approx(0.005)
        assert clock.advance(0.006) == 1

    def test_short_frames_run_no_steps(self):
        clock = FixedStepClock(step=0.01)
        assert clock.advance(0.004) == 0
        assert clock.advance(0.004) == 0

    def test_speed_multiplies_simulated_time(self):
        clock = FixedStepClock(step=0.01, speed=2.0)
        assert clock.advance(0.0201) == 4

    def test_drive_passes_simulation_time(self):
        clock = FixedStepClock(step=0.1, speed=0.5)
        counter = Counter()
        assert clock.drive(counter, 0.45) == 2
        assert counter.calls == [(0.0, 0.1), (pytest.approx(0.1), 0.1)]
        assert clock.time == pytest.approx(0.2)

    @pytest.mark.parametrize("kwargs", [{"step": 0.0}, {"step": 0.1, "speed": 0.0}])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            FixedStepClock(**kwargs)

    def test_negative_elapsed_rejected(self):
        with pytest.raises(ValueError):
            FixedStepClock().advance(-1.0)


# --------------------------------------------------------------------------- #
# run
# --------------------------------------------------------------------------- #


def test_run_records_initial_frame_and_every_step():
    counter = Counter()
    results = run(counter, step=0.1, simulation_time=1.0)
    assert results.total_frames == 11
    assert len(counter.calls) == 10
    assert results.frames[0].time == 0.0
    assert results.frames[0].coordinates == [0.0]
    assert results.final_time == pytest.approx(1.0)
    assert results.get_final_frame().coordinates == [10.0]
    assert results.frames[3].total_energy == 3.0


def test_run_frame_lookup():
    results = run(Counter(), step=0.25, simulation_time=1.0)
    assert results.get_frame_at_time(0.6).time == 0.5
    assert Results().get_frame_at_time(1.0) is None
    assert Results().get_final_frame() is None


def test_run_constrained_pendulum():
    results = run(constrained_pendulum(angle=0.5), step=1 / 120, simulation_time=1.0)
    assert results.total_frames == 121
    assert all(abs(frame.total_error) < 1e-3 for frame in results.frames)
    assert isinstance(results.frames[-1], Frame)


def test_run_respects_frame_limit():
    with pytest.raises(ValueError, match="limit"):
        run(Counter(), step=0.01, simulation_time=10.0, max_frames=100)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"step": 0.0},
        {"simulation_time": -1.0},
        {"step": float("inf")},
        {"step": float("nan")},
        {"simulation_time": float("inf")},
        {"simulation_time": float("nan")},
    ],
)
def test_run_rejects_bad_arguments(kwargs):
    with pytest.raises(ValueError):
        run(Counter(), **kwargs)


def test_run_reports_partial_results_on_blowup():
    with pytest.raises(SimulationAborted) as info:
        run(Ball(gravity=1e308), step=0.1, simulation_time=1.0)
    assert info.value.results.total_frames == 1
    assert info.value.results.frames[0].time == 0.0
