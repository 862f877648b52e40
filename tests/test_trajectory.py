import numpy as np
import pytest

from lorenztraj.analysis.divergence import summarize
from lorenztraj.core.chaos.lorenz import Parameters
from lorenztraj.core.integrator import integrate
from lorenztraj.core.trajectory import Trajectory


def test_trajectory_arrays_are_read_only():
    traj = integrate(Parameters.classic(), (0.1, 0.1, 0.1), 0.01, 10)
    with pytest.raises(ValueError):
        traj.states[0, 0] = 1.0
    with pytest.raises(ValueError):
        traj.times[0] = 1.0


def test_trajectory_shape_is_validated():
    with pytest.raises(ValueError):
        Trajectory(params=Parameters.classic(), step_size=0.1, states=np.zeros((3, 2)), times=np.zeros(3))
    with pytest.raises(ValueError):
        Trajectory(params=Parameters.classic(), step_size=0.1, states=np.zeros((3, 3)), times=np.zeros(4))


def test_prefix_for_sequential_reveal():
    traj = integrate(Parameters.classic(), (0.1, 0.1, 0.1), 0.01, 100)
    frames = [traj.prefix(n) for n in (1, 10, 101)]
    assert [len(f) for f in frames] == [1, 10, 101]
    assert np.array_equal(frames[1].states, traj.states[:10])
    assert frames[-1].fingerprint() == traj.fingerprint()
    with pytest.raises(ValueError):
        traj.prefix(0)
    with pytest.raises(ValueError):
        traj.prefix(102)


def test_iteration_and_axes():
    traj = integrate(Parameters.classic(), (0.1, 0.2, 0.3), 0.01, 5)
    points = list(traj)
    assert len(points) == 6
    assert points[0].state == (0.1, 0.2, 0.3)
    assert traj.x[0] == 0.1 and traj.y[0] == 0.2 and traj.z[0] == 0.3
    assert traj.final == points[-1].state
    assert traj.to_records()[2]["t"] == traj[2].time


def test_summarize_reports_nonfinite_rows():
    traj = integrate(Parameters.classic(), (1.0, 1.0, 1.0), 1.0, 200)
    summary = summarize(traj)
    assert summary["finite"] is False
    assert summary["first_nonfinite_index"] == traj.first_nonfinite_index()
    assert summary["min_x"] is not None
    assert np.isfinite(summary["max_z"])


def test_summarize_finite_run():
    traj = integrate(Parameters.classic(), (0.1, 0.1, 0.1), 0.01, 1000)
    summary = summarize(traj)
    assert summary["finite"] is True
    assert summary["first_nonfinite_index"] is None
    assert summary["x0"] == 0.1
    assert summary["min_x"] <= summary["final_x"] <= summary["max_x"]
    assert summary["t_final"] == pytest.approx(10.0)


def test_trajectory_does_not_share_caller_buffers():
    base = np.zeros((3, 3))
    times = np.arange(3, dtype=np.float64)
    traj = Trajectory(params=Parameters.classic(), step_size=1.0, states=base[:], times=times)
    base[0, 0] = 5.0
    times[1] = 7.0
    assert traj.states[0, 0] == 0.0
    assert traj.times[1] == 1.0
    assert base.flags.writeable
