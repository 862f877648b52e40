from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np

from lorenztraj.core.chaos.lorenz import Parameters, State
from lorenztraj.core.constants import (
    DEFAULT_PERTURBATION,
    DEFAULT_THRESHOLD_FACTOR,
    TIME_STAMPING,
)
from lorenztraj.core.errors import InvalidArgument
from lorenztraj.core.integrator import coerce_state
from lorenztraj.core.trajectory import Trajectory
from lorenztraj.orchestrator.ensemble import RunSpec, run_ensemble
from lorenztraj.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SensitivityResult:
    reference: Trajectory
    perturbed: Trajectory
    distances: np.ndarray
    delta: float
    threshold: float
    first_exceed_index: Optional[int]
    growth_rate: Optional[float]

    @property
    def initial_distance(self) -> float:
        return float(self.distances[0])

    @property
    def max_distance(self) -> float:
        finite = self.distances[np.isfinite(self.distances)]
        return float(finite.max()) if finite.size else float("nan")

    @property
    def growth_factor(self) -> float:
        if self.initial_distance == 0:
            return float("inf")
        return self.max_distance / self.initial_distance

    @property
    def diverged(self) -> bool:
        return self.first_exceed_index is not None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "delta": self.delta,
            "initial_distance": self.initial_distance,
            "max_distance": self.max_distance,
            "final_distance": float(self.distances[-1]),
            "growth_factor": self.growth_factor,
            "threshold": self.threshold,
            "first_exceed_index": self.first_exceed_index,
            "first_exceed_time": (
                float(self.reference.times[self.first_exceed_index])
                if self.first_exceed_index is not None
                else None
            ),
            "growth_rate": self.growth_rate,
        }


def separation(a: Trajectory, b: Trajectory) -> np.ndarray:
    """Euclidean distance between corresponding states of two trajectories."""
    if len(a) != len(b):
        raise InvalidArgument(f"trajectories differ in length ({len(a)} vs {len(b)})")
    return np.linalg.norm(a.states - b.states, axis=1)


def perturb(initial: Sequence[float], delta: float, axis: int = 0) -> State:
    if axis not in (0, 1, 2):
        raise InvalidArgument(f"axis must be 0, 1 or 2, got {axis}")
    values = list(coerce_state(initial))
    values[axis] += float(delta)
    return values[0], values[1], values[2]


def first_exceed(distances: np.ndarray, threshold: float) -> Optional[int]:
    hits = np.flatnonzero(distances > threshold)
    if hits.size == 0:
        return None
    return int(hits[0])


def growth_rate(distances: np.ndarray, times: np.ndarray, saturation: float = 1.0) -> Optional[float]:
    """
    Slope of log(distance) against time before the separation saturates.

    A rough estimate of the largest Lyapunov exponent; None when fewer than
    two usable points remain.
    """
    distances = np.asarray(distances, dtype=np.float64)
    times = np.asarray(times, dtype=np.float64)
    usable = np.isfinite(distances) & (distances > 0)
    cut = first_exceed(distances, saturation)
    if cut is not None:
        usable[cut:] = False
    if int(usable.sum()) < 2:
        return None
    t = times[usable]
    if np.ptp(t) == 0:
        return None
    slope, _ = np.polyfit(t, np.log(distances[usable]), 1)
    return float(slope)


def sensitivity(
    params: Parameters,
    initial: Sequence[float],
    step_size: float,
    step_count: int,
    delta: float = DEFAULT_PERTURBATION,
    axis: int = 0,
    threshold_factor: float = DEFAULT_THRESHOLD_FACTOR,
    time_stamping: str = TIME_STAMPING,
) -> SensitivityResult:
    """Integrate a reference and a perturbed start and measure how they separate."""
    if delta == 0:
        raise InvalidArgument("delta must be non-zero")
    start = coerce_state(initial)
    shifted = perturb(start, delta, axis=axis)
    reference, perturbed = run_ensemble(
        [RunSpec(params=params, initial=start, label="reference"), RunSpec(params=params, initial=shifted, label="perturbed")],
        step_size=step_size,
        step_count=step_count,
        time_stamping=time_stamping,
    )
    distances = separation(reference, perturbed)
    threshold = abs(float(delta)) * float(threshold_factor)
    result = SensitivityResult(
        reference=reference,
        perturbed=perturbed,
        distances=distances,
        delta=float(delta),
        threshold=threshold,
        first_exceed_index=first_exceed(distances, threshold),
        growth_rate=growth_rate(distances, reference.times),
    )
    logger.debug(
        "Sensitivity delta=%s max_distance=%s first_exceed_index=%s",
        delta, result.max_distance, result.first_exceed_index,
    )
    return result


def summarize(trajectory: Trajectory) -> Dict[str, Any]:
    """Final state, finiteness and per-axis extrema over the finite rows."""
    mask = trajectory.finite_mask()
    finite_rows = trajectory.states[mask]
    summary: Dict[str, Any] = {
        "sigma": trajectory.params.sigma,
        "r": trajectory.params.r,
        "b": trajectory.params.b,
        "step_size": trajectory.step_size,
        "step_count": trajectory.step_count,
        "time_stamping": trajectory.time_stamping,
        "t_final": float(trajectory.times[-1]),
        "finite": bool(mask.all()),
        "first_nonfinite_index": trajectory.first_nonfinite_index(),
        "fingerprint": trajectory.fingerprint(),
    }
    for axis, name in enumerate("xyz"):
        summary[f"{name}0"] = float(trajectory.states[0, axis])
        summary[f"final_{name}"] = float(trajectory.states[-1, axis])
        if finite_rows.size:
            summary[f"min_{name}"] = float(finite_rows[:, axis].min())
            summary[f"max_{name}"] = float(finite_rows[:, axis].max())
        else:
            summary[f"min_{name}"] = None
            summary[f"max_{name}"] = None
    return summary
