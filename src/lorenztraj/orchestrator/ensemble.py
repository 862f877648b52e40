from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from lorenztraj.core.chaos.lorenz import Parameters, State
from lorenztraj.core.constants import TIME_STAMPING
from lorenztraj.core.integrator import coerce_state, integrate, validate_arguments
from lorenztraj.core.trajectory import Trajectory
from lorenztraj.utils.logging import get_logger, run_context

logger = get_logger(__name__)


@dataclass(frozen=True)
class RunSpec:
    """One member of an overlay: parameters plus starting state."""

    params: Parameters
    initial: State
    label: Optional[str] = None


def _integrate_task(task: Tuple[RunSpec, float, int, str]) -> Trajectory:
    spec, step_size, step_count, time_stamping = task
    with run_context(spec.label):
        return integrate(
            spec.params,
            spec.initial,
            step_size,
            step_count,
            time_stamping=time_stamping,
        )


def run_ensemble(
    specs: Sequence[RunSpec],
    step_size: float,
    step_count: int,
    jobs: int = 1,
    time_stamping: str = TIME_STAMPING,
) -> List[Trajectory]:
    """
    Integrate every spec with shared step settings.

    Results keep input order. With jobs > 1 the runs are spread over a
    process pool; steps within a single run stay sequential.
    """
    validate_arguments(step_size, step_count)
    tasks = [
        (
            RunSpec(params=s.params, initial=coerce_state(s.initial), label=s.label or f"run{idx}"),
            step_size,
            step_count,
            time_stamping,
        )
        for idx, s in enumerate(specs)
    ]
    logger.debug("Running ensemble runs=%d jobs=%d step_size=%s step_count=%d", len(tasks), jobs, step_size, step_count)
    if jobs and jobs > 1 and len(tasks) > 1:
        with ProcessPoolExecutor(max_workers=jobs) as ex:
            return list(ex.map(_integrate_task, tasks))
    return [_integrate_task(task) for task in tasks]


def overlay_initial_states(
    params: Parameters,
    initials: Sequence[Sequence[float]],
    step_size: float,
    step_count: int,
    jobs: int = 1,
    time_stamping: str = TIME_STAMPING,
) -> List[Trajectory]:
    specs = [RunSpec(params=params, initial=coerce_state(init)) for init in initials]
    return run_ensemble(specs, step_size, step_count, jobs=jobs, time_stamping=time_stamping)


def overlay_parameters(
    params_list: Sequence[Parameters],
    initial: Sequence[float],
    step_size: float,
    step_count: int,
    jobs: int = 1,
    time_stamping: str = TIME_STAMPING,
) -> List[Trajectory]:
    start = coerce_state(initial)
    specs = [RunSpec(params=params, initial=start) for params in params_list]
    return run_ensemble(specs, step_size, step_count, jobs=jobs, time_stamping=time_stamping)
