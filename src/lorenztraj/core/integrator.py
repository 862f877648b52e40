from __future__ import annotations

import numbers
from typing import Callable, Iterator, Optional, Sequence

import numpy as np

from lorenztraj.core.chaos.lorenz import Parameters, State, euler_step
from lorenztraj.core.constants import TIME_STAMPING
from lorenztraj.core.errors import IntegrationCancelled, InvalidArgument
from lorenztraj.core.timing import get_time_stamping, list_time_stampings
from lorenztraj.core.trajectory import Trajectory
from lorenztraj.utils.logging import get_logger

logger = get_logger(__name__)

CancelCheck = Callable[[], bool]


def validate_arguments(step_size: float, step_count: int) -> None:
    if isinstance(step_size, bool) or not isinstance(step_size, numbers.Real):
        raise InvalidArgument(f"step_size must be a real number, got {step_size!r}")
    if not step_size > 0:
        raise InvalidArgument(f"step_size must be > 0, got {step_size}")
    if isinstance(step_count, bool) or not isinstance(step_count, numbers.Integral):
        raise InvalidArgument(f"step_count must be an integer, got {step_count!r}")
    if step_count < 1:
        raise InvalidArgument(f"step_count must be >= 1, got {step_count}")


def coerce_state(initial: Sequence[float]) -> State:
    try:
        values = tuple(float(v) for v in initial)
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"initial state must be three real numbers, got {initial!r}") from exc
    if len(values) != 3:
        raise InvalidArgument(f"initial state must have exactly three entries, got {len(values)}")
    return values  # type: ignore[return-value]


def iter_states(
    params: Parameters,
    initial: Sequence[float],
    step_size: float,
    step_count: int,
    should_cancel: Optional[CancelCheck] = None,
) -> Iterator[State]:
    """
    Iterate over the initial state followed by `step_count` Euler updates.

    Only the current state is held, so callers that need just the end point
    can consume this without keeping the history. Arguments are checked at
    call time, before the first state is requested.
    """
    validate_arguments(step_size, step_count)
    return _euler_states(params, coerce_state(initial), float(step_size), step_count, should_cancel)


def _euler_states(
    params: Parameters,
    state: State,
    step_size: float,
    step_count: int,
    should_cancel: Optional[CancelCheck],
) -> Iterator[State]:
    yield state
    for i in range(step_count):
        if should_cancel is not None and should_cancel():
            raise IntegrationCancelled(i)
        state = euler_step(params, state, step_size)
        yield state


def final_state(
    params: Parameters,
    initial: Sequence[float],
    step_size: float,
    step_count: int,
    should_cancel: Optional[CancelCheck] = None,
) -> State:
    state = None
    for state in iter_states(params, initial, step_size, step_count, should_cancel=should_cancel):
        pass
    return state  # type: ignore[return-value]


def integrate(
    params: Parameters,
    initial: Sequence[float],
    step_size: float,
    step_count: int,
    *,
    time_stamping: str = TIME_STAMPING,
    should_cancel: Optional[CancelCheck] = None,
) -> Trajectory:
    """
    Integrate the Lorenz system with fixed-step explicit Euler.

    Returns a Trajectory of exactly `step_count + 1` points. Non-finite values
    produced by divergence are kept as-is; inspect them with
    `Trajectory.is_finite()` / `first_nonfinite_index()`.
    """
    validate_arguments(step_size, step_count)
    if time_stamping not in list_time_stampings():
        raise InvalidArgument(
            f"Unknown time stamping '{time_stamping}'. Available: {list_time_stampings()}"
        )
    start = coerce_state(initial)
    step_size = float(step_size)
    logger.debug(
        "Integrating sigma=%s r=%s b=%s init=(%.6g,%.6g,%.6g) step_size=%s step_count=%d",
        params.sigma, params.r, params.b, start[0], start[1], start[2], step_size, step_count,
    )

    states = np.empty((step_count + 1, 3), dtype=np.float64)
    for i, state in enumerate(iter_states(params, start, step_size, step_count, should_cancel=should_cancel)):
        states[i] = state
    times = get_time_stamping(time_stamping).times(step_count, step_size)

    trajectory = Trajectory(
        params=params,
        step_size=step_size,
        states=states,
        times=times,
        time_stamping=time_stamping,
    )
    if not trajectory.is_finite():
        logger.info("Trajectory became non-finite at index %d", trajectory.first_nonfinite_index())
    return trajectory
