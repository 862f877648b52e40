from __future__ import annotations

from typing import Callable, Dict, List

import numpy as np


class TimeStamping:
    """Callable time-stamping convention wrapper."""

    def __init__(self, name: str, func: Callable[[int, float], np.ndarray]):
        self.name = name
        self.func = func

    def times(self, step_count: int, step_size: float) -> np.ndarray:
        return self.func(step_count, step_size)


TIME_STAMPING_REGISTRY: Dict[str, TimeStamping] = {}


def register_time_stamping(name: str, func: Callable[[int, float], np.ndarray]):
    TIME_STAMPING_REGISTRY[name] = TimeStamping(name=name, func=func)


def get_time_stamping(name: str) -> TimeStamping:
    if name not in TIME_STAMPING_REGISTRY:
        raise ValueError(f"Unknown time stamping '{name}'. Available: {list_time_stampings()}")
    return TIME_STAMPING_REGISTRY[name]


def list_time_stampings() -> List[str]:
    return sorted(TIME_STAMPING_REGISTRY.keys())


def index_times(step_count: int, step_size: float) -> np.ndarray:
    """t[i] = i * step_size for i in 0..step_count."""
    return np.arange(step_count + 1, dtype=np.float64) * step_size


def legacy_times(step_count: int, step_size: float) -> np.ndarray:
    """
    Notebook convention: t[0] = 0 and t[i+1] = i * step_size.

    Every stamp after the first lags one step behind, so t[1] == t[0].
    """
    times = np.empty(step_count + 1, dtype=np.float64)
    times[0] = 0.0
    times[1:] = np.arange(step_count, dtype=np.float64) * step_size
    return times


# Registry
register_time_stamping("index", index_times)
register_time_stamping("legacy", legacy_times)
