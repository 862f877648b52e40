from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, NamedTuple, Optional

import numpy as np

from lorenztraj.core.chaos.lorenz import Parameters, State


class TrajectoryPoint(NamedTuple):
    state: State
    time: float


@dataclass(frozen=True, eq=False)
class Trajectory:
    """
    Ordered sequence of (state, time) pairs produced by one integration run.

    `states` has shape (step_count + 1, 3) and `times` shape (step_count + 1,).
    Both arrays are read-only; index 0 is the initial condition.
    """

    params: Parameters
    step_size: float
    states: np.ndarray
    times: np.ndarray
    time_stamping: str = "index"

    def __post_init__(self):
        states = np.array(self.states, dtype=np.float64, copy=True)
        times = np.array(self.times, dtype=np.float64, copy=True)
        if states.ndim != 2 or states.shape[1] != 3:
            raise ValueError(f"states must have shape (n, 3), got {states.shape}")
        if times.shape != (states.shape[0],):
            raise ValueError("times must have one entry per state")
        states.setflags(write=False)
        times.setflags(write=False)
        object.__setattr__(self, "states", states)
        object.__setattr__(self, "times", times)

    def __reduce__(self):
        # rebuild through the constructor so unpickled arrays stay read-only
        return (Trajectory, (self.params, self.step_size, self.states, self.times, self.time_stamping))

    def __len__(self) -> int:
        return int(self.states.shape[0])

    def __getitem__(self, index: int) -> TrajectoryPoint:
        row = self.states[index]
        return TrajectoryPoint(
            state=(float(row[0]), float(row[1]), float(row[2])),
            time=float(self.times[index]),
        )

    def __iter__(self) -> Iterator[TrajectoryPoint]:
        for i in range(len(self)):
            yield self[i]

    @property
    def step_count(self) -> int:
        return len(self) - 1

    @property
    def initial(self) -> State:
        return self[0].state

    @property
    def final(self) -> State:
        return self[-1].state

    @property
    def x(self) -> np.ndarray:
        return self.states[:, 0]

    @property
    def y(self) -> np.ndarray:
        return self.states[:, 1]

    @property
    def z(self) -> np.ndarray:
        return self.states[:, 2]

    def finite_mask(self) -> np.ndarray:
        """Boolean per row, True where all three coordinates are finite."""
        return np.isfinite(self.states).all(axis=1)

    def is_finite(self) -> bool:
        return bool(self.finite_mask().all())

    def first_nonfinite_index(self) -> Optional[int]:
        bad = np.flatnonzero(~self.finite_mask())
        if bad.size == 0:
            return None
        return int(bad[0])

    def prefix(self, length: int) -> "Trajectory":
        """First `length` points, e.g. one frame of a sequential reveal."""
        if length < 1 or length > len(self):
            raise ValueError(f"prefix length must be in 1..{len(self)}, got {length}")
        return Trajectory(
            params=self.params,
            step_size=self.step_size,
            states=self.states[:length],
            times=self.times[:length],
            time_stamping=self.time_stamping,
        )

    def fingerprint(self) -> str:
        """SHA-256 over the state and time bytes (row-major)."""
        digest = hashlib.sha256()
        digest.update(self.states.tobytes(order="C"))
        digest.update(self.times.tobytes(order="C"))
        return digest.hexdigest()

    def to_records(self) -> List[Dict[str, Any]]:
        return [
            {"index": i, "t": float(t), "x": float(s[0]), "y": float(s[1]), "z": float(s[2])}
            for i, (s, t) in enumerate(zip(self.states, self.times))
        ]
