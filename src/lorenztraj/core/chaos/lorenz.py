from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from lorenztraj.core.constants import LORENZ_B, LORENZ_R, LORENZ_SIGMA

State = Tuple[float, float, float]


@dataclass(frozen=True)
class Parameters:
    """Coefficients of the Lorenz vector field. Any real values are accepted."""

    sigma: float
    r: float
    b: float

    def __post_init__(self):
        object.__setattr__(self, "sigma", float(self.sigma))
        object.__setattr__(self, "r", float(self.r))
        object.__setattr__(self, "b", float(self.b))

    @classmethod
    def classic(cls) -> "Parameters":
        return cls(sigma=LORENZ_SIGMA, r=LORENZ_R, b=LORENZ_B)

    def as_dict(self) -> dict:
        return {"sigma": self.sigma, "r": self.r, "b": self.b}


def derivatives(params: Parameters, state: State) -> State:
    x, y, z = state
    dx = params.sigma * (y - x)
    dy = params.r * x - y - x * z
    dz = x * y - params.b * z
    return dx, dy, dz


def euler_step(params: Parameters, state: State, step_size: float) -> State:
    """Advance one explicit Euler step and return the new state."""
    x, y, z = state
    return (
        x + step_size * params.sigma * (y - x),
        y + step_size * (params.r * x - y - x * z),
        z + step_size * (x * y - params.b * z),
    )
