from __future__ import annotations

import csv
import json
import math
from pathlib import Path
from typing import Any, Dict

import numpy as np

from lorenztraj.core.chaos.lorenz import Parameters
from lorenztraj.core.constants import METHOD, VERSION
from lorenztraj.core.trajectory import Trajectory

TRAJECTORY_FORMATS = ("csv", "json", "npz")


def to_strict_json(value: Any) -> Any:
    """Replace NaN and infinities with None so the result is standard JSON."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: to_strict_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_strict_json(v) for v in value]
    return value


def dumps_json(payload: Any, **kwargs: Any) -> str:
    return json.dumps(to_strict_json(payload), allow_nan=False, **kwargs)


def read_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(to_strict_json(payload), f, indent=2, allow_nan=False)


def infer_format(path: Path) -> str:
    suffix = path.suffix.lower().lstrip(".")
    if suffix not in TRAJECTORY_FORMATS:
        raise ValueError(f"Cannot infer trajectory format from '{path.name}'. Use one of {TRAJECTORY_FORMATS}.")
    return suffix


def trajectory_payload(trajectory: Trajectory) -> Dict[str, Any]:
    return {
        "version": VERSION,
        "method": METHOD,
        "params": trajectory.params.as_dict(),
        "step_size": trajectory.step_size,
        "step_count": trajectory.step_count,
        "time_stamping": trajectory.time_stamping,
        "fingerprint": trajectory.fingerprint(),
        "times": trajectory.times.tolist(),
        "states": trajectory.states.tolist(),
    }


def write_trajectory(path: Path, trajectory: Trajectory, fmt: str | None = None) -> None:
    fmt = fmt or infer_format(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "csv":
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=["index", "t", "x", "y", "z"])
            writer.writeheader()
            for rec in trajectory.to_records():
                writer.writerow(rec)
    elif fmt == "json":
        write_json(path, trajectory_payload(trajectory))
    elif fmt == "npz":
        with path.open("wb") as f:
            np.savez(
                f,
                states=trajectory.states,
                times=trajectory.times,
                params=np.array([trajectory.params.sigma, trajectory.params.r, trajectory.params.b]),
                step_size=np.array(trajectory.step_size),
                time_stamping=np.array(trajectory.time_stamping),
            )
    else:
        raise ValueError(f"Unsupported trajectory format '{fmt}'. Use one of {TRAJECTORY_FORMATS}.")


def read_trajectory(path: Path) -> Trajectory:
    fmt = infer_format(path)
    if fmt == "json":
        payload = read_json(path)
        params = payload["params"]
        return Trajectory(
            params=Parameters(sigma=params["sigma"], r=params["r"], b=params["b"]),
            step_size=float(payload["step_size"]),
            states=np.array(payload["states"], dtype=np.float64),
            times=np.array(payload["times"], dtype=np.float64),
            time_stamping=str(payload.get("time_stamping", "index")),
        )
    if fmt == "npz":
        with np.load(path) as data:
            sigma, r, b = (float(v) for v in data["params"])
            return Trajectory(
                params=Parameters(sigma=sigma, r=r, b=b),
                step_size=float(data["step_size"]),
                states=data["states"],
                times=data["times"],
                time_stamping=str(data["time_stamping"]),
            )
    raise ValueError("Reading trajectories is supported for json and npz only.")
