from __future__ import annotations

import csv
import itertools
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

import yaml

from lorenztraj.analysis.divergence import summarize
from lorenztraj.core import constants
from lorenztraj.core.chaos.lorenz import Parameters, State
from lorenztraj.core.integrator import integrate
from lorenztraj.core.timing import list_time_stampings
from lorenztraj.io.formats import write_json
from lorenztraj.utils.logging import get_logger, run_context

logger = get_logger(__name__)


# -------------------------
# Config structures
# -------------------------


@dataclass(frozen=True)
class SweepConfig:
    step_size: float
    step_count: int
    time_stamping: str


@dataclass(frozen=True)
class MatrixConfig:
    sigma: Sequence[float]
    r: Sequence[float]
    b: Sequence[float]
    initial: Sequence[State]


@dataclass(frozen=True)
class OutputConfig:
    include_timestamp_utc: bool
    include_fingerprint: bool


@dataclass(frozen=True)
class ValidateConfig:
    assert_deterministic_within_run: bool


@dataclass(frozen=True)
class FullConfig:
    sweep: SweepConfig
    matrix: MatrixConfig
    output: OutputConfig
    validate: ValidateConfig


# -------------------------
# Config parsing/validation
# -------------------------


class ConfigError(Exception):
    """Raised when the sweep config is invalid."""


def _require(mapping: Dict[str, Any], key: str, expected_type: Tuple[type, ...]):
    if key not in mapping:
        raise ConfigError(f"Missing required key '{key}'")
    val = mapping[key]
    if not isinstance(val, expected_type):
        raise ConfigError(f"Key '{key}' must be of type {expected_type}, got {type(val)}")
    return val


def _float_list(mapping: Dict[str, Any], key: str, default: float) -> List[float]:
    val = mapping.get(key, [default])
    if not isinstance(val, (list, tuple)):
        val = [val]
    if not val:
        raise ConfigError(f"matrix.{key} must not be empty")
    try:
        return [float(x) for x in val]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"matrix.{key} must contain numbers") from exc


def _initial_list(matrix: Dict[str, Any]) -> List[State]:
    val = matrix.get("initial", [list(constants.DEFAULT_INITIAL)])
    if not isinstance(val, (list, tuple)) or not val:
        raise ConfigError("matrix.initial must be a non-empty list of [x, y, z]")
    initials: List[State] = []
    for entry in val:
        if not isinstance(entry, (list, tuple)) or len(entry) != 3:
            raise ConfigError("Each matrix.initial entry must be [x, y, z]")
        try:
            initials.append((float(entry[0]), float(entry[1]), float(entry[2])))
        except (TypeError, ValueError) as exc:
            raise ConfigError("matrix.initial entries must contain numbers") from exc
    return initials


def parse_config(path: Path) -> FullConfig:
    try:
        data = yaml.safe_load(path.read_text())
    except Exception as exc:  # noqa: BLE001
        raise ConfigError(f"Failed to read YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Top-level YAML must be a mapping.")

    sweep = _require(data, "sweep", (dict,))
    matrix = data.get("matrix") or {}
    output = data.get("output") or {}
    validate = data.get("validate") or {}
    for name, section in (("matrix", matrix), ("output", output), ("validate", validate)):
        if not isinstance(section, dict):
            raise ConfigError(f"'{name}' must be a mapping if provided.")

    sweep_cfg = SweepConfig(
        step_size=float(_require(sweep, "step_size", (int, float))),
        step_count=_require(sweep, "step_count", (int,)),
        time_stamping=str(sweep.get("time_stamping", constants.TIME_STAMPING)),
    )
    if not sweep_cfg.step_size > 0:
        raise ConfigError("sweep.step_size must be > 0")
    if isinstance(sweep_cfg.step_count, bool) or sweep_cfg.step_count < 1:
        raise ConfigError("sweep.step_count must be an integer >= 1")
    if sweep_cfg.time_stamping not in list_time_stampings():
        raise ConfigError(
            f"Unknown time_stamping '{sweep_cfg.time_stamping}'. Available: {list_time_stampings()}"
        )

    matrix_cfg = MatrixConfig(
        sigma=_float_list(matrix, "sigma", constants.LORENZ_SIGMA),
        r=_float_list(matrix, "r", constants.LORENZ_R),
        b=_float_list(matrix, "b", constants.LORENZ_B),
        initial=_initial_list(matrix),
    )

    output_cfg = OutputConfig(
        include_timestamp_utc=bool(output.get("include_timestamp_utc", True)),
        include_fingerprint=bool(output.get("include_fingerprint", True)),
    )

    validate_cfg = ValidateConfig(
        assert_deterministic_within_run=bool(validate.get("assert_deterministic_within_run", True)),
    )

    return FullConfig(sweep=sweep_cfg, matrix=matrix_cfg, output=output_cfg, validate=validate_cfg)


# -------------------------
# Sweep internals
# -------------------------


def _variant_product(matrix: MatrixConfig) -> List[Dict[str, Any]]:
    combos = []
    for sigma, r, b, initial in itertools.product(matrix.sigma, matrix.r, matrix.b, matrix.initial):
        combos.append({"sigma": float(sigma), "r": float(r), "b": float(b), "initial": tuple(initial)})
    return combos


def _run_single_variant(task: Tuple[FullConfig, Dict[str, Any]]) -> Dict[str, Any]:
    config, variant = task
    label = f"sigma={variant['sigma']},r={variant['r']},b={variant['b']:.6g}"
    with run_context(label):
        return _integrate_variant(config, variant)


def _integrate_variant(config: FullConfig, variant: Dict[str, Any]) -> Dict[str, Any]:
    params = Parameters(sigma=variant["sigma"], r=variant["r"], b=variant["b"])
    sweep = config.sweep

    start = time.perf_counter()
    trajectory = integrate(
        params,
        variant["initial"],
        sweep.step_size,
        sweep.step_count,
        time_stamping=sweep.time_stamping,
    )
    elapsed = time.perf_counter() - start

    if config.validate.assert_deterministic_within_run:
        again = integrate(
            params,
            variant["initial"],
            sweep.step_size,
            sweep.step_count,
            time_stamping=sweep.time_stamping,
        )
        if again.fingerprint() != trajectory.fingerprint():
            raise RuntimeError("Determinism check failed: trajectory mismatch within run.")

    record = summarize(trajectory)
    record["t_integrate_s"] = elapsed
    if not config.output.include_fingerprint:
        record["fingerprint"] = None
    if config.output.include_timestamp_utc:
        record["timestamp_utc"] = datetime.now(timezone.utc).isoformat()
    logger.debug(
        "Variant sigma=%s r=%s b=%s finite=%s", params.sigma, params.r, params.b, record["finite"]
    )
    return record


def run_sweep(config: FullConfig, jobs: int = 1) -> List[Dict[str, Any]]:
    tasks = [(config, variant) for variant in _variant_product(config.matrix)]
    logger.info("Sweep variants=%d jobs=%d", len(tasks), jobs)

    if jobs and jobs > 1:
        with ProcessPoolExecutor(max_workers=jobs) as ex:
            results = list(ex.map(_run_single_variant, tasks))
    else:
        results = [_run_single_variant(task) for task in tasks]

    # Sort deterministically
    def sort_key(rec: Dict[str, Any]):
        return (rec["sigma"], rec["r"], rec["b"], rec["x0"], rec["y0"], rec["z0"])

    return sorted(results, key=sort_key)


# -------------------------
# Output helpers
# -------------------------


CSV_FIELDS = [
    "timestamp_utc",
    "sigma",
    "r",
    "b",
    "x0",
    "y0",
    "z0",
    "step_size",
    "step_count",
    "time_stamping",
    "t_final",
    "final_x",
    "final_y",
    "final_z",
    "finite",
    "first_nonfinite_index",
    "min_x",
    "max_x",
    "min_y",
    "max_y",
    "min_z",
    "max_z",
    "t_integrate_s",
    "fingerprint",
]


def write_csv(path: Path, records: List[Dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS, extrasaction="ignore")
        writer.writeheader()
        for rec in records:
            writer.writerow(rec)


def write_json_output(path: Path, records: List[Dict[str, Any]]) -> None:
    write_json(path, records)
