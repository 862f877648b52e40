from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Sequence

import typer

from lorenztraj.core.chaos.lorenz import Parameters


def _timestamp_utc() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _abs_path(path: Path | None) -> str:
    if path is None:
        return "n/a"
    try:
        return str(path.resolve())
    except OSError:
        return str(path)


def _truncate_hex(value: str, max_len: int = 12) -> str:
    if len(value) <= max_len:
        return value
    return f"{value[:max_len]}..."


def _fmt_state(state: Sequence[float]) -> str:
    return "(" + ",".join(f"{v:.6g}" for v in state) + ")"


def print_run_header(
    command: str,
    *,
    params: Parameters,
    step_size: float,
    step_count: int,
    time_stamping: str,
    preset: str | None = None,
    initial: Sequence[float] | None = None,
) -> None:
    typer.echo(f"[run] command={command} ts_utc={_timestamp_utc()}")
    typer.echo(f"[params] preset={preset or 'n/a'} sigma={params.sigma} r={params.r} b={params.b}")
    if initial is not None:
        typer.echo(f"[init] state={_fmt_state(initial)}")
    typer.echo(f"[euler] step_size={step_size} step_count={step_count} time_stamping={time_stamping}")


def print_trajectory_summary(summary: Dict[str, Any], label: str = "trajectory") -> None:
    final = (summary["final_x"], summary["final_y"], summary["final_z"])
    typer.echo(
        f"[{label}] points={summary['step_count'] + 1} t_final={summary['t_final']} final={_fmt_state(final)}"
    )
    if summary["finite"]:
        typer.echo(f"[{label}] finite=yes fingerprint={_truncate_hex(summary['fingerprint'])}")
    else:
        typer.secho(
            f"[{label}] finite=no first_nonfinite_index={summary['first_nonfinite_index']}",
            fg=typer.colors.YELLOW,
        )


def print_sensitivity(metrics: Dict[str, Any]) -> None:
    typer.echo(
        "[sensitivity] "
        f"delta={metrics['delta']} max_distance={metrics['max_distance']:.6g} "
        f"growth_factor={metrics['growth_factor']:.6g}"
    )
    if metrics["first_exceed_index"] is None:
        typer.echo(f"[sensitivity] threshold={metrics['threshold']} not exceeded")
    else:
        typer.echo(
            f"[sensitivity] threshold={metrics['threshold']} exceeded at index={metrics['first_exceed_index']} "
            f"t={metrics['first_exceed_time']}"
        )
    if metrics["growth_rate"] is not None:
        typer.echo(f"[sensitivity] growth_rate={metrics['growth_rate']:.6g}")


def print_io_write(path: Path) -> None:
    typer.echo(f"[io] Writing output: {_abs_path(path)}")


def print_done(summary: str) -> None:
    typer.echo(f"[done] {summary}")
