from __future__ import annotations

import math
from pathlib import Path
from typing import List, NoReturn, Optional

import typer

from lorenztraj.analysis.divergence import sensitivity, summarize
from lorenztraj.cli import ui
from lorenztraj.core import constants
from lorenztraj.core.chaos.lorenz import Parameters, State
from lorenztraj.core.errors import InvalidArgument
from lorenztraj.core.integrator import integrate
from lorenztraj.io.formats import TRAJECTORY_FORMATS, dumps_json, write_trajectory
from lorenztraj.io.presets import (
    list_presets,
    load_preset,
    load_preset_meta,
    preset_exists,
    save_preset,
)
from lorenztraj.orchestrator.ensemble import overlay_initial_states
from lorenztraj.sweep.runner import (
    ConfigError,
    parse_config,
    run_sweep,
    write_csv,
    write_json_output,
)
from lorenztraj.utils.logging import resolve_log_level, set_command_context, setup_logging

app = typer.Typer(help="Lorenz system trajectories via fixed-step explicit Euler")
preset_app = typer.Typer(help="Parameter presets (list/show/save)")

_DEFAULT_INITIAL_TEXT = ",".join(str(v) for v in constants.DEFAULT_INITIAL)


def parse_state(text: str) -> State:
    try:
        parts = text.split(",") if "," in text else text.split()
        if len(parts) != 3:
            raise ValueError
        x, y, z = (float(p.strip()) for p in parts)
        return x, y, z
    except Exception as exc:  # noqa: BLE001
        raise typer.BadParameter("state must be provided as 'x,y,z' or 'x y z'") from exc


def resolve_params(preset: str | None, sigma: float | None, r: float | None, b: float | None) -> Parameters:
    """Start from a preset (or the classic values) and apply explicit overrides."""
    if preset is not None:
        if not preset_exists(preset):
            typer.secho(f"Preset '{preset}' not found.", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        base = load_preset(preset)
    else:
        base = Parameters.classic()
    return Parameters(
        sigma=base.sigma if sigma is None else sigma,
        r=base.r if r is None else r,
        b=base.b if b is None else b,
    )


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=1)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress (INFO)"),
    debug: bool = typer.Option(False, "--debug", help="Log internals (DEBUG)"),
):
    setup_logging(resolve_log_level(verbose, debug))


@app.command("integrate")
def integrate_cmd(
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="Parameter preset name"),
    sigma: Optional[float] = typer.Option(None, "--sigma", help="Override sigma"),
    r: Optional[float] = typer.Option(None, "--r", help="Override r"),
    b: Optional[float] = typer.Option(None, "--b", help="Override b"),
    initial: str = typer.Option(_DEFAULT_INITIAL_TEXT, "--initial", "-i", help="Initial state as 'x,y,z'"),
    step_size: float = typer.Option(constants.DEFAULT_STEP_SIZE, "--dt", help="Euler step size"),
    step_count: int = typer.Option(constants.DEFAULT_STEP_COUNT, "--steps", "-n", help="Number of Euler steps"),
    time_stamping: str = typer.Option(constants.TIME_STAMPING, "--time-stamping", help="Time-stamping convention"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the trajectory to this file"),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help=f"Output format {TRAJECTORY_FORMATS}"),
    json_summary: bool = typer.Option(False, "--json", help="Print summary JSON to stdout"),
):
    """Integrate one trajectory and print its summary."""
    set_command_context("integrate")
    params = resolve_params(preset, sigma, r, b)
    start = parse_state(initial)
    if fmt is not None and fmt not in TRAJECTORY_FORMATS:
        _fail(f"Unsupported format '{fmt}'. Use one of {TRAJECTORY_FORMATS}.")

    try:
        trajectory = integrate(params, start, step_size, step_count, time_stamping=time_stamping)
    except InvalidArgument as exc:
        _fail(str(exc))

    summary = summarize(trajectory)
    if out is not None:
        try:
            write_trajectory(out, trajectory, fmt)
        except (OSError, ValueError) as exc:
            _fail(f"Failed to write trajectory: {exc}")

    if json_summary:
        typer.echo(dumps_json(summary))
        return

    ui.print_run_header(
        "integrate",
        params=params,
        step_size=step_size,
        step_count=step_count,
        time_stamping=time_stamping,
        preset=preset,
        initial=start,
    )
    ui.print_trajectory_summary(summary)
    if out is not None:
        ui.print_io_write(out)
    ui.print_done(f"points={len(trajectory)}")


@app.command()
def overlay(
    initial: List[str] = typer.Option([], "--initial", "-i", help="Initial state 'x,y,z' (repeatable)"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="Parameter preset name"),
    sigma: Optional[float] = typer.Option(None, "--sigma", help="Override sigma"),
    r: Optional[float] = typer.Option(None, "--r", help="Override r"),
    b: Optional[float] = typer.Option(None, "--b", help="Override b"),
    step_size: float = typer.Option(constants.DEFAULT_STEP_SIZE, "--dt", help="Euler step size"),
    step_count: int = typer.Option(constants.DEFAULT_STEP_COUNT, "--steps", "-n", help="Number of Euler steps"),
    jobs: int = typer.Option(1, "--jobs", "-j", help="Parallel jobs (trajectories), default 1"),
    json_summary: bool = typer.Option(False, "--json", help="Print summaries as JSON"),
):
    """Integrate several initial states with shared parameters and step settings."""
    set_command_context("overlay")
    params = resolve_params(preset, sigma, r, b)
    starts = [parse_state(text) for text in initial] or [constants.DEFAULT_INITIAL]

    try:
        trajectories = overlay_initial_states(params, starts, step_size, step_count, jobs=jobs)
    except InvalidArgument as exc:
        _fail(str(exc))

    summaries = [summarize(t) for t in trajectories]
    if json_summary:
        typer.echo(dumps_json(summaries))
        return

    ui.print_run_header(
        "overlay",
        params=params,
        step_size=step_size,
        step_count=step_count,
        time_stamping=constants.TIME_STAMPING,
        preset=preset,
    )
    for idx, summary in enumerate(summaries):
        ui.print_trajectory_summary(summary, label=f"run{idx}")
    ui.print_done(f"runs={len(summaries)}")


@app.command("sensitivity")
def sensitivity_cmd(
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="Parameter preset name"),
    sigma: Optional[float] = typer.Option(None, "--sigma", help="Override sigma"),
    r: Optional[float] = typer.Option(None, "--r", help="Override r"),
    b: Optional[float] = typer.Option(None, "--b", help="Override b"),
    initial: str = typer.Option(_DEFAULT_INITIAL_TEXT, "--initial", "-i", help="Reference initial state 'x,y,z'"),
    delta: float = typer.Option(constants.DEFAULT_PERTURBATION, "--delta", help="Perturbation added to one axis"),
    axis: int = typer.Option(0, "--axis", help="Perturbed axis (0=x, 1=y, 2=z)"),
    threshold_factor: float = typer.Option(
        constants.DEFAULT_THRESHOLD_FACTOR, "--threshold-factor", help="Divergence threshold as a multiple of delta"
    ),
    step_size: float = typer.Option(constants.DEFAULT_STEP_SIZE, "--dt", help="Euler step size"),
    step_count: int = typer.Option(constants.DEFAULT_STEP_COUNT, "--steps", "-n", help="Number of Euler steps"),
    json_summary: bool = typer.Option(False, "--json", help="Print metrics JSON to stdout"),
):
    """Compare a reference run with a slightly perturbed one."""
    set_command_context("sensitivity")
    params = resolve_params(preset, sigma, r, b)
    start = parse_state(initial)

    try:
        result = sensitivity(
            params,
            start,
            step_size,
            step_count,
            delta=delta,
            axis=axis,
            threshold_factor=threshold_factor,
        )
    except InvalidArgument as exc:
        _fail(str(exc))

    metrics = result.as_dict()
    if json_summary:
        typer.echo(dumps_json(metrics))
        return

    ui.print_run_header(
        "sensitivity",
        params=params,
        step_size=step_size,
        step_count=step_count,
        time_stamping=constants.TIME_STAMPING,
        preset=preset,
        initial=start,
    )
    ui.print_sensitivity(metrics)
    ui.print_done("diverged" if result.diverged else "not diverged")


@app.command()
def sweep(
    config: Path = typer.Option(..., "--config", "-c", exists=True, readable=True, help="YAML sweep config"),
    out: Path = typer.Option(..., "--out", "-o", help="CSV output path"),
    out_json: Optional[Path] = typer.Option(None, "--out-json", help="Optional JSON output path"),
    jobs: int = typer.Option(1, "--jobs", "-j", help="Parallel jobs (variants), default 1"),
    json_summary: bool = typer.Option(False, "--json", help="Print summary JSON to stdout"),
):
    """
    Run a parameter/initial-state matrix from YAML config and export CSV/JSON.
    """
    set_command_context("sweep")
    try:
        cfg = parse_config(config)
    except ConfigError as exc:
        _fail(f"Config error: {exc}")

    try:
        records = run_sweep(cfg, jobs=jobs)
    except Exception as exc:  # noqa: BLE001
        _fail(f"Sweep failed: {exc}")

    try:
        write_csv(out, records)
        if out_json:
            write_json_output(out_json, records)
    except Exception as exc:  # noqa: BLE001
        _fail(f"Failed to write outputs: {exc}")

    typer.secho(f"Sweep complete. CSV → {out}", fg=typer.colors.GREEN)
    if out_json:
        typer.secho(f"JSON → {out_json}", fg=typer.colors.GREEN)

    if json_summary:
        summary = {
            "variants": len(records),
            "nonfinite": sum(1 for rec in records if not rec["finite"]),
            "csv": str(out),
            "json": str(out_json) if out_json else None,
        }
        typer.echo(dumps_json(summary))


@preset_app.command("list")
def preset_list():
    """List built-in and saved presets."""
    for name in list_presets():
        typer.echo(name)


@preset_app.command("show")
def preset_show(name: str = typer.Option(..., "--name", "-n", help="Preset name")):
    """Show preset parameters."""
    if not preset_exists(name):
        _fail(f"Preset '{name}' not found.")
    typer.echo(dumps_json(load_preset_meta(name), indent=2))


@preset_app.command("save")
def preset_save(
    name: str = typer.Option(..., "--name", "-n", help="Preset name"),
    sigma: float = typer.Option(constants.LORENZ_SIGMA, "--sigma", help="sigma"),
    r: float = typer.Option(constants.LORENZ_R, "--r", help="r"),
    b: float = typer.Option(constants.LORENZ_B, "--b", help="b"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing preset"),
):
    """Persist a named parameter set."""
    if preset_exists(name) and not force:
        _fail(f"Preset '{name}' already exists.")
    try:
        path = save_preset(name, Parameters(sigma=sigma, r=r, b=b))
    except ValueError as exc:
        _fail(str(exc))
    typer.secho(f"Preset '{name}' saved → {path}", fg=typer.colors.GREEN)


@app.command()
def selftest():
    """
    Run the built-in golden vector check (no filesystem writes).
    """
    set_command_context("selftest")
    params = Parameters.classic()
    start = (0.1, 0.1, 0.1)
    h = 0.01

    trajectory = integrate(params, start, h, 1)
    expected = (
        0.1 + h * params.sigma * (0.1 - 0.1),
        0.1 + h * (params.r * 0.1 - 0.1 - 0.1 * 0.1),
        0.1 + h * (0.1 * 0.1 - params.b * 0.1),
    )
    one_step_ok = len(trajectory) == 2 and all(
        math.isclose(got, want, rel_tol=1e-12, abs_tol=1e-15) for got, want in zip(trajectory[1].state, expected)
    )
    times_ok = trajectory[0].time == 0.0 and trajectory[1].time == h
    repeat_ok = integrate(params, start, h, 100).fingerprint() == integrate(params, start, h, 100).fingerprint()

    if one_step_ok and times_ok and repeat_ok:
        typer.secho("Selftest passed (golden vector).", fg=typer.colors.GREEN)
    else:
        typer.secho("Selftest FAILED.", fg=typer.colors.RED)
        raise typer.Exit(code=1)


app.add_typer(preset_app, name="preset")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
