import csv
import json
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from lorenztraj.cli.app import app
from lorenztraj.sweep.runner import ConfigError, parse_config, run_sweep


def _base_config():
    return {
        "sweep": {"step_size": 0.01, "step_count": 500, "time_stamping": "index"},
        "matrix": {
            "sigma": [10.0],
            "r": [14.0, 28.0],
            "b": [2.6666666666666665],
            "initial": [[0.1, 0.1, 0.1], [1.0, 1.0, 1.0]],
        },
        "output": {"include_timestamp_utc": False, "include_fingerprint": True},
        "validate": {"assert_deterministic_within_run": True},
    }


def test_parse_config_missing_key(tmp_path):
    cfg_path = Path(tmp_path) / "sweep.yaml"
    cfg_path.write_text("matrix: {}\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        parse_config(cfg_path)


@pytest.mark.parametrize(
    "patch",
    [
        {"step_size": 0},
        {"step_count": 0},
        {"time_stamping": "bogus"},
    ],
)
def test_parse_config_rejects_bad_sweep_values(tmp_path, patch):
    cfg = _base_config()
    cfg["sweep"].update(patch)
    cfg_path = Path(tmp_path) / "sweep.yaml"
    cfg_path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
    with pytest.raises(ConfigError):
        parse_config(cfg_path)


def test_parse_config_rejects_bad_initial(tmp_path):
    cfg = _base_config()
    cfg["matrix"]["initial"] = [[0.1, 0.1]]
    cfg_path = Path(tmp_path) / "sweep.yaml"
    cfg_path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
    with pytest.raises(ConfigError):
        parse_config(cfg_path)


def test_parse_config_defaults(tmp_path):
    cfg_path = Path(tmp_path) / "sweep.yaml"
    cfg_path.write_text("sweep: {step_size: 0.01, step_count: 10}\n", encoding="utf-8")
    cfg = parse_config(cfg_path)
    assert cfg.matrix.sigma == [10.0]
    assert cfg.matrix.initial == [(0.1, 0.1, 0.1)]
    assert cfg.sweep.time_stamping == "index"


def test_run_sweep_records(tmp_path):
    cfg_path = Path(tmp_path) / "sweep.yaml"
    cfg_path.write_text(yaml.safe_dump(_base_config()), encoding="utf-8")
    records = run_sweep(parse_config(cfg_path))
    assert len(records) == 4
    assert [rec["r"] for rec in records] == [14.0, 14.0, 28.0, 28.0]
    assert all(rec["finite"] for rec in records)
    assert all(rec["step_count"] == 500 for rec in records)
    assert "timestamp_utc" not in records[0]


def test_sweep_smoke(tmp_path):
    runner = CliRunner()
    cfg = _base_config()
    cfg["matrix"]["r"] = [28.0]
    cfg["matrix"]["initial"] = [[0.1, 0.1, 0.1]]
    cfg["matrix"]["sigma"] = [10.0, 500.0]
    cfg_path = Path(tmp_path) / "sweep.yaml"
    cfg_path.write_text(yaml.safe_dump(cfg), encoding="utf-8")

    csv_out = Path(tmp_path) / "out.csv"
    json_out = Path(tmp_path) / "out.json"
    res = runner.invoke(
        app,
        ["sweep", "--config", str(cfg_path), "--out", str(csv_out), "--out-json", str(json_out), "--json"],
    )
    assert res.exit_code == 0, res.output
    lines = csv_out.read_text().strip().splitlines()
    assert len(lines) == 1 + 2

    data = json.loads(json_out.read_text())
    assert len(data) == 2
    assert data[0]["finite"] is True
    # sigma * step_size = 5 makes the x update unstable
    assert data[1]["finite"] is False


def test_sweep_determinism(tmp_path):
    runner = CliRunner()
    cfg_path = Path(tmp_path) / "sweep.yaml"
    cfg_path.write_text(yaml.safe_dump(_base_config()), encoding="utf-8")

    csv1 = Path(tmp_path) / "out1.csv"
    csv2 = Path(tmp_path) / "out2.csv"
    res1 = runner.invoke(app, ["sweep", "--config", str(cfg_path), "--out", str(csv1)])
    res2 = runner.invoke(app, ["sweep", "--config", str(cfg_path), "--out", str(csv2), "--jobs", "2"])
    assert res1.exit_code == 0, res1.output
    assert res2.exit_code == 0, res2.output

    with csv1.open() as f:
        rows1 = list(csv.DictReader(f))
    with csv2.open() as f:
        rows2 = list(csv.DictReader(f))
    assert [r["fingerprint"] for r in rows1] == [r["fingerprint"] for r in rows2]


def test_sweep_config_error_exit_code(tmp_path):
    runner = CliRunner()
    cfg_path = Path(tmp_path) / "sweep.yaml"
    cfg_path.write_text("- not a mapping\n", encoding="utf-8")
    res = runner.invoke(app, ["sweep", "--config", str(cfg_path), "--out", str(Path(tmp_path) / "o.csv")])
    assert res.exit_code == 1
    assert "Config error" in res.output
