from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from lorenztraj.core.chaos.lorenz import Parameters
from lorenztraj.core.constants import VERSION

BUILTIN_PRESETS: Dict[str, Parameters] = {
    "classic": Parameters.classic(),
}


def presets_root(home: Path | None = None) -> Path:
    base = home or Path.home()
    return base / ".lorenztraj" / "presets"


def valid_preset_name(name: str) -> bool:
    """Names map to one file directly inside the presets directory."""
    return bool(name) and not name.startswith(".") and "/" not in name and "\\" not in name


def preset_path(name: str, home: Path | None = None) -> Path:
    if not valid_preset_name(name):
        raise ValueError(f"Invalid preset name '{name}': use a plain file name without path separators.")
    return presets_root(home) / f"{name}.json"


def preset_exists(name: str, home: Path | None = None) -> bool:
    if name in BUILTIN_PRESETS:
        return True
    return valid_preset_name(name) and preset_path(name, home).exists()


def save_preset(name: str, params: Parameters, home: Path | None = None) -> Path:
    if name in BUILTIN_PRESETS:
        raise ValueError(f"Preset '{name}' is built in and cannot be overwritten.")
    path = preset_path(name, home)
    path.parent.mkdir(parents=True, exist_ok=True)
    meta = {"version": VERSION, "name": name, "params": params.as_dict()}
    with path.open("w", encoding="utf-8") as f:
        json.dump(meta, f, indent=2)
    return path


def load_preset_meta(name: str, home: Path | None = None) -> Dict[str, Any]:
    if name in BUILTIN_PRESETS:
        return {"version": VERSION, "name": name, "builtin": True, "params": BUILTIN_PRESETS[name].as_dict()}
    with preset_path(name, home).open("r", encoding="utf-8") as f:
        return json.load(f)


def params_from_meta(meta: Dict[str, Any]) -> Parameters:
    params_meta = meta.get("params") or meta
    return Parameters(
        sigma=float(params_meta["sigma"]),
        r=float(params_meta["r"]),
        b=float(params_meta["b"]),
    )


def load_preset(name: str, home: Path | None = None) -> Parameters:
    return params_from_meta(load_preset_meta(name, home))


def list_presets(home: Path | None = None) -> List[str]:
    names = set(BUILTIN_PRESETS)
    root = presets_root(home)
    if root.exists():
        names.update(p.stem for p in root.iterdir() if p.suffix == ".json")
    return sorted(names)
