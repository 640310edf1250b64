from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import numpy as np

from eyewearcal.core.geometry import SurfaceDimensions, TargetDimensions
from eyewearcal.core.reading import CalibrationReading, EyeID
from eyewearcal.errors import ProfileValidationError

SCHEMA_VERSION = "eyewearcal.readings.v0"


@dataclass(frozen=True)
class ReadingSet:
    readings: tuple[CalibrationReading, ...]
    surface: SurfaceDimensions | None = None
    target: TargetDimensions | None = None


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ProfileValidationError(msg)


def _number(value: Any, key: str) -> float:
    _require(value is not None, f"{key} is required")
    try:
        x = float(value)
    except (TypeError, ValueError) as e:
        raise ProfileValidationError(f"{key} must be a number") from e
    _require(math.isfinite(x), f"{key} must be finite")
    return x


def _finite_list(value: Any, n: int, key: str) -> list[float]:
    _require(isinstance(value, (list, tuple)) and len(value) == n, f"{key} must be a list of {n} numbers")
    return [_number(v, f"{key}[{i}]") for i, v in enumerate(value)]


def reading_to_dict(r: CalibrationReading) -> dict[str, Any]:
    return {
        "scale": float(r.scale),
        "rvec": np.asarray(r.rvec, dtype=np.float64).tolist(),
        "tvec_mm": np.asarray(r.tvec_mm, dtype=np.float64).tolist(),
        "center_ndc": np.asarray(r.center_ndc, dtype=np.float64).tolist(),
        "eye": r.eye.value,
    }


def parse_reading(data: dict[str, Any], index: int = 0) -> CalibrationReading:
    key = f"readings[{index}]"
    _require(isinstance(data, dict), f"{key} must be an object")
    scale = _number(data.get("scale"), f"{key}.scale")
    rvec = _finite_list(data.get("rvec", [0.0, 0.0, 0.0]), 3, f"{key}.rvec")
    _require("tvec_mm" in data, f"{key}.tvec_mm is required")
    tvec = _finite_list(data["tvec_mm"], 3, f"{key}.tvec_mm")
    center = _finite_list(data.get("center_ndc", [0.0, 0.0]), 2, f"{key}.center_ndc")
    try:
        eye = EyeID(data.get("eye", EyeID.MONO.value))
    except ValueError as e:
        raise ProfileValidationError(f"{key}.eye must be one of left/right/mono") from e
    return CalibrationReading(scale=scale, rvec=np.asarray(rvec), tvec_mm=np.asarray(tvec), center_ndc=np.asarray(center), eye=eye)


def save_readings(
    path: Path,
    readings: Iterable[CalibrationReading],
    *,
    surface: SurfaceDimensions | None = None,
    target: TargetDimensions | None = None,
) -> Path:
    """Write a reading set (and optionally the surface/target it was taken with) as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    doc: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "readings": [reading_to_dict(r) for r in readings],
    }
    if surface is not None:
        doc["surface"] = {"width_px": float(surface.width_px), "height_px": float(surface.height_px)}
    if target is not None:
        doc["target"] = {"width_mm": float(target.width_mm), "height_mm": float(target.height_mm)}
    path.write_text(json.dumps(doc, indent=2, sort_keys=True), encoding="utf-8")
    return path


def load_readings(path: Path) -> ReadingSet:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ProfileValidationError(f"{path} is not valid JSON: {e}") from e
    _require(isinstance(data, dict), f"{path} must contain a JSON object")
    _require(data.get("schema_version") == SCHEMA_VERSION, f"schema_version must be {SCHEMA_VERSION}")
    entries = data.get("readings")
    _require(isinstance(entries, list), "readings must be a list")
    readings = tuple(parse_reading(e, i) for i, e in enumerate(entries))

    surface = None
    if "surface" in data:
        s = data["surface"]
        _require(isinstance(s, dict) and "width_px" in s and "height_px" in s, "surface needs width_px/height_px")
        surface = SurfaceDimensions(_number(s["width_px"], "surface.width_px"), _number(s["height_px"], "surface.height_px"))
    target = None
    if "target" in data:
        t = data["target"]
        _require(isinstance(t, dict) and "width_mm" in t and "height_mm" in t, "target needs width_mm/height_mm")
        target = TargetDimensions(_number(t["width_mm"], "target.width_mm"), _number(t["height_mm"], "target.height_mm"))
    return ReadingSet(readings=readings, surface=surface, target=target)
