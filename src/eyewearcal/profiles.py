from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from eyewearcal.errors import ProfileValidationError

SCHEMA_VERSION = "eyewearcal.device_profile.v0"


@dataclass(frozen=True)
class DeviceProfile:
    """
    Per-device characteristics consumed by the hint and stretch computations.

    Display sizes are per eye, in the display's native orientation. Leaving
    them unset means the display shows the surface as drawn, so only
    `pixel_aspect` stretches it.
    """

    name: str
    stereo: bool
    display_width_px: int | None = None
    display_height_px: int | None = None
    stereo_stretched: bool | None = None
    pixel_aspect: float = 1.0
    min_shape_px: float = 48.0
    max_alignment_error_mm: float = 0.5
    edge_margin: float = 0.1
    near_mm: float = 50.0
    far_mm: float = 5000.0


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ProfileValidationError(msg)


def _positive(value: Any, key: str) -> float:
    _require(value is not None, f"{key} is required")
    try:
        x = float(value)
    except (TypeError, ValueError) as e:
        raise ProfileValidationError(f"{key} must be a number") from e
    _require(math.isfinite(x) and x > 0.0, f"{key} must be finite and > 0")
    return x


def parse_device_profile(data: dict[str, Any]) -> DeviceProfile:
    _require(isinstance(data, dict), "device profile must be an object")
    schema_version = data.get("schema_version", SCHEMA_VERSION)
    _require(schema_version == SCHEMA_VERSION, f"schema_version must be {SCHEMA_VERSION}")

    name = data.get("name")
    _require(isinstance(name, str) and bool(name), "name must be a non-empty string")

    stereo = data.get("stereo", False)
    _require(isinstance(stereo, bool), "stereo must be a boolean")

    display = data.get("display", {})
    _require(isinstance(display, dict), "display must be an object")
    dw = dh = None
    if display.get("width_px") is not None or display.get("height_px") is not None:
        dw = _positive(display.get("width_px"), "display.width_px")
        dh = _positive(display.get("height_px"), "display.height_px")
        _require(dw == int(dw) and dh == int(dh), "display size must be whole pixels")

    stretched = data.get("stereo_stretched")
    _require(stretched is None or isinstance(stretched, bool), "stereo_stretched must be a boolean or null")
    _require(not (stretched and not stereo), "stereo_stretched requires stereo=true")
    _require(not (stretched and dw is None), "stereo_stretched requires the per-eye display size")

    pixel_aspect = _positive(display.get("pixel_aspect", 1.0), "display.pixel_aspect")

    hints = data.get("hints", {})
    _require(isinstance(hints, dict), "hints must be an object")
    min_shape_px = _positive(hints.get("min_shape_px", 48.0), "hints.min_shape_px")
    max_err_mm = _positive(hints.get("max_alignment_error_mm", 0.5), "hints.max_alignment_error_mm")
    try:
        edge_margin = float(hints.get("edge_margin", 0.1))
    except (TypeError, ValueError) as e:
        raise ProfileValidationError("hints.edge_margin must be a number") from e
    _require(math.isfinite(edge_margin) and 0.0 <= edge_margin < 1.0, "hints.edge_margin must be in [0, 1)")

    clip = data.get("clip", {})
    _require(isinstance(clip, dict), "clip must be an object")
    near_mm = _positive(clip.get("near_mm", 50.0), "clip.near_mm")
    far_mm = _positive(clip.get("far_mm", 5000.0), "clip.far_mm")
    _require(near_mm < far_mm, "clip.near_mm must be < clip.far_mm")

    return DeviceProfile(
        name=name,
        stereo=stereo,
        display_width_px=None if dw is None else int(dw),
        display_height_px=None if dh is None else int(dh),
        stereo_stretched=stretched,
        pixel_aspect=pixel_aspect,
        min_shape_px=min_shape_px,
        max_alignment_error_mm=max_err_mm,
        edge_margin=edge_margin,
        near_mm=near_mm,
        far_mm=far_mm,
    )


def profile_to_dict(profile: DeviceProfile) -> dict[str, Any]:
    d = asdict(profile)
    return {
        "schema_version": SCHEMA_VERSION,
        "name": d["name"],
        "stereo": d["stereo"],
        "stereo_stretched": d["stereo_stretched"],
        "display": {
            "width_px": d["display_width_px"],
            "height_px": d["display_height_px"],
            "pixel_aspect": d["pixel_aspect"],
        },
        "hints": {
            "min_shape_px": d["min_shape_px"],
            "max_alignment_error_mm": d["max_alignment_error_mm"],
            "edge_margin": d["edge_margin"],
        },
        "clip": {"near_mm": d["near_mm"], "far_mm": d["far_mm"]},
    }


def load_device_profiles(path: Path) -> dict[str, DeviceProfile]:
    """
    Load a profile table from JSON.

    Accepts a single profile object or ``{"schema_version": ..., "profiles": [...]}``.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    _require(isinstance(data, dict), f"{path} must contain a JSON object")
    if "profiles" not in data:
        p = parse_device_profile(data)
        return {p.name: p}

    _require(data.get("schema_version") == SCHEMA_VERSION, f"schema_version must be {SCHEMA_VERSION}")
    entries = data["profiles"]
    _require(isinstance(entries, list) and len(entries) > 0, "profiles must be a non-empty list")
    table: dict[str, DeviceProfile] = {}
    for entry in entries:
        p = parse_device_profile(entry)
        _require(p.name not in table, f"duplicate profile name: {p.name}")
        table[p.name] = p
    return table


GENERIC_MONO = DeviceProfile(name="generic-mono", stereo=False)

BUILTIN_PROFILES: dict[str, DeviceProfile] = {
    p.name: p
    for p in (
        GENERIC_MONO,
        DeviceProfile(name="generic-stereo-sbs", stereo=True, display_width_px=1280, display_height_px=720),
        # Drivers of these devices keep the single-eye resolution in 3D mode.
        DeviceProfile(
            name="stereo-sbs-stretched-960x540",
            stereo=True,
            display_width_px=960,
            display_height_px=540,
            stereo_stretched=True,
            min_shape_px=32.0,
            max_alignment_error_mm=1.0,
            edge_margin=0.15,
        ),
    )
}


def get_profile(name: str) -> DeviceProfile:
    try:
        return BUILTIN_PROFILES[name]
    except KeyError as e:
        known = ", ".join(sorted(BUILTIN_PROFILES))
        raise ProfileValidationError(f"unknown device profile {name!r} (known: {known})") from e
