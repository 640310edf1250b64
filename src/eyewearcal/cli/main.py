from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from eyewearcal.api.readings_io import load_readings, save_readings
from eyewearcal.api.session import EyewearCalibrationSession
from eyewearcal.core.geometry import SurfaceDimensions, TargetDimensions, valid_dimensions
from eyewearcal.core.hints import drawing_aspect_ratio
from eyewearcal.core.reading import EyeID
from eyewearcal.core.solver import AffineCorrection
from eyewearcal.core.stereo import eye_viewport, stretch_factor
from eyewearcal.errors import CalibrationError
from eyewearcal.profiles import BUILTIN_PROFILES, DeviceProfile, get_profile, load_device_profiles, profile_to_dict
from eyewearcal.sim.synthetic import synthesize_readings

logger = logging.getLogger(__name__)


def _size(text: str) -> tuple[float, float]:
    try:
        w, h = text.lower().split("x")
        return float(w), float(h)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected WxH, got {text!r}") from e


def _scales(text: str) -> list[float]:
    try:
        return [float(s) for s in text.split(",") if s.strip()]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected comma-separated scales, got {text!r}") from e


def _add_profile_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--profile", type=str, default="generic-mono", help="Built-in device profile name.")
    p.add_argument("--profile-file", type=Path, default=None, help="JSON profile table; overrides built-ins.")


def _resolve_profile(args: argparse.Namespace) -> DeviceProfile:
    if args.profile_file is not None:
        table = load_device_profiles(args.profile_file)
        if args.profile in table:
            return table[args.profile]
        if len(table) == 1:
            return next(iter(table.values()))
        raise CalibrationError(f"profile {args.profile!r} not found in {args.profile_file}")
    return get_profile(args.profile)


def _cmd_hints(args: argparse.Namespace) -> int:
    session = EyewearCalibrationSession(_resolve_profile(args))
    if not session.init(*args.surface, *args.target):
        print("init failed: invalid surface or target size", file=sys.stderr)
        return 1
    report = {
        "profile": session.profile.name,
        "min_scale": session.get_min_scale_hint(),
        "max_scale": session.get_max_scale_hint(),
        "drawing_aspect_ratio": session.get_drawing_aspect_ratio(*args.surface),
        "stereo_stretched": session.is_stereo_stretched(),
    }
    print(json.dumps(report, indent=2, sort_keys=True))
    return 0


def _cmd_solve(args: argparse.Namespace) -> int:
    reading_set = load_readings(args.readings)
    surface = args.surface or (
        (reading_set.surface.width_px, reading_set.surface.height_px) if reading_set.surface else None
    )
    target = args.target or (
        (reading_set.target.width_mm, reading_set.target.height_mm) if reading_set.target else None
    )
    if surface is None or target is None:
        print("surface and target sizes are required (flags or readings file)", file=sys.stderr)
        return 2

    session = EyewearCalibrationSession(
        _resolve_profile(args), near_mm=args.near_mm, far_mm=args.far_mm, loss=args.loss
    )
    if not session.init(*surface, *target):
        print("init failed: invalid surface or target size", file=sys.stderr)
        return 1
    try:
        results = session.solve_stereo(reading_set.readings)
    except CalibrationError as e:
        print(f"calibration failed: {e}", file=sys.stderr)
        return 1

    report = {
        eye.value: {
            "matrix": res.matrix.tolist(),
            "correction": {
                "scale_x": res.correction.scale_x,
                "scale_y": res.correction.scale_y,
                "offset_x_mm": res.correction.offset_x_mm,
                "offset_y_mm": res.correction.offset_y_mm,
                "depth_offset_mm": res.correction.depth_offset_mm,
            },
            "diagnostics": res.diagnostics,
        }
        for eye, res in results.items()
    }
    print(json.dumps(report, indent=2, sort_keys=True))
    return 0


def _cmd_synth(args: argparse.Namespace) -> int:
    profile = _resolve_profile(args)
    if not (valid_dimensions(*args.surface) and valid_dimensions(*args.target)):
        print("invalid surface or target size", file=sys.stderr)
        return 2
    surface = SurfaceDimensions(*args.surface)
    target = TargetDimensions(*args.target)
    viewport = eye_viewport(profile, surface)
    stretch = stretch_factor(profile, surface)
    aspect = drawing_aspect_ratio(target, stretch)
    # Square physical pixels: the y focal scale follows the displayed viewport aspect.
    scale_y = args.scale_y if args.scale_y is not None else args.scale_x * viewport.aspect * stretch
    correction = AffineCorrection(
        scale_x=args.scale_x,
        scale_y=scale_y,
        offset_x_mm=args.offset_x_mm,
        offset_y_mm=args.offset_y_mm,
        depth_offset_mm=args.depth_offset_mm,
    )
    readings = synthesize_readings(
        correction,
        viewport,
        target,
        args.scales,
        aspect_ratio=aspect,
        eye=EyeID(args.eye),
        noise_ndc=args.noise_ndc,
        seed=args.seed,
    )
    path = save_readings(args.out, readings, surface=surface, target=target)
    print(f"Wrote {path}")
    return 0


def _cmd_profiles(_args: argparse.Namespace) -> int:
    print(json.dumps([profile_to_dict(p) for p in BUILTIN_PROFILES.values()], indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="eyewearcal")
    parser.add_argument("--log-level", type=str, default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="cmd", required=True)

    hints = sub.add_parser("hints", help="Print scale hints, drawing aspect ratio and stereo stretch.")
    hints.add_argument("--surface", type=_size, required=True, help="Surface size in pixels, WxH.")
    hints.add_argument("--target", type=_size, required=True, help="Target size in millimetres, WxH.")
    _add_profile_args(hints)

    solve = sub.add_parser("solve", help="Compute calibrated projection matrices from a readings file.")
    solve.add_argument("readings", type=Path)
    solve.add_argument("--surface", type=_size, default=None, help="Surface size in pixels (default: from file).")
    solve.add_argument("--target", type=_size, default=None, help="Target size in mm (default: from file).")
    solve.add_argument("--near-mm", type=float, default=None)
    solve.add_argument("--far-mm", type=float, default=None)
    solve.add_argument(
        "--loss",
        type=str,
        default="linear",
        choices=["linear", "huber", "soft_l1", "cauchy", "arctan"],
        help="Robust loss for the refinement step (used with more than two readings).",
    )
    _add_profile_args(solve)

    synth = sub.add_parser("synth", help="Write a synthetic reading set for a known eye model.")
    synth.add_argument("--out", type=Path, required=True)
    synth.add_argument("--surface", type=_size, required=True)
    synth.add_argument("--target", type=_size, required=True)
    synth.add_argument("--scales", type=_scales, default=[0.3, 0.7])
    synth.add_argument("--eye", type=str, default="mono", choices=[e.value for e in EyeID])
    synth.add_argument("--scale-x", type=float, default=1.5)
    synth.add_argument("--scale-y", type=float, default=None, help="Default: square pixels (scale_x * W/H).")
    synth.add_argument("--offset-x-mm", type=float, default=0.0)
    synth.add_argument("--offset-y-mm", type=float, default=0.0)
    synth.add_argument("--depth-offset-mm", type=float, default=20.0)
    synth.add_argument("--noise-ndc", type=float, default=0.0)
    synth.add_argument("--seed", type=int, default=0)
    _add_profile_args(synth)

    sub.add_parser("profiles", help="List built-in device profiles.")

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.cmd == "hints":
            return _cmd_hints(args)
        if args.cmd == "solve":
            return _cmd_solve(args)
        if args.cmd == "synth":
            return _cmd_synth(args)
        if args.cmd == "profiles":
            return _cmd_profiles(args)
    except CalibrationError as e:
        logger.error("%s", e)
        return 1

    raise AssertionError(f"Unhandled cmd: {args.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())
