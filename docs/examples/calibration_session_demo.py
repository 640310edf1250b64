"""
Calibration session demo (monocular or stereo eyewear).

This script is meant to be:
- readable (commented step by step),
- runnable without a device (readings are synthesized from a known eye model).

It does:
1) configure a session for a device profile, surface and printed target,
2) query the scale hints the UI would use to size the calibration rectangle,
3) synthesize one reading per drawn scale (what a user would record),
4) compute the calibrated projection matrix and compare it to the truth.
"""

from __future__ import annotations

import argparse
import json

import numpy as np

from eyewearcal.api import EyewearCalibrationSession
from eyewearcal.core.geometry import TargetDimensions
from eyewearcal.core.hints import drawing_aspect_ratio
from eyewearcal.core.solver import AffineCorrection
from eyewearcal.core.stereo import eye_viewport, stretch_factor
from eyewearcal.sim.synthetic import synthesize_readings


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--profile", default="generic-mono")
    parser.add_argument("--surface", type=int, nargs=2, default=[1920, 1080])
    parser.add_argument("--target-mm", type=float, nargs=2, default=[80.0, 50.0])
    parser.add_argument("--steps", type=int, default=3)
    parser.add_argument("--noise-ndc", type=float, default=5e-4)
    args = parser.parse_args()

    session = EyewearCalibrationSession(args.profile)
    if not session.init(*args.surface, *args.target_mm):
        raise SystemExit("init failed")

    lo, hi = session.get_min_scale_hint(), session.get_max_scale_hint()
    scales = np.linspace(lo, hi, args.steps).tolist()
    print(f"scale range [{lo:.3f}, {hi:.3f}] -> drawing at {[round(s, 3) for s in scales]}")
    print(f"drawing aspect ratio {session.get_drawing_aspect_ratio(*args.surface):.4f}")
    print(f"stereo stretched: {session.is_stereo_stretched()}")

    # A plausible eye: slightly off-axis and ~2 cm behind the tracking camera.
    surface = session.surface
    viewport = eye_viewport(session.profile, surface)
    stretch = stretch_factor(session.profile, surface)
    truth = AffineCorrection(
        scale_x=1.6,
        scale_y=1.6 * viewport.aspect * stretch,
        offset_x_mm=30.0,
        offset_y_mm=-12.0,
        depth_offset_mm=20.0,
    )
    target = TargetDimensions(*args.target_mm)
    readings = synthesize_readings(
        truth,
        viewport,
        target,
        scales,
        aspect_ratio=drawing_aspect_ratio(target, stretch),
        noise_ndc=args.noise_ndc,
    )

    out = np.empty((4, 4), dtype=np.float64)
    if not session.get_projection_matrix(readings, out):
        raise SystemExit("calibration failed")

    result = session.last_result
    print(json.dumps(result.diagnostics, indent=2, sort_keys=True))
    print("fitted:", result.correction)
    print("truth: ", truth)
    np.set_printoptions(precision=5, suppress=True)
    print(out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
