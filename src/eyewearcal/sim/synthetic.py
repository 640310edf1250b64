from __future__ import annotations

from typing import Sequence

import numpy as np

from eyewearcal.core.geometry import SurfaceDimensions, TargetDimensions, shape_half_extents_ndc
from eyewearcal.core.reading import CalibrationReading, EyeID
from eyewearcal.core.solver import AffineCorrection


def synthesize_readings(
    correction: AffineCorrection,
    viewport: SurfaceDimensions,
    target: TargetDimensions,
    scales: Sequence[float],
    *,
    aspect_ratio: float,
    eye: EyeID = EyeID.MONO,
    centers: Sequence[tuple[float, float]] | None = None,
    noise_ndc: float = 0.0,
    seed: int = 0,
) -> list[CalibrationReading]:
    """
    Readings an ideal user with eye model `correction` would record.

    For each drawn scale the target faces the camera at the distance where its
    projected width equals the drawn width, shifted so its centre lands on the
    drawn centre. The y extent matches too when
    scale_y / scale_x == target aspect / drawn aspect * viewport aspect
    (square-pixel optics give scale_y = scale_x * width / height).

    `noise_ndc` adds Gaussian error to the recorded shape centres, i.e. the
    user's alignment error.
    """
    rng = np.random.default_rng(seed)
    if centers is None:
        centers = [(0.0, 0.0)] * len(scales)
    if len(centers) != len(scales):
        raise ValueError("centers and scales must have the same length")

    sx, sy = float(correction.scale_x), float(correction.scale_y)
    out: list[CalibrationReading] = []
    for s, (cx, cy) in zip(scales, centers):
        ex, _ey = shape_half_extents_ndc(viewport, aspect_ratio, float(s))
        eye_depth = sx * 0.5 * float(target.width_mm) / ex
        depth = eye_depth - float(correction.depth_offset_mm)
        if depth <= 0.0:
            raise ValueError(f"scale {s} would place the target behind the camera")
        X = float(cx) * eye_depth / sx - float(correction.offset_x_mm)
        Y = float(cy) * eye_depth / sy - float(correction.offset_y_mm)

        center = np.array([cx, cy], dtype=np.float64)
        if noise_ndc > 0.0:
            center = center + rng.normal(scale=float(noise_ndc), size=(2,))
        out.append(
            CalibrationReading(
                scale=float(s),
                rvec=np.zeros((3,), dtype=np.float64),
                tvec_mm=np.array([X, Y, -depth], dtype=np.float64),
                center_ndc=center,
                eye=eye,
            )
        )
    return out
