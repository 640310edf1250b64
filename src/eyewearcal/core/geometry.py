"""
Shared geometry: surface/target sizes, target corners and drawn-shape corners.

Conventions:
- camera frame is OpenGL-like (x right, y up, looking down -Z), millimetres
- NDC spans [-1, 1] over the drawing viewport, y up
- corners are always ordered (-x,-y), (+x,-y), (+x,+y), (-x,+y)
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation as Rot

from eyewearcal.core.reading import CalibrationReading

CORNER_SIGNS = np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]], dtype=np.float64)


@dataclass(frozen=True)
class SurfaceDimensions:
    width_px: float
    height_px: float

    @property
    def aspect(self) -> float:
        return float(self.width_px) / float(self.height_px)

    @property
    def is_portrait(self) -> bool:
        return self.height_px > self.width_px

    def landscape(self) -> "SurfaceDimensions":
        if self.is_portrait:
            return SurfaceDimensions(self.height_px, self.width_px)
        return self


@dataclass(frozen=True)
class TargetDimensions:
    width_mm: float
    height_mm: float

    @property
    def aspect(self) -> float:
        return float(self.width_mm) / float(self.height_mm)

    @property
    def short_side_mm(self) -> float:
        return float(min(self.width_mm, self.height_mm))

    def landscape(self) -> "TargetDimensions":
        if self.height_mm > self.width_mm:
            return TargetDimensions(self.height_mm, self.width_mm)
        return self


def valid_dimensions(width: float, height: float) -> bool:
    """Both finite and > 0, with a finite non-zero aspect ratio."""
    try:
        w = float(width)
        h = float(height)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(w) and math.isfinite(h) and w > 0.0 and h > 0.0):
        return False
    aspect = w / h
    return math.isfinite(aspect) and aspect > 0.0


def fit_rect_px(surface: SurfaceDimensions, aspect: float) -> tuple[float, float]:
    """Largest (w, h) rectangle with w/h == aspect that fits the surface."""
    w = min(float(surface.width_px), float(surface.height_px) * aspect)
    return w, w / aspect


def shape_half_extents_ndc(surface: SurfaceDimensions, aspect: float, scale: float) -> tuple[float, float]:
    w1, h1 = fit_rect_px(surface, aspect)
    return scale * w1 / float(surface.width_px), scale * h1 / float(surface.height_px)


def shape_corners_ndc(
    surface: SurfaceDimensions, aspect: float, scale: float, center_ndc: np.ndarray
) -> np.ndarray:
    """Drawn rectangle corners (4,2) in NDC."""
    ex, ey = shape_half_extents_ndc(surface, aspect, scale)
    c = np.asarray(center_ndc, dtype=np.float64).reshape(1, 2)
    return c + CORNER_SIGNS * np.array([[ex, ey]], dtype=np.float64)


def target_corners_mm(target: TargetDimensions) -> np.ndarray:
    """Target corners (4,3) in the target frame (z=0 plane)."""
    half = np.array([[0.5 * float(target.width_mm), 0.5 * float(target.height_mm)]], dtype=np.float64)
    xy = CORNER_SIGNS * half
    return np.concatenate([xy, np.zeros((4, 1), dtype=np.float64)], axis=1)


def pose_matrix(rvec: np.ndarray, tvec_mm: np.ndarray) -> np.ndarray:
    """4x4 rigid transform target -> camera."""
    T = np.eye(4, dtype=np.float64)
    # Writable copy: scipy rejects the read-only arrays held by readings.
    T[:3, :3] = Rot.from_rotvec(np.array(rvec, dtype=np.float64).reshape(3)).as_matrix()
    T[:3, 3] = np.asarray(tvec_mm, dtype=np.float64).reshape(3)
    return T


def target_corners_cam(reading: CalibrationReading, target: TargetDimensions) -> np.ndarray:
    """Target corners (4,3) expressed in the camera frame."""
    T = pose_matrix(reading.rvec, reading.tvec_mm)
    return target_corners_mm(target) @ T[:3, :3].T + T[:3, 3].reshape(1, 3)
