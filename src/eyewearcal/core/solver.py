"""
Projection solver for optical see-through calibration.

Model: the eye is a pinhole displaced from the tracking camera by
(offset_x, offset_y) laterally and `depth_offset` backwards along the viewing
axis, with per-axis focal scales. A camera-frame point (X, Y, Z) lands at

  x_ndc = scale_x * (X + offset_x) / (-Z + depth_offset)
  y_ndc = scale_y * (Y + offset_y) / (-Z + depth_offset)

Every reading pairs the four tracked target corners with the four corners of
the rectangle the user aligned them with. Multiplying out the denominator
gives a system that is linear in (scale_x, scale_y, scale_x*offset_x,
scale_y*offset_y, depth_offset). A single fronto-parallel reading only fixes
one size equation per axis, so readings at two or more distinct scales are
required.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Literal

import numpy as np

from eyewearcal.core.geometry import SurfaceDimensions, TargetDimensions, shape_corners_ndc, target_corners_cam
from eyewearcal.core.projection import perspective_matrix, translation_matrix
from eyewearcal.core.reading import CalibrationReading, EyeID
from eyewearcal.errors import (
    DegenerateReadingsError,
    IllConditionedError,
    InsufficientReadingsError,
    InvalidReadingError,
    MixedEyeError,
    NonFiniteResultError,
)

logger = logging.getLogger(__name__)

MIN_READINGS = 2
MIN_SCALE_SEPARATION = 0.05
MAX_CONDITION = 1e8
_N_PARAMS = 5

Loss = Literal["linear", "huber", "soft_l1", "cauchy", "arctan"]


@dataclass(frozen=True)
class AffineCorrection:
    scale_x: float
    scale_y: float
    offset_x_mm: float = 0.0
    offset_y_mm: float = 0.0
    depth_offset_mm: float = 0.0

    def as_vector(self) -> np.ndarray:
        return np.array(
            [self.scale_x, self.scale_y, self.offset_x_mm, self.offset_y_mm, self.depth_offset_mm], dtype=np.float64
        )

    @classmethod
    def from_vector(cls, p: np.ndarray) -> "AffineCorrection":
        sx, sy, ox, oy, d = (float(v) for v in np.asarray(p, dtype=np.float64).reshape(_N_PARAMS).tolist())
        return cls(scale_x=sx, scale_y=sy, offset_x_mm=ox, offset_y_mm=oy, depth_offset_mm=d)

    def project(self, XYZ_cam_mm: np.ndarray) -> np.ndarray:
        """Camera-frame points (N,3) -> NDC (N,2) through the eye model."""
        return _project(self.as_vector(), np.asarray(XYZ_cam_mm, dtype=np.float64).reshape(-1, 3))

    def matrix(self, near_mm: float, far_mm: float) -> np.ndarray:
        """
        4x4 clip-space matrix for camera-frame points.

        Perspective about the eye composed with the camera -> eye translation;
        near/far are distances from the eye.
        """
        P = perspective_matrix(self.scale_x, self.scale_y, near_mm, far_mm)
        T = translation_matrix(np.array([self.offset_x_mm, self.offset_y_mm, -self.depth_offset_mm]))
        return P @ T


@dataclass(frozen=True, eq=False)
class CalibrationResult:
    matrix: np.ndarray  # (4,4)
    correction: AffineCorrection
    eye: EyeID
    diagnostics: dict[str, float]


def _project(p: np.ndarray, XYZ: np.ndarray) -> np.ndarray:
    sx, sy, ox, oy, d = p
    depth = -XYZ[:, 2] + d
    return np.stack([sx * (XYZ[:, 0] + ox) / depth, sy * (XYZ[:, 1] + oy) / depth], axis=1)


def as_reading_list(readings: Iterable[CalibrationReading]) -> list[CalibrationReading]:
    try:
        return list(readings)
    except TypeError as e:
        raise InvalidReadingError(
            f"readings must be an iterable of CalibrationReading (got {type(readings).__name__})"
        ) from e


def _check_readings(readings: list[CalibrationReading]) -> EyeID:
    if len(readings) < MIN_READINGS:
        raise InsufficientReadingsError(f"need >= {MIN_READINGS} readings (got {len(readings)})")
    for i, r in enumerate(readings):
        if not isinstance(r, CalibrationReading):
            raise InvalidReadingError(f"reading {i} is not a CalibrationReading")
        if not (np.isfinite(r.scale) and 0.0 < r.scale <= 1.0):
            raise InvalidReadingError(f"reading {i}: scale must be in (0, 1] (got {r.scale})")
        if not (np.all(np.isfinite(r.rvec)) and np.all(np.isfinite(r.tvec_mm))):
            raise InvalidReadingError(f"reading {i}: non-finite pose")
        if not (np.all(np.isfinite(r.center_ndc)) and np.all(np.abs(r.center_ndc) <= 1.0)):
            raise InvalidReadingError(f"reading {i}: center_ndc must lie in [-1, 1]")

    eyes = {r.eye for r in readings}
    if len(eyes) != 1:
        raise MixedEyeError("readings mix several eyes; calibrate each eye separately")

    scales = np.array([r.scale for r in readings], dtype=np.float64)
    if float(np.max(scales) - np.min(scales)) < MIN_SCALE_SEPARATION:
        raise DegenerateReadingsError(
            f"drawn scales must span >= {MIN_SCALE_SEPARATION} (got {np.min(scales):.4f}..{np.max(scales):.4f})"
        )
    return eyes.pop()


def correspondences(
    readings: Iterable[CalibrationReading],
    *,
    viewport: SurfaceDimensions,
    target: TargetDimensions,
    aspect_ratio: float,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Stack (target corner in camera frame, drawn corner in NDC) pairs.

    Returns (XYZ_cam_mm (N,3), uv_ndc (N,2)) with N = 4 * len(readings).
    """
    xyz_list: list[np.ndarray] = []
    uv_list: list[np.ndarray] = []
    for i, r in enumerate(readings):
        XYZ = target_corners_cam(r, target)
        if np.any(XYZ[:, 2] >= 0.0):
            raise InvalidReadingError(f"reading {i}: target is not in front of the camera")
        xyz_list.append(XYZ)
        uv_list.append(shape_corners_ndc(viewport, aspect_ratio, r.scale, r.center_ndc))
    return np.concatenate(xyz_list, axis=0), np.concatenate(uv_list, axis=0)


def _linear_solve(XYZ: np.ndarray, uv: np.ndarray) -> tuple[np.ndarray, float]:
    n = XYZ.shape[0]
    X, Y, D = XYZ[:, 0], XYZ[:, 1], -XYZ[:, 2]
    x, y = uv[:, 0], uv[:, 1]
    zeros = np.zeros((n,), dtype=np.float64)
    ones = np.ones((n,), dtype=np.float64)

    # Unknowns: [scale_x, scale_y, scale_x*offset_x, scale_y*offset_y, depth_offset]
    A = np.concatenate(
        [
            np.stack([X, zeros, ones, zeros, -x], axis=1),
            np.stack([zeros, Y, zeros, ones, -y], axis=1),
        ],
        axis=0,
    )
    b = np.concatenate([x * D, y * D], axis=0)

    # Column equilibration keeps mm-sized and NDC-sized columns comparable.
    col_norm = np.linalg.norm(A, axis=0)
    if np.any(col_norm < 1e-12):
        raise IllConditionedError("design matrix has an empty column")
    As = A / col_norm
    sol, _res, rank, sv = np.linalg.lstsq(As, b, rcond=None)
    cond = float(sv[0] / sv[-1]) if sv[-1] > 0.0 else float("inf")
    if int(rank) < _N_PARAMS or not np.isfinite(cond) or cond > MAX_CONDITION:
        raise IllConditionedError(f"calibration system is ill-conditioned (rank={int(rank)}, cond={cond:.3g})")

    q = sol / col_norm
    if not np.all(np.isfinite(q)):
        raise NonFiniteResultError("linear solve produced non-finite values")
    sx, sy, qx, qy, d = (float(v) for v in q.tolist())
    if sx <= 0.0 or sy <= 0.0:
        raise IllConditionedError(f"fitted focal scales must be > 0 (got {sx:.4g}, {sy:.4g})")
    return np.array([sx, sy, qx / sx, qy / sy, d], dtype=np.float64), cond


def _rms(r: np.ndarray) -> float:
    return float(np.sqrt(np.mean(np.sum(r * r, axis=1))))


def reprojection_residuals(correction: AffineCorrection, XYZ_cam_mm: np.ndarray, uv_ndc: np.ndarray) -> np.ndarray:
    """Per-corner (predicted - drawn) in NDC, shape (N,2)."""
    return correction.project(XYZ_cam_mm) - np.asarray(uv_ndc, dtype=np.float64).reshape(-1, 2)


def _refine(
    p0: np.ndarray, XYZ: np.ndarray, uv: np.ndarray, *, loss: Loss, f_scale_ndc: float, max_nfev: int
) -> np.ndarray:
    from scipy.optimize import least_squares  # type: ignore

    D = -XYZ[:, 2]

    def fun(p: np.ndarray) -> np.ndarray:
        sx, sy, ox, oy, d = (float(v) for v in p.tolist())
        depth = np.maximum(D + d, 1e-6)
        u = sx * (XYZ[:, 0] + ox) / depth
        v = sy * (XYZ[:, 1] + oy) / depth
        return np.stack([u - uv[:, 0], v - uv[:, 1]], axis=1).reshape(-1)

    sol = least_squares(
        fun,
        p0,
        method="trf",
        loss=str(loss),
        f_scale=float(f_scale_ndc),
        max_nfev=int(max_nfev),
    )
    return np.asarray(sol.x, dtype=np.float64)


def fit_affine_correction(
    readings: Iterable[CalibrationReading],
    *,
    viewport: SurfaceDimensions,
    target: TargetDimensions,
    aspect_ratio: float,
    refine: bool | None = None,
    loss: Loss = "linear",
    f_scale_ndc: float = 0.01,
    max_nfev: int = 200,
) -> tuple[AffineCorrection, dict[str, float]]:
    """
    Fit the eye model to a set of readings for one eye.

    Two readings are solved directly; more readings are fitted in the
    least-squares sense and, unless `refine=False`, polished on the NDC
    reprojection error with `scipy.optimize.least_squares` (robust `loss`
    optional). With the squared loss a refinement that does not lower the RMS
    residual is dropped; robust losses keep their own optimum.
    """
    readings = as_reading_list(readings)
    _check_readings(readings)
    XYZ, uv = correspondences(readings, viewport=viewport, target=target, aspect_ratio=aspect_ratio)

    p, cond = _linear_solve(XYZ, uv)
    rms_linear = _rms(reprojection_residuals(AffineCorrection.from_vector(p), XYZ, uv))

    if refine is None:
        refine = len(readings) > MIN_READINGS
    refined = False
    if refine:
        p_ref = _refine(p, XYZ, uv, loss=loss, f_scale_ndc=f_scale_ndc, max_nfev=max_nfev)
        if np.all(np.isfinite(p_ref)) and p_ref[0] > 0.0 and p_ref[1] > 0.0:
            rms_ref = _rms(reprojection_residuals(AffineCorrection.from_vector(p_ref), XYZ, uv))
            if loss != "linear" or rms_ref < rms_linear:
                p = p_ref
                refined = True

    correction = AffineCorrection.from_vector(p)
    if np.any(-XYZ[:, 2] + correction.depth_offset_mm <= 0.0):
        raise IllConditionedError("fitted eye position puts the target behind the eye")
    res = reprojection_residuals(correction, XYZ, uv)
    if not np.all(np.isfinite(res)):
        raise NonFiniteResultError("non-finite reprojection residuals")

    err = np.linalg.norm(res, axis=1)
    diag = {
        "rms_ndc": _rms(res),
        "max_ndc": float(np.max(err)),
        "rms_ndc_linear": rms_linear,
        "cond": cond,
        "n_readings": float(len(readings)),
        "n_equations": float(2 * XYZ.shape[0]),
        "refined": float(refined),
    }
    logger.debug("fit %s: %s", correction, diag)
    return correction, diag


def solve_projection(
    readings: Iterable[CalibrationReading],
    *,
    viewport: SurfaceDimensions,
    target: TargetDimensions,
    aspect_ratio: float,
    near_mm: float,
    far_mm: float,
    refine: bool | None = None,
    loss: Loss = "linear",
    f_scale_ndc: float = 0.01,
) -> CalibrationResult:
    readings = as_reading_list(readings)
    correction, diag = fit_affine_correction(
        readings,
        viewport=viewport,
        target=target,
        aspect_ratio=aspect_ratio,
        refine=refine,
        loss=loss,
        f_scale_ndc=f_scale_ndc,
    )
    M = correction.matrix(near_mm, far_mm)
    if not np.all(np.isfinite(M)):
        raise NonFiniteResultError("calibration matrix has non-finite entries")
    return CalibrationResult(matrix=M, correction=correction, eye=readings[0].eye, diagnostics=diag)
