from __future__ import annotations

import numpy as np


def perspective_matrix(scale_x: float, scale_y: float, near_mm: float, far_mm: float) -> np.ndarray:
    """
    Right-handed OpenGL perspective matrix (eye looks down -Z).

    `scale_x`/`scale_y` replace the symmetric-frustum cot(fov/2) terms. Depth in
    [near, far] maps to z_ndc in [-1, 1].
    """
    n = float(near_mm)
    f = float(far_mm)
    if not (0.0 < n < f):
        raise ValueError("need 0 < near < far")
    P = np.zeros((4, 4), dtype=np.float64)
    P[0, 0] = float(scale_x)
    P[1, 1] = float(scale_y)
    P[2, 2] = -(f + n) / (f - n)
    P[2, 3] = -2.0 * f * n / (f - n)
    P[3, 2] = -1.0
    return P


def translation_matrix(t_mm: np.ndarray) -> np.ndarray:
    T = np.eye(4, dtype=np.float64)
    T[:3, 3] = np.asarray(t_mm, dtype=np.float64).reshape(3)
    return T


def project_ndc(M: np.ndarray, XYZ_mm: np.ndarray) -> np.ndarray:
    """
    Apply a 4x4 projection and perspective divide.

    Returns (N,3) NDC; rows with w <= 0 (behind the eye) are NaN.
    """
    M = np.asarray(M, dtype=np.float64).reshape(4, 4)
    XYZ_mm = np.asarray(XYZ_mm, dtype=np.float64).reshape(-1, 3)
    hom = np.concatenate([XYZ_mm, np.ones((XYZ_mm.shape[0], 1), dtype=np.float64)], axis=1)
    clip = hom @ M.T
    w = clip[:, 3:4]
    out = np.full((XYZ_mm.shape[0], 3), np.nan, dtype=np.float64)
    good = w[:, 0] > 1e-12
    out[good] = clip[good, :3] / w[good]
    return out


def is_clipped(ndc: np.ndarray) -> np.ndarray:
    """Boolean mask of points outside the canonical view volume."""
    ndc = np.asarray(ndc, dtype=np.float64).reshape(-1, 3)
    return ~np.all(np.isfinite(ndc) & (np.abs(ndc) <= 1.0), axis=1)
