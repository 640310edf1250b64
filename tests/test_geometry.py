from __future__ import annotations

import numpy as np

from eyewearcal.core.geometry import (
    SurfaceDimensions,
    TargetDimensions,
    fit_rect_px,
    pose_matrix,
    shape_corners_ndc,
    shape_half_extents_ndc,
    target_corners_cam,
    target_corners_mm,
    valid_dimensions,
)
from eyewearcal.core.reading import CalibrationReading


def test_fit_rect_is_limited_by_the_tighter_side():
    assert np.allclose(fit_rect_px(SurfaceDimensions(1920, 1080), 1.6), (1728.0, 1080.0))
    assert np.allclose(fit_rect_px(SurfaceDimensions(1080, 1920), 1.6), (1080.0, 675.0))
    assert np.allclose(fit_rect_px(SurfaceDimensions(1000, 1000), 0.5), (500.0, 1000.0))


def test_shape_half_extents_scale_linearly():
    surface = SurfaceDimensions(1920, 1080)
    ex1, ey1 = shape_half_extents_ndc(surface, 1.6, 1.0)
    ex, ey = shape_half_extents_ndc(surface, 1.6, 0.3)
    assert abs(ex1 - 0.9) < 1e-12 and abs(ey1 - 1.0) < 1e-12
    assert abs(ex - 0.27) < 1e-12 and abs(ey - 0.3) < 1e-12


def test_shape_corners_follow_corner_order():
    corners = shape_corners_ndc(SurfaceDimensions(1000, 1000), 1.0, 0.5, np.array([0.1, -0.2]))
    expected = np.array([[-0.4, -0.7], [0.6, -0.7], [0.6, 0.3], [-0.4, 0.3]])
    assert np.allclose(corners, expected, atol=1e-12)


def test_target_corners_in_camera_frame():
    target = TargetDimensions(80, 50)
    r = CalibrationReading.fronto_parallel(0.5, np.array([5.0, -3.0, -400.0]))
    cam = target_corners_cam(r, target)
    assert np.allclose(cam, target_corners_mm(target) + np.array([[5.0, -3.0, -400.0]]), atol=1e-12)

    flipped = CalibrationReading(scale=0.5, rvec=np.array([0.0, np.pi, 0.0]), tvec_mm=np.array([0.0, 0.0, -400.0]))
    cam = target_corners_cam(flipped, target)
    assert np.allclose(cam[:, 0], -target_corners_mm(target)[:, 0], atol=1e-9)


def test_pose_matrix_matches_corner_transform():
    r = CalibrationReading(scale=0.5, rvec=np.array([0.1, -0.2, 0.05]), tvec_mm=np.array([10.0, 20.0, -300.0]))
    target = TargetDimensions(60, 40)
    T = pose_matrix(r.rvec, r.tvec_mm)
    P = np.concatenate([target_corners_mm(target), np.ones((4, 1))], axis=1)
    assert np.allclose((T @ P.T).T[:, :3], target_corners_cam(r, target), atol=1e-9)


def test_valid_dimensions():
    assert valid_dimensions(1920, 1080)
    assert valid_dimensions(0.5, 2)
    assert not valid_dimensions(0, 1080)
    assert not valid_dimensions(1920, -1)
    assert not valid_dimensions(float("nan"), 10)
    assert not valid_dimensions(float("inf"), 10)
    assert not valid_dimensions(1e308, 1e-308)
    assert not valid_dimensions("wide", 10)


def test_landscape_normalisation():
    assert SurfaceDimensions(1080, 1920).landscape() == SurfaceDimensions(1920, 1080)
    assert TargetDimensions(50, 80).landscape() == TargetDimensions(80, 50)
    assert TargetDimensions(50, 80).short_side_mm == 50.0


def test_rotated_reading_with_read_only_pose():
    r = CalibrationReading(scale=0.5, rvec=np.array([0.0, 0.0, np.pi / 2]), tvec_mm=np.array([0.0, 0.0, -250.0]))
    assert not r.rvec.flags.writeable
    cam = target_corners_cam(r, TargetDimensions(80, 50))
    # A quarter turn about z maps target x onto camera y.
    assert np.allclose(cam[:, 1], target_corners_mm(TargetDimensions(80, 50))[:, 0], atol=1e-9)
    assert np.allclose(cam[:, 2], -250.0)
    assert not r.rvec.flags.writeable
