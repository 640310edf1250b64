from __future__ import annotations

import numpy as np

from eyewearcal.core.geometry import SurfaceDimensions, TargetDimensions
from eyewearcal.core.hints import drawing_aspect_ratio, scale_hints
from eyewearcal.profiles import GENERIC_MONO, DeviceProfile


def test_baseline_hints():
    hints = scale_hints(GENERIC_MONO, SurfaceDimensions(1920, 1080), TargetDimensions(80, 50))
    # 50 mm short side over 1080 px at 0.5 mm/px dominates the 48 px floor.
    assert abs(hints.min_scale - 50.0 / (1080.0 * 0.5)) < 1e-12
    assert abs(hints.max_scale - 0.9) < 1e-12


def test_hints_do_not_change_with_rotation():
    target = TargetDimensions(80, 50)
    a = scale_hints(GENERIC_MONO, SurfaceDimensions(1920, 1080), target)
    b = scale_hints(GENERIC_MONO, SurfaceDimensions(1080, 1920), target)
    c = scale_hints(GENERIC_MONO, SurfaceDimensions(1920, 1080), TargetDimensions(50, 80))
    assert a == b == c


def test_min_is_capped_by_max_on_tiny_surfaces():
    hints = scale_hints(GENERIC_MONO, SurfaceDimensions(10, 10), TargetDimensions(80, 50))
    assert hints.min_scale == hints.max_scale == 0.9


def test_edge_margin_sets_max():
    profile = DeviceProfile(name="wide-margin", stereo=False, display_width_px=1280, display_height_px=720, edge_margin=0.3)
    hints = scale_hints(profile, SurfaceDimensions(1280, 720), TargetDimensions(100, 100))
    assert abs(hints.max_scale - 0.7) < 1e-12


def test_hints_stay_in_unit_range_for_random_configurations():
    rng = np.random.default_rng(0)
    for _ in range(500):
        sw, sh = rng.uniform(1.0, 5000.0, size=2)
        tw, th = rng.uniform(0.1, 1000.0, size=2)
        hints = scale_hints(GENERIC_MONO, SurfaceDimensions(sw, sh), TargetDimensions(tw, th))
        assert 0.0 <= hints.min_scale <= hints.max_scale <= 1.0


def test_drawing_aspect_ratio_compensates_stretch():
    target = TargetDimensions(80, 50)
    assert drawing_aspect_ratio(target, 1.0) == 1.6
    assert abs(drawing_aspect_ratio(target, 2.0) - 0.8) < 1e-12
