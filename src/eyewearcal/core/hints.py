from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from eyewearcal.core.geometry import SurfaceDimensions, TargetDimensions, fit_rect_px
from eyewearcal.profiles import DeviceProfile


@dataclass(frozen=True)
class ScaleHints:
    min_scale: float
    max_scale: float


def scale_hints(profile: DeviceProfile, viewport: SurfaceDimensions, target: TargetDimensions) -> ScaleHints:
    """
    Practical range of drawn shape scales for a viewport/target pair.

    Lower bound: the scale-1 rectangle's short side must keep at least
    `min_shape_px` pixels and no pixel may cover more than
    `max_alignment_error_mm` of the target.
    Upper bound: keep `edge_margin` of the drawable extent away from the display
    border, where optical distortion is strongest.

    Surface and target are taken in landscape orientation, so the hints do not
    change when the surface rotates.
    """
    land_view = viewport.landscape()
    land_target = target.landscape()
    w1, h1 = fit_rect_px(land_view, land_target.aspect)
    short_px = min(w1, h1)

    by_pixels = float(profile.min_shape_px) / short_px
    by_precision = land_target.short_side_mm / (short_px * float(profile.max_alignment_error_mm))
    max_scale = float(np.clip(1.0 - float(profile.edge_margin), 0.0, 1.0))
    min_scale = float(np.clip(max(by_pixels, by_precision), 0.0, 1.0))
    return ScaleHints(min_scale=min(min_scale, max_scale), max_scale=max_scale)


def drawing_aspect_ratio(target: TargetDimensions, stretch: float) -> float:
    """
    Pixel aspect ratio (w/h) to draw calibration shapes with.

    A display that stretches pixels horizontally by `stretch` shows the shape
    `stretch` times wider than drawn, so the drawn ratio is compressed by it.
    """
    return target.aspect / float(stretch)
