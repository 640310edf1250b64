from __future__ import annotations

import math

from eyewearcal.core.geometry import SurfaceDimensions
from eyewearcal.profiles import DeviceProfile

_ASPECT_RTOL = 1e-2


def _long_short_ratio(w: float, h: float) -> float:
    return max(w, h) / min(w, h)


def is_stereo_stretched(profile: DeviceProfile, surface: SurfaceDimensions) -> bool:
    """
    True if a stereo device presents both eyes as one surface of single-eye size.

    In that mode each half of the surface is spread over a full eye display, so
    the surface has the shape of one eye's display instead of the doubled
    side-by-side shape.
    """
    if profile.stereo_stretched is not None:
        return bool(profile.stereo_stretched)
    if not profile.stereo or profile.display_width_px is None or profile.display_height_px is None:
        return False
    surface_ratio = _long_short_ratio(float(surface.width_px), float(surface.height_px))
    eye_ratio = _long_short_ratio(float(profile.display_width_px), float(profile.display_height_px))
    return math.isclose(surface_ratio, eye_ratio, rel_tol=_ASPECT_RTOL)


def eye_viewport(profile: DeviceProfile, surface: SurfaceDimensions) -> SurfaceDimensions:
    """Per-eye drawing viewport: stereo surfaces are split along their long side."""
    if not profile.stereo:
        return surface
    if surface.is_portrait:
        return SurfaceDimensions(surface.width_px, 0.5 * float(surface.height_px))
    return SurfaceDimensions(0.5 * float(surface.width_px), surface.height_px)


def stretch_factor(profile: DeviceProfile, surface: SurfaceDimensions) -> float:
    """
    Horizontal/vertical stretch of one viewport pixel on the physical display.

    The display is matched to the surface orientation, so rotating the surface
    inverts the factor. Profiles without a display size show the viewport as
    drawn and only `pixel_aspect` (given for landscape) applies.
    """
    view = eye_viewport(profile, surface)
    pixel_aspect = float(profile.pixel_aspect)
    if profile.display_width_px is None or profile.display_height_px is None:
        return 1.0 / pixel_aspect if surface.is_portrait else pixel_aspect
    dw, dh = float(profile.display_width_px), float(profile.display_height_px)
    if surface.is_portrait != (dh > dw):
        dw, dh = dh, dw
        pixel_aspect = 1.0 / pixel_aspect
    return (dw / float(view.width_px)) / (dh / float(view.height_px)) * pixel_aspect
