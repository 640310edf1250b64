from __future__ import annotations

import enum
import logging
from typing import Iterable

import numpy as np

from eyewearcal.core.geometry import SurfaceDimensions, TargetDimensions, valid_dimensions
from eyewearcal.core.hints import ScaleHints, drawing_aspect_ratio, scale_hints
from eyewearcal.core.reading import CalibrationReading, EyeID
from eyewearcal.core.solver import CalibrationResult, Loss, as_reading_list, solve_projection
from eyewearcal.core.stereo import eye_viewport, is_stereo_stretched, stretch_factor
from eyewearcal.errors import CalibrationError, ConfigurationError, SessionStateError
from eyewearcal.profiles import GENERIC_MONO, DeviceProfile, get_profile

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SOLVED = "solved"


class EyewearCalibrationSession:
    """
    User calibration for optical see-through eyewear.

    Typical use:

      session = EyewearCalibrationSession("generic-mono")
      session.init(1920, 1080, 80, 50)           # surface px, target mm
      lo, hi = session.get_min_scale_hint(), session.get_max_scale_hint()
      ratio = session.get_drawing_aspect_ratio(1920, 1080)
      # ... draw rectangles at >= 2 scales in [lo, hi], record readings ...
      out = np.empty((4, 4))
      if session.get_projection_matrix(readings, out):
          ...

    The boolean/None surface (`init`, `get_*`, `is_stereo_stretched`,
    `get_projection_matrix`) never raises on calibration failures; `solve` and
    `solve_stereo` raise `CalibrationError` subclasses with the reason.

    A session has exactly one owner: it cannot be copied or pickled.
    Stereo devices are calibrated once per eye; readings of one eye never
    enter the other eye's fit.
    """

    def __init__(
        self,
        profile: DeviceProfile | str | None = None,
        *,
        near_mm: float | None = None,
        far_mm: float | None = None,
        loss: Loss = "linear",
    ) -> None:
        if profile is None:
            profile = GENERIC_MONO
        elif isinstance(profile, str):
            profile = get_profile(profile)
        self._profile = profile
        self._near_mm = float(profile.near_mm if near_mm is None else near_mm)
        self._far_mm = float(profile.far_mm if far_mm is None else far_mm)
        if not (np.isfinite(self._near_mm) and np.isfinite(self._far_mm) and 0.0 < self._near_mm < self._far_mm):
            raise ConfigurationError(f"need 0 < near_mm < far_mm (got {self._near_mm}, {self._far_mm})")
        self._loss = loss
        self._state = SessionState.UNINITIALIZED
        self._surface: SurfaceDimensions | None = None
        self._target: TargetDimensions | None = None
        self._hints: ScaleHints | None = None
        self._last_result: CalibrationResult | None = None

    def __copy__(self):
        raise TypeError("EyewearCalibrationSession cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("EyewearCalibrationSession cannot be copied")

    def __reduce_ex__(self, protocol):
        raise TypeError("EyewearCalibrationSession cannot be pickled")

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def profile(self) -> DeviceProfile:
        return self._profile

    @property
    def surface(self) -> SurfaceDimensions | None:
        return self._surface

    @property
    def target(self) -> TargetDimensions | None:
        return self._target

    @property
    def near_mm(self) -> float:
        return self._near_mm

    @property
    def far_mm(self) -> float:
        return self._far_mm

    @property
    def last_result(self) -> CalibrationResult | None:
        return self._last_result

    def init(self, surface_width: float, surface_height: float, target_width: float, target_height: float) -> bool:
        """
        Configure the session; must be the first call and succeeds only once.

        Surface sizes are pixels, target sizes millimetres (they must match the
        printed target and its dataset entry).
        """
        try:
            self._init(surface_width, surface_height, target_width, target_height)
        except CalibrationError as e:
            logger.warning("init rejected: %s", e)
            return False
        return True

    def _init(self, surface_width, surface_height, target_width, target_height) -> None:
        if self._state is not SessionState.UNINITIALIZED:
            raise SessionStateError("session is already initialized")
        if not valid_dimensions(surface_width, surface_height):
            raise ConfigurationError(f"invalid surface size {surface_width!r}x{surface_height!r}")
        if not valid_dimensions(target_width, target_height):
            raise ConfigurationError(f"invalid target size {target_width!r}x{target_height!r}")

        surface = SurfaceDimensions(float(surface_width), float(surface_height))
        target = TargetDimensions(float(target_width), float(target_height))
        hints = scale_hints(self._profile, eye_viewport(self._profile, surface), target)

        self._surface = surface
        self._target = target
        self._hints = hints
        self._state = SessionState.INITIALIZED
        logger.debug("session initialized: surface=%s target=%s hints=%s", surface, target, hints)

    def _require_init(self) -> None:
        if self._state is SessionState.UNINITIALIZED:
            raise SessionStateError("init() must succeed before this call")

    def get_min_scale_hint(self) -> float | None:
        if self._hints is None:
            logger.warning("get_min_scale_hint called before init")
            return None
        return self._hints.min_scale

    def get_max_scale_hint(self) -> float | None:
        if self._hints is None:
            logger.warning("get_max_scale_hint called before init")
            return None
        return self._hints.max_scale

    def get_drawing_aspect_ratio(self, surface_width: float, surface_height: float) -> float | None:
        """Aspect ratio (w/h, pixels) for calibration shapes on the current surface."""
        if self._target is None:
            logger.warning("get_drawing_aspect_ratio called before init")
            return None
        if not valid_dimensions(surface_width, surface_height):
            logger.warning("get_drawing_aspect_ratio: invalid surface %rx%r", surface_width, surface_height)
            return None
        surface = SurfaceDimensions(float(surface_width), float(surface_height))
        return drawing_aspect_ratio(self._target, stretch_factor(self._profile, surface))

    def is_stereo_stretched(self) -> bool | None:
        if self._surface is None:
            logger.warning("is_stereo_stretched called before init")
            return None
        return is_stereo_stretched(self._profile, self._surface)

    def solve(self, readings: Iterable[CalibrationReading]) -> CalibrationResult:
        """Fit one eye's readings; raises `CalibrationError` on any failure."""
        self._require_init()
        assert self._surface is not None and self._target is not None
        viewport = eye_viewport(self._profile, self._surface)
        aspect = drawing_aspect_ratio(self._target, stretch_factor(self._profile, self._surface))
        result = solve_projection(
            readings,
            viewport=viewport,
            target=self._target,
            aspect_ratio=aspect,
            near_mm=self._near_mm,
            far_mm=self._far_mm,
            loss=self._loss,
        )
        self._last_result = result
        self._state = SessionState.SOLVED
        return result

    def solve_stereo(self, readings: Iterable[CalibrationReading]) -> dict[EyeID, CalibrationResult]:
        """Group readings by eye and solve every eye independently."""
        by_eye: dict[EyeID, list[CalibrationReading]] = {}
        for r in as_reading_list(readings):
            by_eye.setdefault(r.eye, []).append(r)
        return {eye: self.solve(group) for eye, group in by_eye.items()}

    def get_projection_matrix(self, readings: Iterable[CalibrationReading], out: np.ndarray) -> bool:
        """
        Compute the calibrated projection matrix into `out` (writable (4,4) float).

        Returns False on any failure, leaving `out` untouched.
        """
        if not (isinstance(out, np.ndarray) and out.shape == (4, 4) and out.flags.writeable):
            logger.warning("get_projection_matrix: out must be a writable (4,4) array")
            return False
        if not np.issubdtype(out.dtype, np.floating):
            logger.warning("get_projection_matrix: out must have a floating dtype")
            return False
        try:
            result = self.solve(readings)
        except CalibrationError as e:
            logger.warning("get_projection_matrix failed: %s", e)
            return False
        out[...] = result.matrix
        return True
