from __future__ import annotations

import enum
from dataclasses import dataclass, field

import numpy as np


class EyeID(enum.Enum):
    LEFT = "left"
    RIGHT = "right"
    MONO = "mono"


def _frozen_vector(x: object, n: int, name: str) -> np.ndarray:
    v = np.array(x, dtype=np.float64).reshape(-1)
    if v.shape != (n,):
        raise ValueError(f"{name} must have {n} components")
    v.setflags(write=False)
    return v


@dataclass(frozen=True, eq=False)
class CalibrationReading:
    """
    One user alignment step.

    The user drew the calibration rectangle at `scale` centred on `center_ndc`
    and moved until its edges matched the image target; at that moment the
    tracker reported the target pose (rvec, tvec_mm) in the camera frame.

    Camera frame: x right, y up, looking down -Z (visible targets have tz < 0).
    Target frame: origin at the target centre, x along its width, y along its
    height.
    """

    scale: float
    rvec: np.ndarray  # (3,) axis-angle, radians
    tvec_mm: np.ndarray  # (3,)
    center_ndc: np.ndarray = field(default_factory=lambda: np.zeros((2,), dtype=np.float64))  # (2,)
    eye: EyeID = EyeID.MONO

    def __post_init__(self) -> None:
        object.__setattr__(self, "scale", float(self.scale))
        object.__setattr__(self, "rvec", _frozen_vector(self.rvec, 3, "rvec"))
        object.__setattr__(self, "tvec_mm", _frozen_vector(self.tvec_mm, 3, "tvec_mm"))
        object.__setattr__(self, "center_ndc", _frozen_vector(self.center_ndc, 2, "center_ndc"))
        object.__setattr__(self, "eye", EyeID(self.eye))

    @classmethod
    def fronto_parallel(
        cls,
        scale: float,
        tvec_mm: np.ndarray,
        *,
        center_ndc: tuple[float, float] = (0.0, 0.0),
        eye: EyeID = EyeID.MONO,
    ) -> "CalibrationReading":
        """Reading with the target facing the camera (zero rotation)."""
        return cls(scale=scale, rvec=np.zeros((3,)), tvec_mm=tvec_mm, center_ndc=np.asarray(center_ndc), eye=eye)
