from __future__ import annotations


class CalibrationError(ValueError):
    pass


class ConfigurationError(CalibrationError):
    """Surface or target dimensions rejected at init."""


class SessionStateError(CalibrationError):
    """Operation called in the wrong session state (e.g. before init)."""


class ProfileValidationError(CalibrationError):
    pass


class InsufficientReadingsError(CalibrationError):
    pass


class DegenerateReadingsError(CalibrationError):
    """Readings whose drawn scales are too close to constrain the fit."""


class InvalidReadingError(CalibrationError):
    pass


class MixedEyeError(CalibrationError):
    pass


class IllConditionedError(CalibrationError):
    pass


class NonFiniteResultError(CalibrationError):
    pass
