from eyewearcal.api.readings_io import ReadingSet, load_readings, save_readings
from eyewearcal.api.session import EyewearCalibrationSession, SessionState
from eyewearcal.core.reading import CalibrationReading, EyeID
from eyewearcal.core.solver import CalibrationResult

__all__ = [
    "EyewearCalibrationSession",
    "SessionState",
    "CalibrationReading",
    "CalibrationResult",
    "EyeID",
    "ReadingSet",
    "load_readings",
    "save_readings",
]
