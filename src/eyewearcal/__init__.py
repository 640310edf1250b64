from eyewearcal.api import (
    CalibrationReading,
    CalibrationResult,
    EyeID,
    EyewearCalibrationSession,
    SessionState,
    load_readings,
    save_readings,
)
from eyewearcal.profiles import BUILTIN_PROFILES, DeviceProfile, get_profile, load_device_profiles

__all__ = [
    "EyewearCalibrationSession",
    "SessionState",
    "CalibrationReading",
    "CalibrationResult",
    "EyeID",
    "DeviceProfile",
    "BUILTIN_PROFILES",
    "get_profile",
    "load_device_profiles",
    "load_readings",
    "save_readings",
]
