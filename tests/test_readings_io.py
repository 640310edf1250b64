from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from eyewearcal.api.readings_io import SCHEMA_VERSION, load_readings, save_readings
from eyewearcal.core.geometry import SurfaceDimensions, TargetDimensions
from eyewearcal.core.reading import CalibrationReading, EyeID
from eyewearcal.errors import ProfileValidationError


def test_save_and_load_readings(tmp_path: Path) -> None:
    readings = [
        CalibrationReading(scale=0.3, rvec=np.array([0.01, -0.02, 0.0]), tvec_mm=np.array([-30.0, 12.0, -210.0]), eye=EyeID.LEFT),
        CalibrationReading(scale=0.7, rvec=np.zeros(3), tvec_mm=np.array([-31.0, 14.0, -80.0]), center_ndc=np.array([0.1, -0.05]), eye=EyeID.LEFT),
    ]
    path = save_readings(tmp_path / "sub" / "readings.json", readings, surface=SurfaceDimensions(1920, 1080), target=TargetDimensions(80, 50))
    assert path.exists()

    loaded = load_readings(path)
    assert loaded.surface == SurfaceDimensions(1920, 1080)
    assert loaded.target == TargetDimensions(80, 50)
    assert len(loaded.readings) == 2
    for a, b in zip(readings, loaded.readings):
        assert a.scale == b.scale
        assert a.eye is b.eye
        assert np.array_equal(a.rvec, b.rvec)
        assert np.array_equal(a.tvec_mm, b.tvec_mm)
        assert np.array_equal(a.center_ndc, b.center_ndc)


def test_load_minimal_reading_uses_defaults(tmp_path: Path) -> None:
    path = tmp_path / "r.json"
    path.write_text(json.dumps({"schema_version": SCHEMA_VERSION, "readings": [{"scale": 0.5, "tvec_mm": [0, 0, -300]}]}), encoding="utf-8")
    loaded = load_readings(path)
    assert loaded.surface is None and loaded.target is None
    r = loaded.readings[0]
    assert r.eye is EyeID.MONO
    assert np.array_equal(r.rvec, np.zeros(3))
    assert np.array_equal(r.center_ndc, np.zeros(2))


@pytest.mark.parametrize(
    "doc",
    [
        {"schema_version": "eyewearcal.readings.v1", "readings": []},
        {"schema_version": SCHEMA_VERSION, "readings": {}},
        {"schema_version": SCHEMA_VERSION, "readings": [{"tvec_mm": [0, 0, -1]}]},
        {"schema_version": SCHEMA_VERSION, "readings": [{"scale": 0.5}]},
        {"schema_version": SCHEMA_VERSION, "readings": [{"scale": 0.5, "tvec_mm": [0, -1]}]},
        {"schema_version": SCHEMA_VERSION, "readings": [{"scale": 0.5, "tvec_mm": [0, 0, -1], "eye": "third"}]},
        {"schema_version": SCHEMA_VERSION, "readings": [], "surface": {"width_px": 10}},
    ],
)
def test_load_rejects_malformed_documents(tmp_path: Path, doc) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(doc), encoding="utf-8")
    with pytest.raises(ProfileValidationError):
        load_readings(path)


def test_load_rejects_non_finite_values(tmp_path: Path) -> None:
    path = tmp_path / "nan.json"
    path.write_text(
        '{"schema_version": "%s", "readings": [{"scale": 0.5, "tvec_mm": [0, NaN, -300]}]}' % SCHEMA_VERSION,
        encoding="utf-8",
    )
    with pytest.raises(ProfileValidationError):
        load_readings(path)


@pytest.mark.parametrize(
    "doc",
    [
        {"schema_version": SCHEMA_VERSION, "readings": [{"scale": "big", "tvec_mm": [0, 0, -300]}]},
        {"schema_version": SCHEMA_VERSION, "readings": [{"scale": None, "tvec_mm": [0, 0, -300]}]},
        {"schema_version": SCHEMA_VERSION, "readings": [{"scale": 0.5, "tvec_mm": [0, None, -300]}]},
        {"schema_version": SCHEMA_VERSION, "readings": [{"scale": 0.5, "tvec_mm": [0, 0, -300], "rvec": ["x", 0, 0]}]},
        {"schema_version": SCHEMA_VERSION, "readings": [], "surface": {"width_px": "wide", "height_px": 1080}},
        {"schema_version": SCHEMA_VERSION, "readings": [], "target": {"width_mm": 80, "height_mm": None}},
    ],
)
def test_load_rejects_non_numeric_fields(tmp_path: Path, doc) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(doc), encoding="utf-8")
    with pytest.raises(ProfileValidationError):
        load_readings(path)


def test_load_rejects_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text('{"schema_version": ', encoding="utf-8")
    with pytest.raises(ProfileValidationError):
        load_readings(path)
