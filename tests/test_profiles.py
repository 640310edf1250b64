from __future__ import annotations

import json
from pathlib import Path

import pytest

from eyewearcal.errors import ProfileValidationError
from eyewearcal.profiles import (
    BUILTIN_PROFILES,
    SCHEMA_VERSION,
    get_profile,
    load_device_profiles,
    parse_device_profile,
    profile_to_dict,
)


def _profile_dict(**overrides):
    d = {
        "schema_version": SCHEMA_VERSION,
        "name": "test-glasses",
        "stereo": True,
        "display": {"width_px": 1280, "height_px": 720, "pixel_aspect": 1.0},
        "hints": {"min_shape_px": 40, "max_alignment_error_mm": 0.8, "edge_margin": 0.2},
        "clip": {"near_mm": 100, "far_mm": 10000},
    }
    d.update(overrides)
    return d


def test_parse_device_profile_ok():
    p = parse_device_profile(_profile_dict())
    assert p.name == "test-glasses"
    assert p.stereo is True
    assert p.stereo_stretched is None
    assert (p.display_width_px, p.display_height_px) == (1280, 720)
    assert p.edge_margin == 0.2
    assert p.near_mm == 100.0


def test_parse_device_profile_defaults():
    p = parse_device_profile({"name": "bare", "display": {"width_px": 640, "height_px": 480}})
    assert p.stereo is False
    assert p.min_shape_px == 48.0
    assert p.far_mm == 5000.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"schema_version": "eyewearcal.device_profile.v9"},
        {"name": ""},
        {"stereo": "yes"},
        {"display": {"width_px": 0, "height_px": 720}},
        {"display": {"width_px": 1280.5, "height_px": 720}},
        {"hints": {"edge_margin": 1.0}},
        {"hints": {"max_alignment_error_mm": -1}},
        {"clip": {"near_mm": 500, "far_mm": 100}},
        {"stereo": False, "stereo_stretched": True},
    ],
)
def test_parse_device_profile_rejects(overrides):
    with pytest.raises(ProfileValidationError):
        parse_device_profile(_profile_dict(**overrides))


def test_profile_dict_roundtrip():
    for p in BUILTIN_PROFILES.values():
        assert parse_device_profile(profile_to_dict(p)) == p


def test_load_device_profiles_table(tmp_path: Path):
    path = tmp_path / "profiles.json"
    doc = {
        "schema_version": SCHEMA_VERSION,
        "profiles": [_profile_dict(), _profile_dict(name="other", stereo=False)],
    }
    path.write_text(json.dumps(doc), encoding="utf-8")
    table = load_device_profiles(path)
    assert sorted(table) == ["other", "test-glasses"]


def test_load_device_profiles_single_and_duplicates(tmp_path: Path):
    single = tmp_path / "one.json"
    single.write_text(json.dumps(_profile_dict()), encoding="utf-8")
    assert list(load_device_profiles(single)) == ["test-glasses"]

    dup = tmp_path / "dup.json"
    dup.write_text(json.dumps({"schema_version": SCHEMA_VERSION, "profiles": [_profile_dict(), _profile_dict()]}), encoding="utf-8")
    with pytest.raises(ProfileValidationError):
        load_device_profiles(dup)


def test_get_profile_unknown_name():
    assert get_profile("generic-mono").name == "generic-mono"
    with pytest.raises(ProfileValidationError):
        get_profile("no-such-device")


def test_display_size_is_optional():
    p = parse_device_profile({"name": "see-through"})
    assert p.display_width_px is None and p.display_height_px is None
    assert parse_device_profile(profile_to_dict(p)) == p


@pytest.mark.parametrize(
    "overrides",
    [
        {"display": {"width_px": 1280}},
        {"display": {}, "stereo_stretched": True},
        {"hints": {"edge_margin": "wide"}},
    ],
)
def test_parse_device_profile_rejects_incomplete_fields(overrides):
    with pytest.raises(ProfileValidationError):
        parse_device_profile(_profile_dict(**overrides))
