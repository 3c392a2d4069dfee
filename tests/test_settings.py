from __future__ import annotations

import json
from pathlib import Path
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from noteends.randomizer import Seed  # noqa: E402
from noteends.settings import (  # noqa: E402
    DEFAULT_INTENSITY,
    RandomizerSettings,
    load_settings,
    parse_settings,
    save_settings,
)


def test_parse_full_settings():
    settings = parse_settings({"version": 1, "intensity": 0.3, "apply_to_all": False, "seed": 4242})
    assert settings == RandomizerSettings(intensity=0.3, apply_to_all=False, seed=Seed(4242))


def test_parse_defaults_and_fresh_seed():
    settings = parse_settings({})
    assert settings.intensity == DEFAULT_INTENSITY
    assert settings.apply_to_all is True
    assert isinstance(settings.seed, Seed)


def test_integer_intensity_accepted():
    assert parse_settings({"intensity": 1}).intensity == 1.0


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([], "settings must be an object"),
        ({"version": 2}, "unsupported settings version 2"),
        ({"intensity": 1.5}, r"intensity must be in \[0.0, 1.0\]"),
        ({"intensity": "high"}, "intensity must be a number"),
        ({"intensity": True}, "intensity must be a number"),
        ({"apply_to_all": 1}, "apply_to_all must be a boolean"),
        ({"seed": "abc"}, "seed must be an integer"),
        ({"seed": 1.5}, "seed must be an integer"),
    ],
)
def test_parse_rejects_invalid(payload, message):
    with pytest.raises(ValueError, match=message):
        parse_settings(payload)


def test_save_then_load(tmp_path: Path):
    path = tmp_path / "nested" / "settings.json"
    settings = RandomizerSettings(intensity=0.75, apply_to_all=False, seed=Seed(99))
    save_settings(settings, path)

    assert json.loads(path.read_text(encoding="utf-8")) == {
        "version": 1,
        "intensity": 0.75,
        "apply_to_all": False,
        "seed": 99,
    }
    assert load_settings(path) == settings
    assert [p.name for p in path.parent.iterdir()] == ["settings.json"]


def test_missing_file_gives_defaults(tmp_path: Path):
    settings = load_settings(tmp_path / "absent.json")
    assert settings.intensity == DEFAULT_INTENSITY
    assert settings.apply_to_all is True


def test_corrupt_file_reports_path(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError, match="invalid settings JSON"):
        load_settings(path)


def test_replace_seed_keeps_other_fields():
    settings = RandomizerSettings(intensity=0.2, apply_to_all=False, seed=Seed(1))
    replaced = settings.replace_seed(Seed(2))
    assert replaced == RandomizerSettings(intensity=0.2, apply_to_all=False, seed=Seed(2))


def test_negative_seed_round_trips(tmp_path: Path):
    path = tmp_path / "settings.json"
    settings = RandomizerSettings(intensity=0.5, apply_to_all=True, seed=Seed(-5))
    save_settings(settings, path)
    assert load_settings(path).seed == Seed(-5)


def test_parse_accepts_large_seed():
    assert parse_settings({"seed": 2**70}).seed == Seed(2**70)
