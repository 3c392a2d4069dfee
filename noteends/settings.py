"""Persisted randomizer settings stored as versioned JSON."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from .randomizer import Seed

logger = logging.getLogger(__name__)

SUPPORTED_SETTINGS_VERSION = 1
DEFAULT_INTENSITY = 0.5


@dataclass(frozen=True)
class RandomizerSettings:
    intensity: float = DEFAULT_INTENSITY
    apply_to_all: bool = True
    seed: Seed = field(default_factory=Seed.fresh)

    def replace_seed(self, seed: Seed) -> "RandomizerSettings":
        return RandomizerSettings(intensity=self.intensity, apply_to_all=self.apply_to_all, seed=seed)

    def to_json(self) -> dict:
        return {
            "version": SUPPORTED_SETTINGS_VERSION,
            "intensity": self.intensity,
            "apply_to_all": self.apply_to_all,
            "seed": self.seed.value,
        }


def _require_dict(value: object, *, where: str) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"{where} must be an object")
    return value


def _require_bool(value: object, *, where: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{where} must be a boolean")
    return value


def _require_int(value: object, *, where: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{where} must be an integer")
    return value


def _int_in_range(value: object, *, where: str, low: int, high: int) -> int:
    _require_int(value, where=where)
    if not (low <= value <= high):
        raise ValueError(f"{where} must be in [{low}, {high}]")
    return value


def _float_in_range(value: object, *, where: str, low: float, high: float) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValueError(f"{where} must be a number")
    if not (low <= value <= high):
        raise ValueError(f"{where} must be in [{low}, {high}]")
    return float(value)


def parse_settings(data: object) -> RandomizerSettings:
    obj = _require_dict(data, where="settings")

    version = _int_in_range(
        obj.get("version", SUPPORTED_SETTINGS_VERSION),
        where="version",
        low=1,
        high=65535,
    )
    if version != SUPPORTED_SETTINGS_VERSION:
        raise ValueError(
            f"unsupported settings version {version}; supported version is {SUPPORTED_SETTINGS_VERSION}"
        )

    intensity = _float_in_range(
        obj.get("intensity", DEFAULT_INTENSITY), where="intensity", low=0.0, high=1.0
    )
    apply_to_all = _require_bool(obj.get("apply_to_all", True), where="apply_to_all")
    if "seed" in obj:
        seed = Seed(_require_int(obj["seed"], where="seed"))
    else:
        seed = Seed.fresh()
    return RandomizerSettings(intensity=intensity, apply_to_all=apply_to_all, seed=seed)


def load_settings(path: Path) -> RandomizerSettings:
    """Read settings from ``path``; a missing file yields defaults and a fresh seed."""

    if not path.exists():
        logger.debug("settings file %s not found; using defaults", path)
        return RandomizerSettings()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid settings JSON in {path}: {exc}") from exc
    return parse_settings(raw)


def save_settings(settings: RandomizerSettings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=path.name, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(settings.to_json(), handle, indent=2)
            handle.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
