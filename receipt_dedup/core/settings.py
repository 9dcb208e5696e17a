"""
Threshold settings loaded from a JSON file.
"""

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Optional

SETTINGS_ENV_VAR = "RECEIPT_DEDUP_SETTINGS"
DEFAULT_SETTINGS_PATH = "./dedup_settings.json"


class SettingsError(ValueError):
    """Settings file is unreadable or holds invalid values."""


@dataclass(frozen=True)
class ImageThresholds:
    """Weights and gates for image similarity."""
    grid_size: int = 16
    hash_weight: float = 0.4
    edge_weight: float = 0.3
    color_weight: float = 0.2
    brightness_weight: float = 0.1
    min_combined: float = 98.0
    min_hash: float = 95.0
    min_edge: float = 90.0

    def validate(self):
        if self.grid_size < 2:
            raise SettingsError(f"grid_size must be at least 2, got {self.grid_size}")
        weights = (self.hash_weight, self.edge_weight, self.color_weight, self.brightness_weight)
        if any(w < 0 for w in weights):
            raise SettingsError("image weights must not be negative")
        if abs(sum(weights) - 1.0) > 1e-6:
            raise SettingsError(f"image weights must sum to 1.0, got {sum(weights):.3f}")
        for name in ("min_combined", "min_hash", "min_edge"):
            v = getattr(self, name)
            if not 0 <= v <= 100:
                raise SettingsError(f"{name} must be within 0-100, got {v}")


@dataclass(frozen=True)
class RecordThresholds:
    """Tolerances for record-level duplicate rules."""
    near_time_hours: float = 1.0
    amount_tolerance_percent: float = 5.0
    item_overlap_percent: float = 80.0
    item_overlap_high_percent: float = 90.0

    def validate(self):
        if self.near_time_hours < 0:
            raise SettingsError("near_time_hours must not be negative")
        if self.amount_tolerance_percent < 0:
            raise SettingsError("amount_tolerance_percent must not be negative")
        if not 0 <= self.item_overlap_percent <= self.item_overlap_high_percent <= 100:
            raise SettingsError(
                "item overlap thresholds must satisfy 0 <= item_overlap_percent "
                "<= item_overlap_high_percent <= 100")


DEFAULT_IMAGE_THRESHOLDS = ImageThresholds()
DEFAULT_RECORD_THRESHOLDS = RecordThresholds()


@dataclass(frozen=True)
class Settings:
    image: ImageThresholds = field(default_factory=ImageThresholds)
    records: RecordThresholds = field(default_factory=RecordThresholds)


def _override(base, values: Dict, section: str):
    if not isinstance(values, dict):
        raise SettingsError(f"'{section}' must be an object")
    known = {f.name for f in fields(base)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise SettingsError(f"Unknown {section} setting(s): {', '.join(unknown)}")
    coerced = {}
    for key, value in values.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SettingsError(f"{section}.{key} must be a number, got {value!r}")
        coerced[key] = int(value) if key == "grid_size" else float(value)
    result = replace(base, **coerced)
    result.validate()
    return result


def settings_from_dict(data: Dict) -> Settings:
    """Build settings from a parsed JSON document, filling defaults."""
    if not isinstance(data, dict):
        raise SettingsError("Settings must be a JSON object")
    unknown = sorted(set(data) - {"image", "records"})
    if unknown:
        raise SettingsError(f"Unknown settings section(s): {', '.join(unknown)}")
    return Settings(
        image=_override(DEFAULT_IMAGE_THRESHOLDS, data.get("image", {}), "image"),
        records=_override(DEFAULT_RECORD_THRESHOLDS, data.get("records", {}), "records"),
    )


def load_settings(path: Path) -> Settings:
    """Load settings from JSON file. A missing file yields the defaults."""
    if not path.exists():
        return Settings()
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SettingsError(f"Could not read settings from {path}: {e}") from e
    return settings_from_dict(data)


def resolve_settings_path(cli_value: Optional[str] = None) -> Path:
    """CLI flag wins, then the environment variable, then the default path."""
    return Path(cli_value or os.getenv(SETTINGS_ENV_VAR) or DEFAULT_SETTINGS_PATH)
