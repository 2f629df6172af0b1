"""Scanner threshold configuration and its persistence."""

import dataclasses
import logging
import numbers
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dupscan.database import AppSetting, session_scope
from dupscan.errors import ConfigError

log = logging.getLogger(__name__)

SETTINGS_KEY = 'duplicate-scanner-settings'


@dataclass(frozen=True)
class ScannerSettings:
    """Classifier thresholds, all percentages in [0, 100]."""

    # Hard exclusion: address AND name below these floors
    min_address_similarity: float = 40
    min_name_similarity: float = 40
    # Hard exclusion: capacity gap above this (also the Low-tier limit)
    max_capacity_difference: float = 50
    # Hard exclusion: address token overlap below this
    min_address_token_overlap: float = 20
    # Medium tier: address OR name at or above these
    medium_address_threshold: float = 80
    medium_name_threshold: float = 75

    def to_dict(self) -> dict[str, float]:
        return dataclasses.asdict(self)

    def clamped(self) -> 'ScannerSettings':
        """Copy with every value forced into [0, 100]."""
        return ScannerSettings(**{
            k: min(100.0, max(0.0, float(v))) for k, v in self.to_dict().items()
        })


DEFAULT_SETTINGS = ScannerSettings()
SETTING_NAMES = tuple(f.name for f in dataclasses.fields(ScannerSettings))


def validate_setting(key: str, value: Any) -> float:
    """Check one threshold and return it as float.

    Raises:
        ConfigError: If the key is unknown or the value is not a number in [0, 100].
    """
    if key not in SETTING_NAMES:
        raise ConfigError(f"Unknown scanner setting: {key}", key=key)
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigError(f"Setting {key} must be a number, got {value!r}", key=key)
    if not 0 <= value <= 100:
        raise ConfigError(f"Setting {key} must lie in [0, 100], got {value}", key=key)
    return float(value)


def settings_from_dict(data: dict[str, Any]) -> ScannerSettings:
    """Build settings from stored values layered over the defaults.

    Unknown keys are ignored; known keys are validated.
    """
    values = DEFAULT_SETTINGS.to_dict()
    for key, value in data.items():
        if key in SETTING_NAMES:
            values[key] = validate_setting(key, value)
    return ScannerSettings(**values)


class SettingsStore:
    """Reads and writes ScannerSettings as one key-value row."""

    def __init__(self, db_path: Path):
        self.db_path = db_path

    def load(self) -> ScannerSettings:
        """Current settings, or the defaults when nothing is stored."""
        with session_scope(self.db_path) as session:
            row = session.get(AppSetting, SETTINGS_KEY)
            stored = dict(row.value) if row is not None and isinstance(row.value, dict) else {}
        return settings_from_dict(stored)

    def save(self, settings: ScannerSettings) -> ScannerSettings:
        """Persist a full settings object (last write wins)."""
        values = {k: validate_setting(k, v) for k, v in settings.to_dict().items()}
        with session_scope(self.db_path) as session:
            row = session.get(AppSetting, SETTINGS_KEY)
            if row is None:
                session.add(AppSetting(key=SETTINGS_KEY, value=values))
            else:
                row.value = values
        log.info("Scanner settings saved: %s", values)
        return ScannerSettings(**values)

    def update(self, key: str, value: Any) -> ScannerSettings:
        """Change a single threshold and persist the result."""
        validate_setting(key, value)
        current = self.load()
        return self.save(dataclasses.replace(current, **{key: float(value)}))

    def reset(self) -> ScannerSettings:
        """Drop stored values so the built-in defaults apply again."""
        with session_scope(self.db_path) as session:
            row = session.get(AppSetting, SETTINGS_KEY)
            if row is not None:
                session.delete(row)
        log.info("Scanner settings reset to defaults")
        return DEFAULT_SETTINGS
