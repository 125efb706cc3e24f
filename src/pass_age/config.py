"""Configuration for pass-age."""

import enum
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional

import yaml

from .age import ConfigError


class SortBy(enum.Enum):
    NAME = "name"
    LAST_MODIFIED = "last-modified"


class StateFilter(enum.Enum):
    """Which passwords to keep when --since is given."""

    NONE = "none"
    UNMODIFIED = "unmodified"
    MODIFIED = "modified"


@dataclass
class RunConfiguration:
    """Validated settings for a single run."""

    store_dir: Path
    ignore_revs: list[str] = field(default_factory=list)
    ignore_revs_files: list[Path] = field(default_factory=list)
    since: Optional[timedelta] = None
    state_filter: StateFilter = StateFilter.NONE
    sort_by: SortBy = SortBy.NAME
    reverse: bool = False
    targets: list[str] = field(default_factory=list)


def get_config_dir() -> Path:
    """Get config directory following XDG spec."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / "pass-age"


def get_config_file() -> Path:
    """Get config file path."""
    env_file = os.environ.get("PASS_AGE_CONFIG")
    if env_file:
        return Path(env_file).expanduser()
    return get_config_dir() / "config.yaml"


def get_store_dir() -> Path:
    """Get the password store directory, the same way pass does."""
    env_dir = os.environ.get("PASSWORD_STORE_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    return Path.home() / ".password-store"


def _string_list(data: dict, key: str) -> list[str]:
    value = data.get(key, [])
    # YAML reads an all-digit short SHA as an int
    if not isinstance(value, list) or not all(
        isinstance(v, str) or (isinstance(v, int) and not isinstance(v, bool)) for v in value
    ):
        raise ConfigError(f"'{key}' must be a list of strings")
    return [str(v) for v in value]


def load_config_file(config_file: Optional[Path] = None) -> dict:
    """
    Load defaults from the YAML config file.

    A missing file is not an error. Returns a dict with only the keys
    that were set, already converted to their runtime types.
    """
    config_file = config_file or get_config_file()

    if not config_file.exists():
        return {}

    try:
        data = yaml.safe_load(config_file.read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_file} must contain a mapping")

    unknown = set(data) - {"ignore_revs", "ignore_revs_files", "sort_by", "reverse"}
    if unknown:
        raise ConfigError(f"Unknown config keys in {config_file}: {', '.join(sorted(unknown))}")

    settings = {}
    if "ignore_revs" in data:
        settings["ignore_revs"] = _string_list(data, "ignore_revs")
    if "ignore_revs_files" in data:
        settings["ignore_revs_files"] = [
            Path(p).expanduser() for p in _string_list(data, "ignore_revs_files")
        ]
    if "sort_by" in data:
        try:
            settings["sort_by"] = SortBy(data["sort_by"])
        except ValueError:
            choices = ", ".join(s.value for s in SortBy)
            raise ConfigError(f"'sort_by' must be one of: {choices}")
    if "reverse" in data:
        if not isinstance(data["reverse"], bool):
            raise ConfigError("'reverse' must be true or false")
        settings["reverse"] = data["reverse"]

    return settings


# humantime-compatible unit names, in nanoseconds
_SECOND = 10**9
_UNITS = {
    "nsec": 1, "ns": 1,
    "usec": 10**3, "us": 10**3,
    "msec": 10**6, "ms": 10**6,
    "seconds": _SECOND, "second": _SECOND, "sec": _SECOND, "s": _SECOND,
    "minutes": 60 * _SECOND, "minute": 60 * _SECOND, "min": 60 * _SECOND, "m": 60 * _SECOND,
    "hours": 3600 * _SECOND, "hour": 3600 * _SECOND, "hr": 3600 * _SECOND, "h": 3600 * _SECOND,
    "days": 86400 * _SECOND, "day": 86400 * _SECOND, "d": 86400 * _SECOND,
    "weeks": 604800 * _SECOND, "week": 604800 * _SECOND, "w": 604800 * _SECOND,
    "months": 2630016 * _SECOND, "month": 2630016 * _SECOND, "M": 2630016 * _SECOND,
    "years": 31557600 * _SECOND, "year": 31557600 * _SECOND, "y": 31557600 * _SECOND,
}

_DURATION_PART = re.compile(r"\s*([0-9]+)\s*([A-Za-z]+)")


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration like "365days", "1year 6months" or "2w3d".

    Fractions of a second are dropped.
    """
    pos = 0
    nanoseconds = 0
    text = text.strip()

    if not text:
        raise ConfigError("Empty duration")

    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if not match:
            raise ConfigError(f"Invalid duration: {text!r}")
        number, unit = match.groups()
        if unit not in _UNITS:
            raise ConfigError(f"Unknown time unit {unit!r} in duration: {text!r}")
        nanoseconds += int(number) * _UNITS[unit]
        pos = match.end()

    try:
        return timedelta(seconds=nanoseconds // _SECOND)
    except OverflowError:
        raise ConfigError(f"Duration is too large: {text!r}")
