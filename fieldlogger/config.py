"""User settings: station defaults and the export directory.

Settings live in a small JSON file under the platform config directory, or at
the path named by FIELDLOGGER_CONFIG. Missing or malformed files fall back to
empty defaults so a broken config never blocks logging.

JSON shape example:
{ "station_callsign": "W1AW", "operator": "W1AW", "grid_square": "FN31",
  "export_dir": "~/adif" }
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional, TypedDict

from platformdirs import user_config_dir

APP_NAME = "fieldlogger"
CONFIG_ENV_VAR = "FIELDLOGGER_CONFIG"
CONFIG_FILENAME = "settings.json"

logger = logging.getLogger(__name__)


class Settings(TypedDict):
    """Type definition for the settings dictionary."""
    station_callsign: Optional[str]
    operator: Optional[str]
    grid_square: Optional[str]
    export_dir: Optional[str]


DEFAULT_SETTINGS: Settings = {
    "station_callsign": None,
    "operator": None,
    "grid_square": None,
    "export_dir": None,
}


def config_path() -> Path:
    """Resolve the settings file path, honoring FIELDLOGGER_CONFIG."""
    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser()
    cfg_dir = Path(user_config_dir(appname=APP_NAME, appauthor=False))
    return cfg_dir / CONFIG_FILENAME


def load_settings() -> Settings:
    """Load settings from JSON over the defaults.

    Only string values for known keys are taken; anything else is ignored.
    """
    p = config_path()
    data: Settings = dict(DEFAULT_SETTINGS)  # type: ignore[assignment]
    try:
        if p.exists():
            with p.open("r", encoding="utf-8") as f:
                raw = json.load(f)
            if isinstance(raw, dict):
                for key in DEFAULT_SETTINGS:
                    val = raw.get(key)
                    if isinstance(val, str) and val.strip():
                        data[key] = val.strip()  # type: ignore[literal-required]
    except (OSError, json.JSONDecodeError, ValueError, TypeError) as e:
        logger.warning("Ignoring unreadable settings file %s: %s", p, e)
    return data


def export_dir(settings: Optional[Settings] = None) -> Path:
    """Directory for ADIF exports: the configured one, else the home directory."""
    settings = settings if settings is not None else load_settings()
    configured = settings.get("export_dir")
    if configured:
        return Path(configured).expanduser()
    return Path.home()
