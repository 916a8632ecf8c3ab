# -*- coding: utf-8 -*-
"""Locating and loading config.json and the persisted state file.

Files are looked up in this order, first hit wins:

1. an explicit path, if given
2. the current working directory
3. the user directory (~/.kgrip/)
4. the default shipped with the package, which is copied into the user
   directory on first use so it can be edited there
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Optional

import simplejson as json
from loguru import logger

from kgrip.types import GripConfig, TempFileError

from .defaults import CONFIG_FILENAME, STATE_FILENAME, USER_DIR_NAME

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_FILES = {
    CONFIG_FILENAME: PACKAGE_DIR / "default_config.json",
    STATE_FILENAME: PACKAGE_DIR / "default_state.json",
}


def get_user_dir() -> Path:
    user_dir = Path.home() / USER_DIR_NAME
    user_dir.mkdir(parents=True, exist_ok=True)
    return user_dir


def find_settings_file(filename: str, path: Optional[str] = None) -> Optional[Path]:
    """Resolve `filename` following the lookup order above.

    Returns None if not even a packaged default exists.
    """
    if path:
        explicit = Path(path).expanduser()
        if explicit.is_file():
            return explicit
        logger.warning("Settings file {} not found, searching defaults.", explicit)

    local = Path(os.getcwd()) / filename
    if local.is_file():
        logger.debug("Loading {} from working directory", filename)
        return local

    user = get_user_dir() / filename
    if user.is_file():
        logger.debug("Loading {} from user directory", filename)
        return user

    default = DEFAULT_FILES.get(filename)
    if default is not None and default.is_file():
        logger.info("Copying default {} to {}", filename, user)
        try:
            shutil.copyfile(default, user)
            return user
        except OSError:
            logger.warning("Could not copy default {}, using packaged copy", filename)
            return default

    logger.warning("Default {} not found", filename)
    return None


def _read_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_config(path: Optional[str] = None) -> GripConfig:
    """Load the instrument/server configuration."""
    found = find_settings_file(CONFIG_FILENAME, path)
    if found is None:
        logger.warning("No config file found, using built-in defaults.")
        return GripConfig()
    try:
        raw = _read_json(found)
    except (OSError, ValueError):
        logger.exception("Failed to load {}, using built-in defaults.", found)
        return GripConfig()
    config = GripConfig.from_dict(raw)
    logger.info("Config loaded from {}", found)
    return config


def load_state(path: Optional[str] = None) -> dict:
    """Load the persisted state file (the previous result record, or the
    inputData the peer left for the next cycle).

    Never raises: an unreadable file is logged as a temp file error and an
    empty state is returned.
    """
    found = find_settings_file(STATE_FILENAME, path)
    if found is None:
        return {}
    try:
        state = _read_json(found)
    except (OSError, ValueError) as e:
        err = TempFileError(f"{TempFileError.default_message()}: {e}")
        logger.error("{} ({})", err.message, found)
        return {}
    if not isinstance(state, dict):
        logger.error("{}: expected an object in {}", TempFileError.default_message(), found)
        return {}
    return state
