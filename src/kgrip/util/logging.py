# -*- coding: utf-8 -*-
"""
Loguru sink management for the server process.
"""

import os
import pathlib
import sys
import traceback

from loguru import logger

from .defaults import DEFAULT_LOGLEVEL, SINGLE_LINE_ERR_LOG, TEMP_DIR, USER_DIR_NAME

# debugLevel values of config.json -> loguru levels
_DEBUG_LEVELS = {
    0: "CRITICAL",
    1: "ERROR",
    2: "WARNING",
    3: "INFO",
    4: "DEBUG",
}


def format_error_response():
    err_str = traceback.format_exc()
    if SINGLE_LINE_ERR_LOG:
        return "\t".join(line.strip() for line in err_str.splitlines())
    else:
        return err_str


def level_from_debug_level(debug_level: int) -> str:
    """Map the numeric config `debugLevel` (0-4) onto a loguru level name."""
    if debug_level >= 5:
        return "TRACE"
    return _DEBUG_LEVELS.get(max(debug_level, 0), DEFAULT_LOGLEVEL)


def start_server_log(
    log_to_file=True,
    log_to_stdout=False,
    log_path=None,
    clear_prev=True,
    log_level=DEFAULT_LOGLEVEL,
):
    if log_path is None or log_path == "":
        log_path = log_default_path_server()
    else:
        log_path = os.path.abspath(log_path)

    if clear_prev:
        clear_log(log_path)

    # first remove (default) stderr output
    logger.remove()

    if log_to_file:
        logger.add(log_path, level=log_level, enqueue=True, colorize=False)
        logger.our_naughty_log_path_attr = log_path
    if log_to_stdout:
        logger.add(sys.stderr, level=log_level, enqueue=True, colorize=True)
    if log_to_file:
        logger.info("Server log started at {}", log_path)
    else:
        logger.info("Server log started.")


def log_default_path_server() -> str:
    return str(pathlib.Path.home().joinpath(USER_DIR_NAME, "server.log"))


def log_default_dir():
    return TEMP_DIR


def clear_log(log_path: str):
    """
    Clear the log file at the given path, if it exists.

    Arguments
    ---------
    log_path : str
        The path to the log file. Can get the default path with
        log_default_path_server().
    """
    if os.path.exists(log_path):
        try:
            os.remove(log_path)
        except PermissionError:
            logger.error(
                f"Could not clear log file {log_path}. Permission denied. Continuing."
            )


def shutdown_log():
    try:
        logger.info("Closing down log.")
        logger.complete()
        logger.remove()
    except Exception:
        logger.exception("Error shutting down log - skipping.")


def get_log_filename() -> str:
    """Finds the logger filename."""
    if hasattr(logger, "our_naughty_log_path_attr"):
        return logger.our_naughty_log_path_attr
    else:
        return ""
