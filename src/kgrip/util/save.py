# -*- coding: utf-8 -*-
"""Writing the per-cycle result record.

The peer process picks the record up from `resultPath` (temp.json by
default) once a measurement cycle ends, whatever the outcome.
"""

from __future__ import annotations

import os
import typing

import simplejson as json
from loguru import logger

from kgrip.types import TempFileError

if typing.TYPE_CHECKING:
    from kgrip.types import ResultRecord


def save_result(path: str, record: ResultRecord) -> bool:
    """Write `record` to `path` as JSON. Returns False (and logs) on failure."""
    try:
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(record.to_dict(), f, use_decimal=True)
    except (OSError, TypeError, ValueError):
        logger.exception("{} ({})", TempFileError.default_message(), path)
        return False
    logger.info("Result record written to {}", path)
    return True
