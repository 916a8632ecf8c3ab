# -*- coding: utf-8 -*-
"""
Utility functions and constants for kgrip.

- Logging configuration and management
- Timer scheduling
- Config / state file lookup
- Result record saving
- Serial port enumeration

Examples
--------
Finding the instrument:
```python
from kgrip.util import find_serial_device
path = find_serial_device("0403", "6015")
```

See Also
--------
kgrip.util.logging : Logging configuration
kgrip.util.scheduling : Generation-tagged timers
kgrip.util.settings : Config and state files
"""

from .check_hw import find_serial_device, get_hw_ports, list_usb_devices, normalise_usb_id
from .defaults import (
    DEFAULT_HOST_ADDR,
    DEFAULT_LOGLEVEL,
    DEFAULT_PORT,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT,
    SINGLE_LINE_ERR_LOG,
    TEST_LOGLEVEL,
)
from .logging import (
    clear_log,
    format_error_response,
    get_log_filename,
    level_from_debug_level,
    log_default_dir,
    log_default_path_server,
    shutdown_log,
    start_server_log,
)
from .scheduling import LoopScheduler, ScheduledTask, Scheduler, cancel_task

__all__ = [
    "DEFAULT_HOST_ADDR",
    "DEFAULT_LOGLEVEL",
    "DEFAULT_PORT",
    "DEFAULT_RETRIES",
    "DEFAULT_TIMEOUT",
    "SINGLE_LINE_ERR_LOG",
    "TEST_LOGLEVEL",
    "clear_log",
    "format_error_response",
    "get_hw_ports",
    "get_log_filename",
    "level_from_debug_level",
    "log_default_dir",
    "log_default_path_server",
    "shutdown_log",
    "start_server_log",
    "find_serial_device",
    "list_usb_devices",
    "normalise_usb_id",
    "LoopScheduler",
    "ScheduledTask",
    "Scheduler",
    "cancel_task",
]
