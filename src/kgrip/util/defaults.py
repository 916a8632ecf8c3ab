# -*- coding: utf-8 -*-

import tempfile

DEFAULT_HOST_ADDR = "127.0.0.1"
DEFAULT_PORT = 5555
DEFAULT_RETRIES = 3  # default max attempts for outbound sends
DEFAULT_TIMEOUT = 5  # seconds
DEFAULT_LOGLEVEL = "INFO"
TEST_LOGLEVEL = "TRACE"
TEMP_DIR = tempfile.gettempdir()
SINGLE_LINE_ERR_LOG = False  # reformat tracebacks into a single line for err comms

USER_DIR_NAME = ".kgrip"
CONFIG_FILENAME = "config.json"
STATE_FILENAME = "temp.json"
HARDWARE_NAME = "KForceGrip"

DEVICE_POLL_INTERVAL = 1.0  # seconds between serial enumeration polls
JOB_QUEUE_TIMEOUT = 30.0  # seconds, default per-attempt job timeout
