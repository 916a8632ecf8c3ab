"""
Measurement logic: baseline detection, the bounded capture window, and the
controller state machine tying them to a device.

- `baseline` : `BaselineDetector` debounce
- `session` : `MeasurementSession`, weight conversion and formatting
- `controller` : `DeviceController`, one cycle at a time
"""

from .baseline import BaselineDetector, BaselineState
from .controller import (
    Connection,
    ControllerSession,
    ControllerState,
    DeviceController,
    open_kforcegrip,
)
from .session import MeasurementSession, SessionSummary, format_weight, weight_from_sample

__all__ = [
    "BaselineDetector",
    "BaselineState",
    "Connection",
    "ControllerSession",
    "ControllerState",
    "DeviceController",
    "open_kforcegrip",
    "MeasurementSession",
    "SessionSummary",
    "format_weight",
    "weight_from_sample",
]
