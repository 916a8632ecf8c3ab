"""
Commands, configuration, messages and errors shared across kgrip.

- `commands` : instrument `Command` bytes and `CONSTS` channel names
- `config` : `GripConfig`, loaded from config.json
- `messages` : outbound `Status` values, `InboundMessage`, `ResultRecord`
- `errors` : the error taxonomy (`GripError` and friends)

Examples
--------
Building a status and serialising it for the peer:
```python
from kgrip.types import MeasureReceived
MeasureReceived(value="12.3").to_dict()
# {'message': 'measure_received', 'value': '12.3'}
```
"""

from __future__ import annotations

from .commands import (
    BASELINE_STOP_CODE,
    BAUD_RATE,
    COEFFICIENT_LENGTH,
    COEFFICIENT_SCALE,
    CONSTS,
    FRAME_LENGTH,
    Command,
)
from .config import GripConfig, SocketConfig, seconds
from .errors import (
    ERROR_MESSAGES,
    CoefficientOrFrameError,
    CommsError,
    DeviceNotFound,
    ErrorCode,
    GenericDeviceError,
    GenericPluginError,
    GripError,
    JobTimeoutError,
    MalformedCoefficient,
    MalformedPacket,
    NoDataError,
    NoHandlerError,
    OverallTimeout,
    PortAlreadyOpen,
    TempFileError,
)
from .messages import (
    AppHide,
    AppShow,
    BaselineOk,
    BaselineStop,
    DeviceFound,
    ErrorRecord,
    ErrorStatus,
    HideGauge,
    InboundMessage,
    MeasureFinish,
    MeasureReceived,
    OutputData,
    ResultRecord,
    SamplingOn,
    ShowGauge,
    Status,
    Timeout,
    get_all_subclasses_map,
)

__all__ = [
    "BASELINE_STOP_CODE",
    "BAUD_RATE",
    "COEFFICIENT_LENGTH",
    "COEFFICIENT_SCALE",
    "CONSTS",
    "FRAME_LENGTH",
    "Command",
    "GripConfig",
    "SocketConfig",
    "seconds",
    "ERROR_MESSAGES",
    "ErrorCode",
    "GripError",
    "TempFileError",
    "DeviceNotFound",
    "GenericDeviceError",
    "PortAlreadyOpen",
    "CoefficientOrFrameError",
    "CommsError",
    "MalformedPacket",
    "MalformedCoefficient",
    "GenericPluginError",
    "OverallTimeout",
    "NoDataError",
    "NoHandlerError",
    "JobTimeoutError",
    "Status",
    "DeviceFound",
    "BaselineOk",
    "BaselineStop",
    "MeasureReceived",
    "MeasureFinish",
    "Timeout",
    "AppHide",
    "AppShow",
    "ShowGauge",
    "HideGauge",
    "SamplingOn",
    "ErrorStatus",
    "InboundMessage",
    "ErrorRecord",
    "OutputData",
    "ResultRecord",
    "get_all_subclasses_map",
]
