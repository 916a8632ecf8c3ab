"""Error taxonomy.

Each `GripError` maps onto one numeric code. The code and message end up in
the persisted result record's `messages` list when the error tears a
measurement cycle down.
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    TEMP_FILE = 1
    DEVICE_NOT_FOUND = 2
    GENERIC_DEVICE = 3
    COEFFICIENT_OR_FRAME = 4
    GENERIC_PLUGIN = 5
    OVERALL_TIMEOUT = 6
    NO_OR_INVALID_DATA = 7


ERROR_MESSAGES = {
    ErrorCode.TEMP_FILE: "Error on temp.json file",
    ErrorCode.DEVICE_NOT_FOUND: "No device Found",
    ErrorCode.GENERIC_DEVICE: "Generic Error on device",
    ErrorCode.COEFFICIENT_OR_FRAME: "CK Error",
    ErrorCode.GENERIC_PLUGIN: "Generic Error on plugin",
    ErrorCode.OVERALL_TIMEOUT: "Timeout, check if the device is connected and retry",
    ErrorCode.NO_OR_INVALID_DATA: "No data or invalid data",
}


class GripError(Exception):
    """Base for all errors that end a measurement cycle."""

    code: ErrorCode = ErrorCode.GENERIC_PLUGIN

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return ERROR_MESSAGES[cls.code]

    def to_record(self) -> dict:
        return {"code": int(self.code), "message": self.message}


class TempFileError(GripError):
    code = ErrorCode.TEMP_FILE


class DeviceNotFound(GripError):
    code = ErrorCode.DEVICE_NOT_FOUND


class GenericDeviceError(GripError):
    code = ErrorCode.GENERIC_DEVICE


class PortAlreadyOpen(GenericDeviceError):
    """A measurement was started while a serial handle was still held."""


class CoefficientOrFrameError(GripError):
    code = ErrorCode.COEFFICIENT_OR_FRAME


class MalformedPacket(CoefficientOrFrameError):
    pass


class MalformedCoefficient(CoefficientOrFrameError):
    pass


class GenericPluginError(GripError):
    code = ErrorCode.GENERIC_PLUGIN


class OverallTimeout(GripError):
    code = ErrorCode.OVERALL_TIMEOUT


class NoDataError(GripError):
    code = ErrorCode.NO_OR_INVALID_DATA


# Job queue, never ends a cycle


class NoHandlerError(Exception):
    """No handler registered for a job's type. Permanent, never retried."""


class JobTimeoutError(Exception):
    """A job attempt ran longer than its timeout."""


class CommsError(Exception):
    """The peer channel could not be opened or used."""
