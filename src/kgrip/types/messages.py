"""Message types for the peer channel and the persisted result record."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
from mashumaro.types import Discriminator

from .commands import BASELINE_STOP_CODE, CONSTS


def get_all_subclasses_map(cls: type) -> dict[str, type]:
    """Get all subclasses of a class recursively."""

    def _get_all(clas: type, subclasses: dict[str, type]):
        if not clas.__subclasses__():
            return subclasses
        for subcls in clas.__subclasses__():
            subclasses[subcls.__name__] = subcls
            subclasses |= _get_all(subcls, subclasses)
        return subclasses

    return _get_all(cls, dict())


# ============================================================================
# Outbound statuses
# ============================================================================


@dataclass(kw_only=True)
class Status(DataClassDictMixin):
    """A status update produced by the controller.

    Serialises to the `outputData` object sent to the peer and handed to the
    display: `{"message": <name>, ...extra fields}`.
    """

    message: str

    class Config(BaseConfig):
        discriminator = Discriminator(field="message", include_subtypes=True)
        serialize_by_alias = True

    @property
    def is_terminal(self) -> bool:
        """Whether this status closes a measurement cycle."""
        return self.message in _TERMINAL


@dataclass(kw_only=True)
class DeviceFound(Status):
    message: str = CONSTS.STATUS.DEVICE_FOUND


@dataclass(kw_only=True)
class BaselineOk(Status):
    message: str = CONSTS.STATUS.BASELINE_OK


@dataclass(kw_only=True)
class BaselineStop(Status):
    message: str = CONSTS.STATUS.BASELINE_STOP
    code: int = BASELINE_STOP_CODE


@dataclass(kw_only=True)
class MeasureReceived(Status):
    message: str = CONSTS.STATUS.MEASURE_RECEIVED
    value: str


@dataclass(kw_only=True)
class MeasureFinish(Status):
    message: str = CONSTS.STATUS.MEASURE_FINISH
    raw_measures: str = field(metadata=field_options(alias="rawMeasures"))
    avg: str
    max_weight: str = field(metadata=field_options(alias="max"))


@dataclass(kw_only=True)
class Timeout(Status):
    message: str = CONSTS.STATUS.TIMEOUT


@dataclass(kw_only=True)
class AppHide(Status):
    message: str = CONSTS.STATUS.APP_HIDE


@dataclass(kw_only=True)
class AppShow(Status):
    message: str = CONSTS.STATUS.APP_SHOW


@dataclass(kw_only=True)
class ShowGauge(Status):
    message: str = CONSTS.STATUS.SHOW_GAUGE


@dataclass(kw_only=True)
class HideGauge(Status):
    message: str = CONSTS.STATUS.HIDE_GAUGE


@dataclass(kw_only=True)
class SamplingOn(Status):
    message: str = CONSTS.STATUS.SAMPLING_ON


@dataclass(kw_only=True)
class ErrorStatus(Status):
    message: str = CONSTS.STATUS.ERROR
    code: int
    description: str = ""


_TERMINAL = {
    CONSTS.STATUS.MEASURE_FINISH,
    CONSTS.STATUS.TIMEOUT,
    CONSTS.STATUS.APP_HIDE,
    CONSTS.STATUS.APP_SHOW,
    CONSTS.STATUS.ERROR,
}


# ============================================================================
# Inbound
# ============================================================================


@dataclass(kw_only=True)
class InboundMessage(DataClassDictMixin):
    """A command from the peer: `{"inputData": {"cmd": ..., ...}}`."""

    input_data: dict[str, Any] = field(
        default_factory=dict, metadata=field_options(alias="inputData")
    )

    class Config(BaseConfig):
        serialize_by_alias = True

    @property
    def cmd(self) -> str | None:
        cmd = self.input_data.get("cmd")
        return cmd if isinstance(cmd, str) else None


# ============================================================================
# Persisted record
# ============================================================================


@dataclass(kw_only=True)
class ErrorRecord(DataClassDictMixin):
    code: int
    message: str


@dataclass(kw_only=True)
class OutputData(DataClassDictMixin):
    weight_max: str | None = field(default=None, metadata=field_options(alias="weightMax"))
    weight_array: str | None = field(
        default=None, metadata=field_options(alias="weightArray")
    )
    weight_media: str | None = field(
        default=None, metadata=field_options(alias="weightMedia")
    )

    class Config(BaseConfig):
        serialize_by_alias = True
        omit_none = True


@dataclass(kw_only=True)
class ResultRecord(DataClassDictMixin):
    """What gets written to the result file at the end of every cycle."""

    hardware: str = "KForceGrip"
    input_data: dict[str, Any] = field(
        default_factory=dict, metadata=field_options(alias="inputData")
    )
    output_data: OutputData = field(
        default_factory=OutputData, metadata=field_options(alias="outputData")
    )
    messages: list[ErrorRecord] = field(default_factory=list)

    class Config(BaseConfig):
        serialize_by_alias = True

    def add_error(self, code: int, message: str) -> None:
        self.messages.append(ErrorRecord(code=int(code), message=message))
