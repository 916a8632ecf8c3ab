"""Configuration types.

Field names are snake_case in Python and camelCase in config.json; the
mapping is done with mashumaro aliases so existing config files load as-is.
Durations are in milliseconds, as in the file.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig


@dataclass(kw_only=True)
class SocketConfig(DataClassDictMixin):
    class Config(BaseConfig):
        serialize_by_alias = True

    zeromq_ip: str = field(default="127.0.0.1", metadata=field_options(alias="zeromqIp"))
    zeromq_port: int = field(default=5555, metadata=field_options(alias="zeromqPort"))

    @property
    def endpoint(self) -> str:
        return f"tcp://{self.zeromq_ip}:{self.zeromq_port}"


@dataclass(kw_only=True)
class GripConfig(DataClassDictMixin):
    """Everything the controller consumes from config.json."""

    class Config(BaseConfig):
        serialize_by_alias = True

    # device enumeration
    vendor_id: str = field(default="0403", metadata=field_options(alias="vendorId"))
    product_id: str = field(default="6015", metadata=field_options(alias="productId"))
    poll_interval: int = field(default=1000, metadata=field_options(alias="pollInterval"))
    baud_rate: int = field(default=115200, metadata=field_options(alias="baudRate"))
    hardware: str = "KForceGrip"

    # timing (ms)
    timeout: int = 35000  # overall deadline per cycle
    sampling_delay: int = field(default=1000, metadata=field_options(alias="samplingDelay"))
    duration: int = 5000  # capture window
    port_close_delay: int = field(default=200, metadata=field_options(alias="portCloseDelay"))

    # baseline debounce
    baseline: int = 3000  # threshold on raw magnitude
    baseline_time_setting: int = field(
        default=3000, metadata=field_options(alias="baselineTimeSetting")
    )
    baseline_time_not_set: int = field(
        default=500, metadata=field_options(alias="baselineTimeNotSet")
    )

    # weights
    trigger: float = 0.8
    ceil_weight: float = field(default=90.0, metadata=field_options(alias="ceilWeight"))
    big_round: int = field(default=2, metadata=field_options(alias="bigRound"))
    display_digits: int = field(default=1, metadata=field_options(alias="displayDigits"))

    # ambient
    socket: SocketConfig = field(default_factory=SocketConfig)
    result_path: str = field(default="temp.json", metadata=field_options(alias="resultPath"))
    log_file_path: str = field(default="", metadata=field_options(alias="logFilePath"))
    debug: bool = False
    debug_level: int = field(default=3, metadata=field_options(alias="debugLevel"))

    @property
    def trigger_weight(self) -> Decimal:
        return Decimal(str(self.trigger))

    @property
    def ceiling_weight(self) -> Decimal:
        return Decimal(str(self.ceil_weight))


def seconds(ms: int | float) -> float:
    """Config milliseconds -> scheduler seconds."""
    return ms / 1000.0
