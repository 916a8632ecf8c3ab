"""Device base class.

Every instrument implementation inherits from `Device` and provides
open/close/is_connected plus the async I/O the controller drives:

- `write_command(command)` : send one command byte
- `reset_input_buffer()` : drop anything unread
- `read_exact(n, timeout)` : read up to `n` bytes, waiting at most `timeout`
- `read_frame()` : wait for the next full sample packet

`open()` reports failure through its return value rather than raising, so the
caller decides how a failed open maps onto its own error handling.
"""

from __future__ import annotations

from typing import Type, TypeVar

from loguru import logger

from kgrip.types import Command

D = TypeVar("D", bound="Device")


class Device:
    """Base class for all hardware devices.

    Attributes
    ----------
    required_config : dict[str, Type]
        Required configuration parameters and their types
    """

    required_config: dict[str, Type] = {}  # Required configuration keys

    def __init__(self, **config_kwargs):
        for key, value in config_kwargs.items():
            setattr(self, key, value)
        for key, value in self.required_config.items():
            if not hasattr(self, key):
                logger.error(
                    f"Device {self.__class__.__name__} missing required config key: "
                    + f"{key}"
                )
                raise ValueError(
                    f"Device {self.__class__.__name__} missing required config "
                    + f"key: {key}"
                )
            if not isinstance(getattr(self, key), value):
                logger.error(
                    f"Device {self.__class__.__name__} config key {key} "
                    + f"has wrong type: {type(getattr(self, key))} (expected {value})"
                )
                raise ValueError(
                    f"Device {self.__class__.__name__} config key {key} has "
                    + f"wrong type: {type(getattr(self, key))} (expected {value})"
                )

    def open(self) -> tuple[bool, str]:
        raise NotImplementedError()

    def close(self):
        raise NotImplementedError()

    def is_connected(self) -> bool:
        raise NotImplementedError()

    async def write_command(self, command: Command) -> None:
        raise NotImplementedError()

    def reset_input_buffer(self) -> None:
        raise NotImplementedError()

    async def read_exact(self, n: int, timeout: float) -> bytes:
        raise NotImplementedError()

    async def read_frame(self) -> bytes:
        raise NotImplementedError()

