"""
Instrument access: the `Device` contract, the K-Force Grip serial
implementation, its wire codec and an in-memory mock.
"""

from .codec import (
    decode_coefficient,
    decode_command,
    decode_sample,
    encode,
    encode_coefficient,
    encode_sample,
)
from .device import Device
from .kforcegrip import KForceGrip
from .mock import MOCK_PORT, MockKForceGrip

__all__ = [
    "Device",
    "KForceGrip",
    "MockKForceGrip",
    "MOCK_PORT",
    "encode",
    "decode_command",
    "decode_coefficient",
    "encode_coefficient",
    "decode_sample",
    "encode_sample",
]
