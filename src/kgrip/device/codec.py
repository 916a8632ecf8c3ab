"""Wire codec for the K-Force Grip.

Commands are single bytes with no framing. The instrument answers
`GET_COEFFICIENT` with six ASCII digits (the coefficient times 10**6) and,
while sampling, streams 11-byte packets::

    FF FF FE 0D AC 00 00 00 00 00 40
             ^^^^^ magnitude, big-endian -> 0x0DAC = 3500

Bytes other than 3 and 4 are reserved and ignored.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from kgrip.types import (
    COEFFICIENT_LENGTH,
    COEFFICIENT_SCALE,
    FRAME_LENGTH,
    Command,
    MalformedCoefficient,
    MalformedPacket,
)


def encode(command: Command) -> bytes:
    return bytes([command.value])


def decode_command(data: bytes) -> Command:
    """Inverse of `encode`. Raises ValueError for unknown bytes."""
    if len(data) != 1:
        raise ValueError(f"Commands are one byte long, got {len(data)}")
    return Command(data[0])


def decode_coefficient(data: bytes | Sequence[int]) -> Decimal:
    """Parse the 6 ASCII digit coefficient response, e.g. b"000123" -> 0.000123."""
    raw = bytes(data)
    if len(raw) != COEFFICIENT_LENGTH:
        raise MalformedCoefficient(
            f"Coefficient response must be {COEFFICIENT_LENGTH} bytes, got {len(raw)}"
        )
    if not all(0x30 <= b <= 0x39 for b in raw):
        raise MalformedCoefficient(f"Coefficient response is not ASCII digits: {raw!r}")
    return Decimal(int(raw.decode("ascii"))).scaleb(-COEFFICIENT_SCALE)


def encode_coefficient(coefficient: Decimal) -> bytes:
    """Digits sent along with `SET_COEFFICIENT` (and returned by the device)."""
    scaled = int(coefficient.scaleb(COEFFICIENT_SCALE))
    if not 0 <= scaled < 10**COEFFICIENT_LENGTH:
        raise ValueError(f"Coefficient {coefficient} out of range")
    return f"{scaled:0{COEFFICIENT_LENGTH}d}".encode("ascii")


def decode_sample(data: bytes | Sequence[int]) -> int:
    """Extract the unsigned 16-bit magnitude from one sample packet."""
    if len(data) < FRAME_LENGTH:
        raise MalformedPacket(
            f"Sample packet must be {FRAME_LENGTH} bytes, got {len(data)}"
        )
    return (data[3] << 8) | data[4]


def encode_sample(value: int) -> bytes:
    """Build a sample packet carrying `value`, laid out like the device's."""
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"Sample magnitude {value} does not fit 16 bits")
    return bytes([0xFF, 0xFF, 0xFE, value >> 8, value & 0xFF, 0, 0, 0, 0, 0, 0x40])
