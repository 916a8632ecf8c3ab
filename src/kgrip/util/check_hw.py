from typing import Optional

import serial.tools.list_ports
from loguru import logger


def get_hw_ports():
    port_dict = dict()
    for p in list(serial.tools.list_ports.comports()):
        # Only include if there's actual hardware info
        if p.hwid != "n/a":
            port_dict[p.device] = tuple(p)[1:]
    return port_dict


def normalise_usb_id(usb_id: str | int | None) -> Optional[int]:
    """Convert a vendor/product identifier to an int.

    config.json carries these the way the OS reports them, i.e. as hex strings
    ("0403"), but ints are accepted too.
    """
    if usb_id is None or usb_id == "":
        return None
    if isinstance(usb_id, int):
        return usb_id
    usb_id = usb_id.strip().lower()
    if usb_id.startswith("0x"):
        usb_id = usb_id[2:]
    return int(usb_id, 16)


def list_usb_devices() -> list[dict]:
    """List serial ports that expose USB vendor/product identifiers."""
    devices = []
    for p in serial.tools.list_ports.comports():
        if p.vid is None or p.pid is None:
            continue
        devices.append(
            {
                "path": p.device,
                "vendor_id": f"{p.vid:04x}",
                "product_id": f"{p.pid:04x}",
                "description": p.description,
                "serial_number": p.serial_number,
            }
        )
    return devices


def find_serial_device(
    vendor_id: str | int | None, product_id: str | int | None
) -> Optional[str]:
    """Return the device path of the first port matching vendor/product id.

    Returns None when nothing matches. Errors raised by the OS enumeration are
    propagated to the caller.
    """
    vid = normalise_usb_id(vendor_id)
    pid = normalise_usb_id(product_id)
    for p in serial.tools.list_ports.comports():
        if p.vid == vid and p.pid == pid:
            logger.debug("Matched {:04x}:{:04x} on {}", vid, pid, p.device)
            return p.device
    return None
