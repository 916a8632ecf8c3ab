import pytest

from kgrip.util import find_serial_device
from kgrip.util.settings import load_config


@pytest.fixture(scope="session")
def grip_config():
    return load_config()


@pytest.fixture(scope="session")
def grip_path(grip_config):
    """Device path of the attached grip, skipping when none is plugged in."""
    path = find_serial_device(grip_config.vendor_id, grip_config.product_id)
    if path is None:
        pytest.skip(
            f"No grip attached ({grip_config.vendor_id}:{grip_config.product_id})"
        )
    return path
