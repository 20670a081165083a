import json
import os

from card_url import DEFAULT_CARD_HOST
from payload import TAG_CAPACITY

DEFAULT_CONFIG = {
    "card_host": DEFAULT_CARD_HOST,
    "nfc_mode": "mock",
    "nfc_device": "usb",
    "mock_capacity": TAG_CAPACITY[215],
    "record_overhead": None,
}


def load_config(path):
    """Read config.json over the defaults. A missing file gives the defaults."""
    config = dict(DEFAULT_CONFIG)
    if os.path.exists(path):
        with open(path) as f:
            config.update(json.load(f))
    return config
