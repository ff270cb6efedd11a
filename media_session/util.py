"""Utility methods."""

import logging
import platform
import uuid
from pathlib import Path
from typing import Optional

_LOGGER = logging.getLogger(__name__)
_CACHED_DEVICE_ID: Optional[str] = None


def get_device_id() -> str:
    """
    Get a stable device identifier for the media server auth header.

    Prefers the systemd machine id so the id survives reboots and network
    changes, falling back to the MAC address from uuid.getnode().
    """
    global _CACHED_DEVICE_ID
    if _CACHED_DEVICE_ID:
        return _CACHED_DEVICE_ID

    for candidate in (Path("/etc/machine-id"), Path("/var/lib/dbus/machine-id")):
        try:
            machine_id = candidate.read_text().strip().lower()
        except OSError:
            continue
        if machine_id:
            _LOGGER.debug("Using machine id from %s", candidate)
            _CACHED_DEVICE_ID = machine_id
            return _CACHED_DEVICE_ID

    node = uuid.getnode()

    # Check if the multicast bit is set (indicates a random MAC)
    if (node >> 40) & 1:
        _LOGGER.warning("Generated device id is RANDOM. The server will see a new device after restart.")

    _CACHED_DEVICE_ID = f"{node:012x}"
    return _CACHED_DEVICE_ID


def get_device_name(configured: Optional[str] = None) -> str:
    return configured or platform.node() or "media-session"
