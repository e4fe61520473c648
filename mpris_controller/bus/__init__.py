# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Message bus transports.

The factory ``create_bus`` reads config.json and returns the configured
transport.  Reads from the "bus" section:

  type          – "session" (default) or "system"
  call_timeout  – seconds to wait for a method reply (default 5)
"""

import logging

from ..lib.config import cfg
from .base import MessageBus, NotificationHandle

log = logging.getLogger(__name__)

__all__ = [
    "MessageBus",
    "NotificationHandle",
    "create_bus",
]


def create_bus(bus_type: str | None = None) -> MessageBus:
    """Create the bus transport; *bus_type* overrides config when given."""
    # dbus-fast is only needed once a real bus is requested
    from .dbus import DBusMessageBus

    if bus_type is None:
        bus_type = cfg("bus", "type", default="session")
    bus_type = str(bus_type).lower()
    timeout = float(cfg("bus", "call_timeout", default=5.0))
    log.info("Bus transport: D-Bus %s bus (call timeout %gs)", bus_type, timeout)
    return DBusMessageBus(bus_type, call_timeout=timeout)
