# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Abstract message bus the reconciler talks to.

Every bus implementation must provide an awaitable method call and a
signal subscription whose handle can be polled without blocking.  Connect
and disconnect have no-op defaults for buses that need no setup.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

# Well-known addresses
DBUS_NAME = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"
DBUS_INTERFACE = "org.freedesktop.DBus"
DBUS_PROPERTIES = "org.freedesktop.DBus.Properties"

MPRIS_PREFIX = "org.mpris.MediaPlayer2."
MPRIS_PATH = "/org/mpris/MediaPlayer2"
MPRIS_PLAYER_INTERFACE = "org.mpris.MediaPlayer2.Player"

# Methods and signals
LIST_NAMES = "ListNames"
GET_ALL = "GetAll"
NAME_OWNER_CHANGED = "NameOwnerChanged"
PROPERTIES_CHANGED = "PropertiesChanged"


class NotificationHandle(ABC):
    """Queue of signal bodies for one subscription."""

    @abstractmethod
    def poll(self) -> Optional[list]:
        """Next queued signal body, or None if nothing is ready (or closed)."""

    @abstractmethod
    def close(self) -> None:
        """Release the subscription.  Idempotent; pending signals are dropped."""

    @property
    @abstractmethod
    def closed(self) -> bool: ...


class MessageBus(ABC):
    """Interface every bus transport must implement."""

    @abstractmethod
    async def call(self, destination: str, path: str, interface: str, member: str,
                   signature: str = "", body: Sequence = ()) -> list:
        """Call a remote method and return the reply body.

        Raises TransportError (BusTimeout, BusCallError, NotConnected) when
        the call cannot complete.
        """

    @abstractmethod
    async def subscribe(self, sender: str, path: str, interface: str,
                        member: str) -> NotificationHandle: ...

    # -- Optional: override in buses that hold a connection --

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    @property
    def description(self) -> str:
        return type(self).__name__
