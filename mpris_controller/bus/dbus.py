# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
D-Bus transport built on dbus-fast.

Signals are not consumed through proxy objects.  Each subscription adds a
match rule on the bus daemon and a message handler that queues matching
signal bodies, so the reconciler can poll them without awaiting.

Signals carry the sender's *unique* name (":1.42"), not the well-known name
a player publishes, so a subscription resolves the owner with GetNameOwner
and filters on it.  While a well-known name has live handles the bus also
watches NameOwnerChanged for it (arg0 match) and moves the handles to the
new owner on a handoff, so signals keep flowing without a re-subscribe.
"""

import asyncio
import logging
from collections import deque
from typing import Optional, Sequence

from dbus_fast import BusType, Message, MessageType
from dbus_fast.aio import MessageBus as _AioMessageBus

from ..lib.errors import BusCallError, BusTimeout, NotConnected, TransportError
from .base import (
    DBUS_INTERFACE,
    DBUS_NAME,
    DBUS_PATH,
    NAME_OWNER_CHANGED,
    MessageBus,
    NotificationHandle,
)

log = logging.getLogger(__name__)

_BUS_TYPES = {
    "session": BusType.SESSION,
    "system": BusType.SYSTEM,
}


def match_rule(sender: str, path: str, interface: str, member: str) -> str:
    return (f"type='signal',sender='{sender}',path='{path}',"
            f"interface='{interface}',member='{member}'")


def owner_rule(name: str) -> str:
    return (match_rule(DBUS_NAME, DBUS_PATH, DBUS_INTERFACE, NAME_OWNER_CHANGED)
            + f",arg0='{name}'")


class DBusNotificationHandle(NotificationHandle):
    def __init__(self, bus: "DBusMessageBus", rule: str, owner: str,
                 path: str, interface: str, member: str, sender: Optional[str] = None):
        self._bus = bus
        self.rule = rule
        self.owner = owner
        self.sender = sender if sender is not None else owner
        self.path = path
        self.interface = interface
        self.member = member
        self._queue: deque = deque()
        self._closed = False

    def matches(self, msg) -> bool:
        return (msg.message_type == MessageType.SIGNAL
                and msg.sender == self.owner
                and msg.path == self.path
                and msg.interface == self.interface
                and msg.member == self.member)

    def on_message(self, msg):
        if not self._closed and self.matches(msg):
            self._queue.append(list(msg.body))
        # never claim the message; other handles may want it too
        return None

    def poll(self) -> Optional[list]:
        if self._closed or not self._queue:
            return None
        return self._queue.popleft()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.clear()
        self._bus.release(self)

    @property
    def closed(self) -> bool:
        return self._closed


class DBusMessageBus(MessageBus):
    def __init__(self, bus_type: str = "session", call_timeout: float = 5.0):
        if bus_type not in _BUS_TYPES:
            raise ValueError(f"unknown bus type {bus_type!r}")
        self.bus_type = bus_type
        self.call_timeout = call_timeout
        self._bus: Optional[_AioMessageBus] = None
        self._cleanup_tasks: set = set()
        self._watched: dict = {}  # well-known name -> live handles

    @property
    def description(self) -> str:
        return f"dbus:{self.bus_type}"

    async def connect(self) -> None:
        if self._bus is not None:
            return
        try:
            self._bus = await _AioMessageBus(bus_type=_BUS_TYPES[self.bus_type]).connect()
        except Exception as e:
            raise TransportError(f"cannot connect to {self.bus_type} bus: {e}") from e
        log.info("Connected to %s bus as %s", self.bus_type, self._bus.unique_name)

    async def disconnect(self) -> None:
        if self._bus is None:
            return
        # pending RemoveMatch calls still need the connection
        if self._cleanup_tasks:
            await asyncio.gather(*self._cleanup_tasks, return_exceptions=True)
        bus, self._bus = self._bus, None
        self._watched.clear()
        bus.disconnect()
        log.info("Disconnected from %s bus", self.bus_type)

    async def call(self, destination: str, path: str, interface: str, member: str,
                   signature: str = "", body: Sequence = ()) -> list:
        if self._bus is None:
            raise NotConnected(f"{self.bus_type} bus")
        msg = Message(destination=destination, path=path, interface=interface,
                      member=member, signature=signature, body=list(body))
        try:
            reply = await asyncio.wait_for(self._bus.call(msg), timeout=self.call_timeout)
        except asyncio.TimeoutError:
            raise BusTimeout(destination, member, self.call_timeout) from None
        except (EOFError, OSError) as e:
            raise TransportError(f"{destination}.{member}: {e}") from e

        if reply is None:
            raise TransportError(f"{destination}.{member}: no reply")
        if reply.message_type == MessageType.ERROR:
            text = reply.body[0] if reply.body and isinstance(reply.body[0], str) else ""
            raise BusCallError(reply.error_name, text)
        return list(reply.body)

    async def subscribe(self, sender: str, path: str, interface: str,
                        member: str) -> NotificationHandle:
        if self._bus is None:
            raise NotConnected(f"{self.bus_type} bus")

        # The daemon sends its own signals under its well-known name
        owner = sender
        watch = sender != DBUS_NAME and not sender.startswith(":")
        rule = match_rule(sender, path, interface, member)
        try:
            if watch:
                await self._watch(sender)
                reply = await self.call(DBUS_NAME, DBUS_PATH, DBUS_INTERFACE,
                                        "GetNameOwner", "s", [sender])
                owner = reply[0]
            await self.call(DBUS_NAME, DBUS_PATH, DBUS_INTERFACE, "AddMatch", "s", [rule])
        except TransportError:
            if watch:
                self._unwatch(sender)
            raise

        handle = DBusNotificationHandle(self, rule, owner, path, interface, member,
                                        sender=sender)
        if watch:
            self._watched.setdefault(sender, set()).add(handle)
        self._bus.add_message_handler(handle.on_message)
        log.debug("Subscribed to %s.%s from %s (%s)", interface, member, sender, owner)
        return handle

    def release(self, handle: DBusNotificationHandle):
        """Drop a handle's message handler now and its match rule soon after."""
        if self._bus is None:
            return
        self._bus.remove_message_handler(handle.on_message)
        self._schedule_remove(handle.rule)
        handles = self._watched.get(handle.sender)
        if handles is not None:
            handles.discard(handle)
            self._unwatch(handle.sender)

    # ── Owner tracking ──

    async def _watch(self, name: str):
        """Follow NameOwnerChanged for *name* while handles on it are alive."""
        if name in self._watched:
            return
        if not self._watched:
            self._bus.add_message_handler(self._on_owner_changed)
        self._watched[name] = set()
        await self.call(DBUS_NAME, DBUS_PATH, DBUS_INTERFACE, "AddMatch", "s",
                        [owner_rule(name)])

    def _unwatch(self, name: str):
        if self._watched.get(name) or name not in self._watched:
            return
        del self._watched[name]
        if not self._watched and self._bus is not None:
            self._bus.remove_message_handler(self._on_owner_changed)
        self._schedule_remove(owner_rule(name))

    def _on_owner_changed(self, msg):
        if (msg.message_type != MessageType.SIGNAL or msg.sender != DBUS_NAME
                or msg.interface != DBUS_INTERFACE or msg.member != NAME_OWNER_CHANGED
                or len(msg.body) != 3):
            return None
        name, old_owner, new_owner = msg.body
        handles = self._watched.get(name)
        # a release (empty new owner) is left to the caller's own NameOwnerChanged feed
        if handles and new_owner:
            for handle in handles:
                handle.owner = new_owner
            log.info("%s moved from %s to %s", name, old_owner, new_owner)
        return None

    def _schedule_remove(self, rule: str):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # no loop, bus is going away anyway
        task = loop.create_task(self._remove_match(rule))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _remove_match(self, rule: str):
        try:
            await self.call(DBUS_NAME, DBUS_PATH, DBUS_INTERFACE, "RemoveMatch", "s", [rule])
        except TransportError as e:
            log.debug("RemoveMatch failed for %s: %s", rule, e)
