# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Reconciler — keeps the registry in step with the bus.

Two feeds are consumed:

  NameOwnerChanged (bus-wide)      (name, old_owner, new_owner)
      ""  -> ":1.x"   player appeared     subscribe + GetAll -> discover
                                          (skipped if already tracked)
      ":1.x" -> ""    player disappeared  remove
      anything else                       ignored

  PropertiesChanged (per player)   (interface, changed, invalidated)
      every recognized key in ``changed`` is decoded on its own and patched
      into the snapshot; a key that fails to decode is logged and skipped

Every applied registry mutation queues exactly one domain event.  Events
leave through a single FIFO, so the order callers see is the order the
registry changed in.

Discovery is all-or-nothing: the PropertiesChanged subscription is taken
out *before* GetAll so no change slips between the two, and it is closed
again if the fetch or decode fails.  A failed discovery queues
EndpointUnavailable and leaves nothing behind in the registry.
"""

import logging
from collections import deque
from collections.abc import Mapping
from typing import Optional

from ..bus.base import (
    DBUS_INTERFACE,
    DBUS_NAME,
    DBUS_PATH,
    DBUS_PROPERTIES,
    GET_ALL,
    LIST_NAMES,
    MPRIS_PATH,
    MPRIS_PLAYER_INTERFACE,
    MPRIS_PREFIX,
    NAME_OWNER_CHANGED,
    PROPERTIES_CHANGED,
    MessageBus,
    NotificationHandle,
)
from .decoder import changed_fields, decode_capabilities, decode_property
from .errors import DecodeError, NotFound, ReplyShapeError, TransportError
from .events import EndpointAppeared, EndpointRemoved, EndpointUnavailable, EndpointUpdated
from .model import CapabilitySnapshot, PlayerField
from .registry import Registry

log = logging.getLogger(__name__)

_KNOWN_KEYS = {field.value for field in PlayerField}


def is_player_name(name) -> bool:
    return isinstance(name, str) and name.startswith(MPRIS_PREFIX)


class Reconciler:
    def __init__(self, bus: MessageBus, registry: Optional[Registry] = None):
        self.bus = bus
        self.registry = registry if registry is not None else Registry()
        self._owner_feed: Optional[NotificationHandle] = None
        self._events: deque = deque()
        self._cursor = 0  # round-robin start for property polling

    # ── Event queue ──

    def _emit(self, event):
        self._events.append(event)

    def next_event(self):
        """Pop the oldest queued domain event, or None."""
        return self._events.popleft() if self._events else None

    @property
    def pending(self) -> int:
        return len(self._events)

    # ── Bus calls ──

    async def list_players(self) -> list:
        """ListNames filtered to MPRIS players.  TransportError propagates."""
        body = await self.bus.call(DBUS_NAME, DBUS_PATH, DBUS_INTERFACE, LIST_NAMES)
        if not body or not isinstance(body[0], (list, tuple)):
            raise ReplyShapeError(LIST_NAMES, "array of strings", repr(body)[:80])
        return [name for name in body[0] if is_player_name(name)]

    async def fetch(self, name: str) -> CapabilitySnapshot:
        """GetAll on the player interface of *name*, fully decoded."""
        body = await self.bus.call(name, MPRIS_PATH, DBUS_PROPERTIES, GET_ALL,
                                   "s", [MPRIS_PLAYER_INTERFACE])
        if not body or not isinstance(body[0], Mapping):
            raise ReplyShapeError(GET_ALL, "dict of variants", repr(body)[:80])
        return decode_capabilities(body[0])

    # ── Lifecycle ──

    async def bootstrap(self):
        """Subscribe to NameOwnerChanged, then discover every player on the bus."""
        if self._owner_feed is None:
            self._owner_feed = await self.bus.subscribe(
                DBUS_NAME, DBUS_PATH, DBUS_INTERFACE, NAME_OWNER_CHANGED)
        names = await self.list_players()
        log.info("Found %d MPRIS player(s) on %s", len(names), self.bus.description)
        for name in names:
            await self.discover(name)

    async def discover(self, name: str) -> bool:
        """Subscribe, fetch and register *name*.  Returns True on success."""
        try:
            handle = await self.bus.subscribe(name, MPRIS_PATH, DBUS_PROPERTIES,
                                              PROPERTIES_CHANGED)
        except TransportError as e:
            return self._unavailable(name, f"subscribe failed: {e}")

        try:
            snapshot = await self.fetch(name)
        except (TransportError, ReplyShapeError) as e:
            handle.close()
            return self._unavailable(name, f"fetch failed: {e}")
        except DecodeError as e:
            handle.close()
            return self._unavailable(name, f"invalid properties: {e}")

        self.registry.discover(name, snapshot, handle)
        log.info("Player appeared: %s (%s)", name, snapshot.playback_status.value)
        self._emit(EndpointAppeared(name))
        return True

    def _unavailable(self, name: str, reason: str) -> bool:
        log.warning("Player %s unavailable: %s", name, reason)
        self._emit(EndpointUnavailable(name, reason))
        return False

    def remove(self, name: str) -> bool:
        if not self.registry.remove(name):
            log.debug("Player %s vanished but was never registered", name)
            return False
        log.info("Player removed: %s", name)
        self._emit(EndpointRemoved(name))
        return True

    async def rescan(self):
        """Re-list the bus: register players we missed, drop ones that are gone."""
        names = await self.list_players()
        listed = set(names)
        for name in self.registry.names():
            if name not in listed:
                self.remove(name)
        for name in names:
            if name not in self.registry:
                await self.discover(name)

    async def refresh(self, name: str) -> bool:
        """Re-fetch *name* in full and replace its snapshot.

        Queues EndpointUpdated for each field whose value changed and clears
        the record's invalidated set.  Returns False when the player is not
        registered or the fetch fails; the old snapshot is kept in that case.
        """
        record = self.registry.record(name)
        if record is None:
            return False
        try:
            snapshot = await self.fetch(name)
        except (TransportError, ReplyShapeError, DecodeError) as e:
            log.warning("Refresh of %s failed, keeping last snapshot: %s", name, e)
            return False

        old = record.snapshot
        try:
            self.registry.apply_update(name, lambda _old: snapshot)
        except NotFound:
            log.debug("Player %s removed during refresh", name)
            return False
        record.invalidated.clear()
        for field in changed_fields(old, snapshot):
            self._emit(EndpointUpdated(name, field))
        return True

    def close(self):
        """Release the ownership feed and every player subscription."""
        if self._owner_feed is not None:
            self._owner_feed.close()
            self._owner_feed = None
        self.registry.close()
        self._events.clear()

    # ── Notifications ──

    async def handle_owner_changed(self, body) -> int:
        """Apply one NameOwnerChanged body.  Returns the number of events queued."""
        before = len(self._events)
        if (not isinstance(body, (list, tuple)) or len(body) != 3
                or not all(isinstance(arg, str) for arg in body)):
            log.warning("Ignoring malformed NameOwnerChanged: %r", body)
            return 0

        name, old_owner, new_owner = body
        if not is_player_name(name):
            return 0

        if not old_owner and new_owner:
            record = self.registry.record(name)
            if record is not None and not record.handle.closed:
                # already picked up by ListNames during bootstrap or rescan
                log.debug("Player %s already tracked, ignoring appearance", name)
            else:
                await self.discover(name)
        elif old_owner and not new_owner:
            self.remove(name)
        else:
            log.debug("Owner of %s changed %r -> %r, ignoring", name, old_owner, new_owner)
        return len(self._events) - before

    def handle_properties_changed(self, name: str, body) -> int:
        """Apply one PropertiesChanged body for *name*.  Returns events queued."""
        if (not isinstance(body, (list, tuple)) or len(body) < 2
                or not isinstance(body[1], Mapping)):
            log.warning("Ignoring malformed PropertiesChanged from %s: %r", name, body)
            return 0

        interface, changed = body[0], body[1]
        invalidated = body[2] if len(body) > 2 and isinstance(body[2], (list, tuple)) else ()
        if interface != MPRIS_PLAYER_INTERFACE:
            log.debug("Ignoring PropertiesChanged on %s from %s", interface, name)
            return 0

        record = self.registry.record(name)
        if record is None:
            log.debug("PropertiesChanged for unregistered %s, ignoring", name)
            return 0
        if invalidated:
            record.invalidated.update(key for key in invalidated if isinstance(key, str))
            log.debug("%s invalidated %s", name, sorted(record.invalidated))

        emitted = 0
        for field in PlayerField:
            key = field.value
            if key not in changed:
                continue
            value = changed[key]
            try:
                self.registry.apply_update(
                    name, lambda snap, key=key, value=value: decode_property(key, value, snap))
            except DecodeError as e:
                log.warning("Ignoring %s update from %s: %s", key, name, e)
                continue
            except NotFound:
                log.debug("Player %s removed while applying %s", name, key)
                break
            record.invalidated.discard(key)
            self._emit(EndpointUpdated(name, field))
            emitted += 1

        unknown = [key for key in changed if key not in _KNOWN_KEYS]
        if unknown:
            log.debug("Ignoring unknown properties from %s: %s", name, unknown)
        return emitted

    # ── Polling ──

    async def poll_ownership(self) -> bool:
        """Drain NameOwnerChanged until one notification queues events."""
        if self._owner_feed is None:
            return False
        while True:
            body = self._owner_feed.poll()
            if body is None:
                return False
            if await self.handle_owner_changed(body):
                return True

    def poll_properties(self) -> bool:
        """Drain player feeds, round-robin, until one notification queues events."""
        names = self.registry.names()
        count = len(names)
        for offset in range(count):
            index = (self._cursor + offset) % count
            name = names[index]
            record = self.registry.record(name)
            if record is None:
                continue
            while True:
                body = record.handle.poll()
                if body is None:
                    break
                if self.handle_properties_changed(name, body):
                    self._cursor = (index + 1) % count
                    return True
        return False
