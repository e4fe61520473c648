# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
EventLoop — drives a Reconciler one cooperative step at a time.

Each ``step()`` returns at most one domain event:

  1. an event already queued by an earlier step, else
  2. the result of the next NameOwnerChanged that changes something, else
  3. the result of the next PropertiesChanged that changes something, else
  4. None ("nothing this tick").

Ownership changes win over property changes within a step.  Anything a
notification produces beyond the first event waits in the reconciler's
queue for the following steps, which keeps event order equal to mutation
order.

Usage:
    loop = EventLoop(create_bus())
    await loop.start()
    async for event in loop.events():
        ...
    await loop.close()
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from ..bus.base import MessageBus
from .reconciler import Reconciler
from .registry import Registry

log = logging.getLogger(__name__)

POLL_INTERVAL = 0.05  # seconds to idle when a step yields nothing


class EventLoop:
    def __init__(self, bus: MessageBus, poll_interval: float = POLL_INTERVAL,
                 reconciler: Optional[Reconciler] = None):
        self.bus = bus
        self.poll_interval = poll_interval
        self.reconciler = reconciler if reconciler is not None else Reconciler(bus)
        self.running = False

    @property
    def registry(self) -> Registry:
        return self.reconciler.registry

    async def start(self):
        """Connect the bus and build the registry from a full enumeration."""
        await self.bus.connect()
        await self.reconciler.bootstrap()
        self.running = True

    async def step(self):
        """Run one poll step and return the next domain event, or None."""
        r = self.reconciler
        if not r.pending and not await r.poll_ownership():
            r.poll_properties()
        return r.next_event()

    async def events(self) -> AsyncIterator:
        """Yield domain events until ``close()``; idles between empty steps."""
        while self.running:
            event = await self.step()
            if event is None:
                await asyncio.sleep(self.poll_interval)
                continue
            log.debug("Event: %s", event)
            yield event

    async def rescan(self):
        await self.reconciler.rescan()

    async def refresh(self, name: str) -> bool:
        return await self.reconciler.refresh(name)

    async def close(self):
        """Tear down subscriptions and disconnect.  Safe to call twice."""
        self.running = False
        self.reconciler.close()
        await self.bus.disconnect()
