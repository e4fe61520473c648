# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Registry of tracked MPRIS players, keyed by bus name.

The registry is the only owner of EndpointRecords.  A record holds the
player's current snapshot together with its PropertiesChanged subscription,
and the two live and die together: replacing or removing a record closes
its handle.

Not thread-safe.  It is mutated from one reconciliation task only.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..bus.base import NotificationHandle
from .errors import NotFound
from .model import CapabilitySnapshot

log = logging.getLogger(__name__)


class EndpointRecord:
    """One tracked player: snapshot + live property-change subscription."""

    def __init__(self, name: str, snapshot: CapabilitySnapshot, handle: NotificationHandle):
        self.name = name
        self.snapshot = snapshot
        self.handle = handle
        # Properties the player invalidated without sending values; they are
        # only re-read by the next full refresh.
        self.invalidated: set[str] = set()

    def close(self):
        self.handle.close()

    @property
    def closed(self) -> bool:
        return self.handle.closed

    def __repr__(self):
        return f"EndpointRecord({self.name!r}, {self.snapshot.playback_status.value})"


class Registry:
    def __init__(self):
        self._records: Dict[str, EndpointRecord] = {}

    def discover(self, name: str, snapshot: CapabilitySnapshot, handle: NotificationHandle):
        """Insert a record, replacing (and closing) any stale one of the same name."""
        stale = self._records.pop(name, None)
        if stale is not None:
            log.info("Replacing stale record for %s", name)
            stale.close()
        self._records[name] = EndpointRecord(name, snapshot, handle)

    def remove(self, name: str) -> bool:
        record = self._records.pop(name, None)
        if record is None:
            return False
        record.close()
        return True

    def apply_update(self, name: str,
                     mutator: Callable[[CapabilitySnapshot], CapabilitySnapshot]):
        """Replace the snapshot of *name* with ``mutator(snapshot)``.

        Raises NotFound when *name* is not registered.  If *mutator* raises,
        the stored snapshot is left as it was.
        """
        record = self._records.get(name)
        if record is None:
            raise NotFound(name)
        record.snapshot = mutator(record.snapshot)

    def get(self, name: str) -> Optional[CapabilitySnapshot]:
        record = self._records.get(name)
        return record.snapshot if record else None

    def list(self) -> List[Tuple[str, CapabilitySnapshot]]:
        return [(name, record.snapshot) for name, record in self._records.items()]

    def record(self, name: str) -> Optional[EndpointRecord]:
        return self._records.get(name)

    def names(self) -> List[str]:
        return list(self._records)

    def close(self):
        """Close every record.  Safe to call more than once."""
        for record in self._records.values():
            record.close()
        self._records.clear()

    def __contains__(self, name) -> bool:
        return name in self._records

    def __len__(self) -> int:
        return len(self._records)
