# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""Domain events handed to the caller, one per applied registry change."""

from dataclasses import dataclass

from .model import PlayerField


@dataclass(frozen=True)
class EndpointAppeared:
    name: str

    def to_dict(self) -> dict:
        return {"event": "appeared", "name": self.name}


@dataclass(frozen=True)
class EndpointRemoved:
    name: str

    def to_dict(self) -> dict:
        return {"event": "removed", "name": self.name}


@dataclass(frozen=True)
class EndpointUpdated:
    name: str
    field: PlayerField

    def to_dict(self) -> dict:
        return {"event": "updated", "name": self.name, "field": self.field.value}


@dataclass(frozen=True)
class EndpointUnavailable:
    """Discovery of *name* failed; it stays unregistered until the next attempt."""
    name: str
    reason: str

    def to_dict(self) -> dict:
        return {"event": "unavailable", "name": self.name, "reason": self.reason}
