"""Shared fixtures: an in-memory message bus and MPRIS property builders."""

from collections import deque

import pytest

from mpris_controller.bus.base import (
    DBUS_NAME,
    GET_ALL,
    LIST_NAMES,
    MPRIS_PLAYER_INTERFACE,
    NAME_OWNER_CHANGED,
    PROPERTIES_CHANGED,
    MessageBus,
    NotificationHandle,
)
from mpris_controller.lib.errors import BusCallError, NotConnected
from mpris_controller.lib.variant import Variant

VLC = "org.mpris.MediaPlayer2.vlc"
SPOTIFY = "org.mpris.MediaPlayer2.spotify"
FIREFOX = "org.mpris.MediaPlayer2.firefox.instance_1_42"


def metadata_map(**overrides) -> dict:
    """A Metadata a{sv} map; pass key=None (with ':' spelled '__') to drop a key."""
    entries = {
        "mpris:trackid": Variant("o", "/org/mpris/MediaPlayer2/Track/1"),
        "xesam:title": Variant("s", "Windowlicker"),
        "xesam:url": Variant("s", "file:///music/windowlicker.flac"),
        "xesam:artist": Variant("as", ["Aphex Twin"]),
        "xesam:album": Variant("s", "Windowlicker EP"),
        "mpris:length": Variant("x", 367_000_000),
    }
    for key, value in overrides.items():
        key = key.replace("__", ":")
        if value is None:
            entries.pop(key, None)
        else:
            entries[key] = value
    return entries


def player_properties(**overrides) -> dict:
    """A GetAll reply for org.mpris.MediaPlayer2.Player; key=None drops a key."""
    props = {
        "CanControl": Variant("b", True),
        "CanGoNext": Variant("b", True),
        "CanGoPrevious": Variant("b", False),
        "CanPause": Variant("b", True),
        "CanPlay": Variant("b", True),
        "CanSeek": Variant("b", True),
        "PlaybackStatus": Variant("s", "Playing"),
        "Rate": Variant("d", 1.0),
        "Position": Variant("x", 12_000_000),
        "Metadata": Variant("a{sv}", metadata_map()),
    }
    for key, value in overrides.items():
        if value is None:
            props.pop(key, None)
        else:
            props[key] = value
    return props


class FakeHandle(NotificationHandle):
    def __init__(self, sender: str, member: str):
        self.sender = sender
        self.member = member
        self.queue = deque()
        self._closed = False

    def push(self, body):
        if not self._closed:
            self.queue.append(body)

    def poll(self):
        if self._closed or not self.queue:
            return None
        return self.queue.popleft()

    def close(self):
        self._closed = True
        self.queue.clear()

    @property
    def closed(self) -> bool:
        return self._closed


class FakeBus(MessageBus):
    """Bus double: players are property dicts, signals are pushed by hand."""

    def __init__(self):
        self.players: dict = {}
        self.other_names = [DBUS_NAME, ":1.1", "org.freedesktop.Notifications"]
        self.subscriptions: list = []
        self.calls: list = []
        self.call_failures: dict = {}       # destination -> exception for GetAll
        self.subscribe_failures: dict = {}  # sender -> exception
        self.connected = False
        self._owner_serial = 100

    async def connect(self):
        self.connected = True

    async def disconnect(self):
        self.connected = False

    async def call(self, destination, path, interface, member, signature="", body=()):
        self.calls.append((destination, member, tuple(body)))
        if member == LIST_NAMES:
            return [self.other_names + list(self.players)]
        if member == GET_ALL:
            if destination in self.call_failures:
                raise self.call_failures[destination]
            if destination not in self.players:
                raise BusCallError("org.freedesktop.DBus.Error.ServiceUnknown", destination)
            return [dict(self.players[destination])]
        raise BusCallError("org.freedesktop.DBus.Error.UnknownMethod", member)

    async def subscribe(self, sender, path, interface, member):
        if sender in self.subscribe_failures:
            raise self.subscribe_failures[sender]
        handle = FakeHandle(sender, member)
        self.subscriptions.append(handle)
        return handle

    # -- test helpers --

    def feed(self, sender: str, member: str) -> FakeHandle:
        for handle in reversed(self.subscriptions):
            if handle.sender == sender and handle.member == member:
                return handle
        raise NotConnected(f"{sender} {member} subscription")

    def owner_feed(self) -> FakeHandle:
        return self.feed(DBUS_NAME, NAME_OWNER_CHANGED)

    def player_feed(self, name: str) -> FakeHandle:
        return self.feed(name, PROPERTIES_CHANGED)

    def appear(self, name: str, properties: dict | None = None):
        self.players[name] = properties if properties is not None else player_properties()
        self._owner_serial += 1
        self.owner_feed().push([name, "", f":1.{self._owner_serial}"])

    def vanish(self, name: str):
        self.players.pop(name, None)
        self.owner_feed().push([name, ":1.99", ""])

    def change(self, name: str, changed: dict, invalidated=(),
               interface: str = MPRIS_PLAYER_INTERFACE):
        self.player_feed(name).push([interface, changed, list(invalidated)])


@pytest.fixture
def bus():
    return FakeBus()


@pytest.fixture
def props():
    return player_properties()
