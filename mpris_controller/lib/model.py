# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Typed model of one MPRIS player: its control surface plus now-playing track.

Snapshots are frozen.  An update never mutates a snapshot, it produces a new
one with ``dataclasses.replace`` so views handed out by the registry stay
valid until the next update supersedes them.
"""

import enum
from dataclasses import asdict, dataclass
from typing import Optional, Tuple


class PlaybackStatus(enum.Enum):
    STOPPED = "Stopped"
    PAUSED = "Paused"
    PLAYING = "Playing"


class LoopStatus(enum.Enum):
    NONE = "None"
    PLAYLIST = "Playlist"
    TRACK = "Track"


class PlayerField(enum.Enum):
    """Properties of org.mpris.MediaPlayer2.Player, keyed by wire name.

    Declaration order is the order changed properties are applied within one
    PropertiesChanged signal.  The first three are the ones every player
    reports; the rest follow in snapshot order.
    """
    PLAYBACK_STATUS = "PlaybackStatus"
    METADATA = "Metadata"
    CAN_GO_PREVIOUS = "CanGoPrevious"
    CAN_CONTROL = "CanControl"
    CAN_GO_NEXT = "CanGoNext"
    CAN_PAUSE = "CanPause"
    CAN_PLAY = "CanPlay"
    CAN_SEEK = "CanSeek"
    LOOP_STATUS = "LoopStatus"
    RATE = "Rate"
    MIN_RATE = "MinimumRate"
    MAX_RATE = "MaximumRate"
    POSITION = "Position"
    SHUFFLE = "Shuffle"
    VOLUME = "Volume"


@dataclass(frozen=True)
class TrackMetadata:
    """Now-playing track.  Replaced as a whole whenever Metadata changes."""
    track_id: str
    title: str
    url: str
    artists: Tuple[str, ...]
    album: Optional[str] = None
    art_url: Optional[str] = None
    length: Optional[int] = None        # microseconds; some players only know it once playing
    track_number: Optional[int] = None
    disc_number: Optional[int] = None
    auto_rating: Optional[float] = None
    album_artists: Optional[Tuple[str, ...]] = None  # Spotify and a few others

    def to_dict(self) -> dict:
        data = asdict(self)
        data["artists"] = list(self.artists)
        if self.album_artists is not None:
            data["album_artists"] = list(self.album_artists)
        return data


@dataclass(frozen=True)
class CapabilitySnapshot:
    can_control: bool
    can_go_next: bool
    can_go_previous: bool
    can_pause: bool
    can_play: bool
    can_seek: bool
    rate: float
    position: int                       # microseconds
    metadata: TrackMetadata
    playback_status: PlaybackStatus = PlaybackStatus.STOPPED
    loop_status: Optional[LoopStatus] = None
    min_rate: Optional[float] = None
    max_rate: Optional[float] = None
    shuffle: Optional[bool] = None
    volume: Optional[float] = None

    def to_dict(self) -> dict:
        """JSON-ready representation (enums as their wire strings)."""
        return {
            "can_control": self.can_control,
            "can_go_next": self.can_go_next,
            "can_go_previous": self.can_go_previous,
            "can_pause": self.can_pause,
            "can_play": self.can_play,
            "can_seek": self.can_seek,
            "playback_status": self.playback_status.value,
            "loop_status": self.loop_status.value if self.loop_status else None,
            "rate": self.rate,
            "min_rate": self.min_rate,
            "max_rate": self.max_rate,
            "position": self.position,
            "shuffle": self.shuffle,
            "volume": self.volume,
            "metadata": self.metadata.to_dict(),
        }
