# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Attribute decoder — untyped MPRIS property maps to typed snapshots.

Players disagree about almost everything beyond the bare minimum the MPRIS
interface requires, so every field goes through an explicit converter that knows
which wire signatures it accepts:

    Position / mpris:length   int64 ('x') or uint64 ('t'), same value either way
    mpris:trackid             object path ('o') or string ('s'), kept verbatim
    PlaybackStatus/LoopStatus string from a fixed vocabulary
    xesam:albumArtist & co.   optional, but never coerced when present

Full decode (``decode_capabilities``) is all-or-nothing: the first required
field that is missing or malformed raises and no snapshot is produced.
Partial decode (``decode_property``) changes exactly one field of an
existing snapshot and leaves the rest untouched.

All functions here are pure; nothing is logged and nothing is cached.
"""

from collections.abc import Mapping
from dataclasses import replace

from .errors import InvalidEnum, InvalidEnumType, MissingField, TypeMismatch, UnknownProperty
from .model import CapabilitySnapshot, LoopStatus, PlaybackStatus, PlayerField, TrackMetadata
from .variant import (
    BOOLEAN,
    DOUBLE,
    INT32,
    INT64,
    OBJECT_PATH,
    STRING,
    STRING_ARRAY,
    UINT64,
    VARIANT_DICT,
    describe,
    is_variant,
)

_INT32_MIN = -(2 ** 31)
_INT32_MAX = 2 ** 31 - 1
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1
_UINT64_MAX = 2 ** 64 - 1


# ---------------------------------------------------------------------------
# Scalar converters: (key, wire value) -> Python value
# ---------------------------------------------------------------------------

def _unpack(key: str, value, signatures: tuple, expected: str, pytype):
    if not is_variant(value) or value.signature not in signatures:
        raise TypeMismatch(key, expected, describe(value))
    raw = value.value
    # bool is an int subclass; never let one stand in for the other
    if not isinstance(raw, pytype) or (pytype is not bool and isinstance(raw, bool)):
        raise TypeMismatch(key, expected, f"{describe(value)} holding {type(raw).__name__}")
    return raw


def _boolean(key, value) -> bool:
    return _unpack(key, value, (BOOLEAN,), "boolean", bool)


def _double(key, value) -> float:
    return float(_unpack(key, value, (DOUBLE,), "double", (float, int)))


def _string(key, value) -> str:
    return _unpack(key, value, (STRING,), "string", str)


def _track_id(key, value) -> str:
    return _unpack(key, value, (OBJECT_PATH, STRING), "object path or string", str)


def _int32(key, value) -> int:
    raw = _unpack(key, value, (INT32,), "int32", int)
    if not _INT32_MIN <= raw <= _INT32_MAX:
        raise TypeMismatch(key, "int32", f"out-of-range integer {raw}")
    return raw


def _unsigned64(key, value) -> int:
    """int64 and uint64 both decode; the result is always in uint64 range.

    A signed value is reinterpreted as its two's-complement uint64, so -1
    becomes 2**64 - 1 rather than failing the whole decode.
    """
    raw = _unpack(key, value, (INT64, UINT64), "int64 or uint64", int)
    if value.signature == INT64:
        if not _INT64_MIN <= raw <= _INT64_MAX:
            raise TypeMismatch(key, "int64", f"out-of-range integer {raw}")
        return raw & _UINT64_MAX
    if not 0 <= raw <= _UINT64_MAX:
        raise TypeMismatch(key, "uint64", f"out-of-range integer {raw}")
    return raw


def _string_array(key, value) -> tuple:
    items = _unpack(key, value, (STRING_ARRAY,), "string array", (list, tuple))
    for item in items:
        if not isinstance(item, str):
            raise TypeMismatch(key, "string array", f"array holding {type(item).__name__}")
    return tuple(items)


def _enum(enum_cls):
    def convert(key, value):
        if not is_variant(value):
            raise InvalidEnumType(key, value, describe(value))
        raw = value.value
        if value.signature != STRING or not isinstance(raw, str):
            raise InvalidEnumType(key, raw, describe(value))
        try:
            return enum_cls(raw)
        except ValueError:
            raise InvalidEnum(key, raw) from None
    return convert


# ---------------------------------------------------------------------------
# Metadata (the nested a{sv} map)
# ---------------------------------------------------------------------------

# (wire key, attribute, converter, required)
_METADATA_FIELDS = (
    ("mpris:trackid", "track_id", _track_id, True),
    ("xesam:title", "title", _string, True),
    ("xesam:url", "url", _string, True),
    # players may omit the album but never the artist list
    ("xesam:artist", "artists", _string_array, True),
    ("xesam:album", "album", _string, False),
    ("mpris:artUrl", "art_url", _string, False),
    # browsers tend to send length only after playback starts
    ("mpris:length", "length", _unsigned64, False),
    ("xesam:trackNumber", "track_number", _int32, False),
    ("xesam:discNumber", "disc_number", _int32, False),
    ("xesam:autoRating", "auto_rating", _double, False),
    ("xesam:albumArtist", "album_artists", _string_array, False),
)


def decode_metadata(value, key: str = PlayerField.METADATA.value) -> TrackMetadata:
    """Decode a Metadata variant (``a{sv}``) into a TrackMetadata.

    Non-string keys inside the map are ignored, as are keys this model
    does not track (``xesam:genre``, ``xesam:comment`` ...).
    """
    entries = _unpack(key, value, (VARIANT_DICT,), "dict of variants", Mapping)
    entries = {k: v for k, v in entries.items() if isinstance(k, str)}

    fields = {}
    for wire_key, attr, convert, required in _METADATA_FIELDS:
        if wire_key not in entries:
            if required:
                raise MissingField(wire_key)
            continue
        fields[attr] = convert(wire_key, entries[wire_key])
    return TrackMetadata(**fields)


# ---------------------------------------------------------------------------
# Player properties
# ---------------------------------------------------------------------------

def _metadata(key, value) -> TrackMetadata:
    return decode_metadata(value, key)


# PlayerField -> (snapshot attribute, converter, required)
PROPERTIES = {
    PlayerField.PLAYBACK_STATUS: ("playback_status", _enum(PlaybackStatus), True),
    PlayerField.METADATA: ("metadata", _metadata, True),
    PlayerField.CAN_GO_PREVIOUS: ("can_go_previous", _boolean, True),
    PlayerField.CAN_CONTROL: ("can_control", _boolean, True),
    PlayerField.CAN_GO_NEXT: ("can_go_next", _boolean, True),
    PlayerField.CAN_PAUSE: ("can_pause", _boolean, True),
    PlayerField.CAN_PLAY: ("can_play", _boolean, True),
    PlayerField.CAN_SEEK: ("can_seek", _boolean, True),
    PlayerField.LOOP_STATUS: ("loop_status", _enum(LoopStatus), False),
    PlayerField.RATE: ("rate", _double, True),
    PlayerField.MIN_RATE: ("min_rate", _double, False),
    PlayerField.MAX_RATE: ("max_rate", _double, False),
    PlayerField.POSITION: ("position", _unsigned64, True),
    PlayerField.SHUFFLE: ("shuffle", _boolean, False),
    PlayerField.VOLUME: ("volume", _double, False),
}


def decode_capabilities(attributes: Mapping) -> CapabilitySnapshot:
    """Decode a full GetAll reply for org.mpris.MediaPlayer2.Player.

    Raises MissingField / TypeMismatch / InvalidEnum for the first field that
    fails.  Optional properties the player does not expose stay None.
    """
    fields = {}
    for field, (attr, convert, required) in PROPERTIES.items():
        key = field.value
        if key not in attributes:
            if required:
                raise MissingField(key)
            continue
        fields[attr] = convert(key, attributes[key])
    return CapabilitySnapshot(**fields)


def field_for(key: str) -> PlayerField:
    try:
        return PlayerField(key)
    except ValueError:
        raise UnknownProperty(key) from None


def decode_property(key: str, value, snapshot: CapabilitySnapshot) -> CapabilitySnapshot:
    """Return *snapshot* with the single property *key* replaced by *value*.

    Raises UnknownProperty for keys outside the Player interface and a
    DecodeError when *value* does not decode; *snapshot* itself is never
    modified.
    """
    attr, convert, _required = PROPERTIES[field_for(key)]
    return replace(snapshot, **{attr: convert(key, value)})


def changed_fields(old: CapabilitySnapshot, new: CapabilitySnapshot) -> list:
    """PlayerFields whose value differs between two snapshots, in check order."""
    return [
        field for field, (attr, _convert, _required) in PROPERTIES.items()
        if getattr(old, attr) != getattr(new, attr)
    ]
