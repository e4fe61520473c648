# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Exception hierarchy shared by the bus adapters, decoder and registry.

    MprisError
    ├── TransportError          bus unreachable, call failed or timed out
    │   ├── NotConnected
    │   ├── BusTimeout
    │   └── BusCallError        remote method returned an error reply
    ├── ReplyShapeError         method returned, body had the wrong shape
    ├── DecodeError             one attribute could not be decoded
    │   ├── MissingField
    │   ├── TypeMismatch
    │   ├── InvalidEnum
    │   └── InvalidEnumType     (both InvalidEnum and TypeMismatch)
    ├── RegistryError
    │   └── NotFound
    └── UnknownProperty         partial decode of an unrecognized key
"""


class MprisError(Exception):
    """Base class for everything raised by mpris_controller."""


# ── Transport ──

class TransportError(MprisError):
    """The bus could not deliver a call or its reply."""


class NotConnected(TransportError):
    def __init__(self, what: str = "bus"):
        super().__init__(f"{what} is not connected")


class BusTimeout(TransportError):
    def __init__(self, destination: str, member: str, timeout: float):
        super().__init__(f"{destination}.{member} timed out after {timeout:g}s")
        self.destination = destination
        self.member = member
        self.timeout = timeout


class BusCallError(TransportError):
    def __init__(self, error_name: str, message: str = ""):
        super().__init__(f"{error_name}: {message}" if message else error_name)
        self.error_name = error_name
        self.message = message


class ReplyShapeError(MprisError):
    """A call succeeded but the reply body is not what the method promises."""

    def __init__(self, member: str, expected: str, actual: str):
        super().__init__(f"{member} reply: expected {expected}, got {actual}")
        self.member = member
        self.expected = expected
        self.actual = actual


# ── Decoding ──

class DecodeError(MprisError):
    """An attribute map (or one value in it) could not be decoded."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class MissingField(DecodeError):
    def __init__(self, field: str):
        super().__init__(field, f"missing required field {field!r}")


class TypeMismatch(DecodeError):
    def __init__(self, field: str, expected: str, actual: str):
        super().__init__(field, f"{field!r}: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class InvalidEnum(DecodeError):
    def __init__(self, field: str, raw):
        super().__init__(field, f"{field!r}: invalid value {raw!r}")
        self.raw = raw


class InvalidEnumType(InvalidEnum, TypeMismatch):
    """An enumeration arrived as something other than a string."""

    def __init__(self, field: str, raw, actual: str):
        DecodeError.__init__(self, field, f"{field!r}: expected string enum, got {actual}")
        self.raw = raw
        self.expected = "string"
        self.actual = actual


class UnknownProperty(MprisError, KeyError):
    """Raised by partial decode for a property key it does not handle."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self):
        return f"unknown property {self.key!r}"


# ── Registry ──

class RegistryError(MprisError):
    pass


class NotFound(RegistryError):
    def __init__(self, name: str):
        super().__init__(f"no endpoint named {name!r}")
        self.name = name
