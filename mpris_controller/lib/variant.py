# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Tagged wire values.

Every value in an attribute map carries the D-Bus type signature it was
marshalled with.  The decoder switches on that signature instead of on the
Python type, because the Python type alone cannot tell an int32 from an
int64/uint64, or an object path from a string.

Anything exposing ``.signature`` and ``.value`` counts as a variant, so the
``dbus_fast.Variant`` objects returned by the bus can be decoded directly
and this class is only needed where values are built by hand (tests,
fixtures, ``--list`` output).
"""

from dataclasses import dataclass
from typing import Any

# D-Bus signature codes used by the MPRIS Player interface
BOOLEAN = "b"
INT32 = "i"
INT64 = "x"
UINT64 = "t"
DOUBLE = "d"
STRING = "s"
OBJECT_PATH = "o"
STRING_ARRAY = "as"
VARIANT_DICT = "a{sv}"

SIGNATURE_NAMES = {
    BOOLEAN: "boolean",
    INT32: "int32",
    INT64: "int64",
    UINT64: "uint64",
    DOUBLE: "double",
    STRING: "string",
    OBJECT_PATH: "object path",
    STRING_ARRAY: "string array",
    VARIANT_DICT: "dict",
}


@dataclass(frozen=True)
class Variant:
    signature: str
    value: Any


def is_variant(obj) -> bool:
    return hasattr(obj, "signature") and hasattr(obj, "value")


def describe(obj) -> str:
    """Human-readable wire type of *obj* for error messages."""
    if is_variant(obj):
        sig = obj.signature
        name = SIGNATURE_NAMES.get(sig)
        return f"{name} ({sig!r})" if name else repr(sig)
    return type(obj).__name__
