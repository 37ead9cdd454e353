"""Exception types raised by the ibt decoder."""

from __future__ import annotations


class IbtError(Exception):
    """Base class for all ibtelem errors."""


class MalformedHeader(IbtError, ValueError):
    """Source too short or structurally inconsistent for header/table decode."""


class UnknownVariable(IbtError, KeyError):
    """Requested channel name is not in the variable table."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"unknown variable: {self.name!r}"


class UnsupportedType(IbtError, ValueError):
    """Variable type code has no entry in the type registry."""

    def __init__(self, code: int):
        super().__init__(f"unsupported type code: {code}")
        self.code = code


class EndOfData(IbtError):
    """No more frames, or the current frame is incomplete.

    Not a failure: callers treat it as a clean stop.
    """
