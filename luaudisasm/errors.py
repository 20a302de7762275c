"""Exceptions raised while decoding bytecode modules."""

from __future__ import annotations

from typing import Optional


class DecodeError(ValueError):
    """Base class for every failure that aborts decoding of a module.

    ``offset`` is the byte position inside the input buffer where the problem
    was detected, when that position is known.
    """

    def __init__(self, message: str, *, offset: Optional[int] = None) -> None:
        if offset is not None:
            message = f"{message} (at byte offset {offset})"
        super().__init__(message)
        self.offset = offset


class UnsupportedVersion(DecodeError):
    """The leading version byte is not the one this decoder understands."""

    def __init__(self, version: int, message: Optional[str] = None) -> None:
        super().__init__(message or f"unsupported bytecode version {version}", offset=0)
        self.version = version


class UnknownConstantTag(DecodeError):
    """A constant table entry carries a tag outside of the known set."""

    def __init__(self, tag: int, index: int, *, offset: Optional[int] = None) -> None:
        super().__init__(f"unknown constant tag {tag} for constant {index}", offset=offset)
        self.tag = tag
        self.index = index


class TruncatedInput(DecodeError):
    """A read would run past the end of the supplied buffer."""


class InvalidReference(DecodeError):
    """An index points outside the table it refers to."""
