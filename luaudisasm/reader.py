"""Bounds-checked primitive readers for the bytecode container."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

from .errors import InvalidReference, TruncatedInput

_DOUBLE = struct.Struct("<d")


class ByteReader:
    """Forward-only cursor over an immutable byte buffer.

    Every read checks the remaining length first and raises
    :class:`TruncatedInput` instead of returning short data.
    """

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self._data = bytes(data)
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def at_end(self) -> bool:
        return self._offset >= len(self._data)

    def _take(self, size: int, what: str) -> bytes:
        if size < 0:
            raise ValueError("read size must be non-negative")
        if size > self.remaining:
            raise TruncatedInput(
                f"truncated input while reading {what}: need {size} byte(s), "
                f"{self.remaining} left",
                offset=self._offset,
            )
        start = self._offset
        self._offset += size
        return self._data[start : self._offset]

    def read_bytes(self, size: int, what: str = "bytes") -> bytes:
        return self._take(size, what)

    def read_u8(self, what: str = "byte") -> int:
        return self._take(1, what)[0]

    def read_u32(self, what: str = "u32") -> int:
        return int.from_bytes(self._take(4, what), "little")

    def read_f64(self, what: str = "double") -> float:
        return _DOUBLE.unpack(self._take(8, what))[0]

    def read_varint(self, what: str = "varint") -> int:
        """Read an unsigned LEB128 integer (7 data bits per byte)."""

        result = 0
        shift = 0
        while True:
            byte = self.read_u8(what)
            result |= (byte & 0x7F) << shift
            shift += 7
            if not byte & 0x80:
                return result

    def read_rest(self) -> bytes:
        return self._take(self.remaining, "trailing data")


@dataclass(frozen=True)
class StringPool(Sequence[str]):
    """Module-wide string table.

    References elsewhere in the format are 1-based with ``0`` meaning
    "no string"; use :meth:`lookup` for those instead of indexing directly.
    """

    strings: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.strings)

    def __getitem__(self, index):  # type: ignore[override]
        return self.strings[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self.strings)

    def lookup(self, index: int, *, offset: Optional[int] = None) -> Optional[str]:
        if index == 0:
            return None
        if not 1 <= index <= len(self.strings):
            raise InvalidReference(
                f"string index {index} outside of string pool (size {len(self.strings)})",
                offset=offset,
            )
        return self.strings[index - 1]


def read_string_pool(reader: ByteReader) -> StringPool:
    count = reader.read_varint("string count")
    strings = []
    for idx in range(count):
        length = reader.read_varint(f"length of string {idx}")
        raw = reader.read_bytes(length, f"string {idx}")
        strings.append(raw.decode("utf-8", "replace"))
    return StringPool(tuple(strings))
