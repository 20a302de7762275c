"""Field extraction for raw 32-bit instruction words."""

from __future__ import annotations

from dataclasses import dataclass

WORD_SIZE = 4


def _signed(value: int, bits: int) -> int:
    sign = 1 << (bits - 1)
    return (value & (sign - 1)) - (value & sign)


@dataclass(frozen=True)
class InstructionWord:
    """One instruction word; the opcode lives in the low byte.

    ``a``/``b``/``c`` are the three unsigned bytes above the opcode, ``d`` is
    the signed 16-bit upper half and ``e`` the signed 24-bit value above the
    opcode.
    """

    raw: int

    @property
    def opcode(self) -> int:
        return self.raw & 0xFF

    @property
    def a(self) -> int:
        return (self.raw >> 8) & 0xFF

    @property
    def b(self) -> int:
        return (self.raw >> 16) & 0xFF

    @property
    def c(self) -> int:
        return (self.raw >> 24) & 0xFF

    @property
    def d(self) -> int:
        return _signed(self.raw >> 16, 16)

    @property
    def e(self) -> int:
        return _signed(self.raw >> 8, 24)

    def format(self) -> str:
        return f"{self.raw:08X}    op={self.opcode:02X} a={self.a} b={self.b} c={self.c}"
