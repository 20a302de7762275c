"""Compressed per-instruction line information."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from .reader import ByteReader


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


@dataclass(frozen=True)
class LineTable:
    """Two-level line mapping.

    ``interval_bases`` holds one absolute line per block of
    ``2 ** gap_log2`` instructions; ``offsets`` holds the 8-bit offset of each
    instruction from its block's base.
    """

    gap_log2: int
    offsets: Tuple[int, ...]
    interval_bases: Tuple[int, ...]

    def line(self, pc: int) -> int:
        return self.interval_bases[pc >> self.gap_log2] + self.offsets[pc]


def interval_count(instruction_count: int, gap_log2: int) -> int:
    return ((instruction_count - 1) >> gap_log2) + 1


def read_line_table(reader: ByteReader, instruction_count: int) -> LineTable:
    gap_log2 = reader.read_u8("line gap")

    offsets = []
    last_offset = 0
    for _ in range(instruction_count):
        last_offset = (last_offset + reader.read_u8("line offset")) & 0xFF
        offsets.append(last_offset)

    bases = []
    last_line = 0
    for _ in range(interval_count(instruction_count, gap_log2)):
        last_line = _to_int32(last_line + reader.read_u32("absolute line delta"))
        bases.append(last_line)

    return LineTable(gap_log2, tuple(offsets), tuple(bases))
