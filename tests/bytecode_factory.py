"""Tiny encoder used by the tests to build bytecode modules in memory."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from luaudisasm.opcodes import OPCODES_BY_NAME


def varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def u32(value: int) -> bytes:
    return (value & 0xFFFFFFFF).to_bytes(4, "little")


def op(name: str) -> int:
    return OPCODES_BY_NAME[name].opcode


def abc(name: str, a: int = 0, b: int = 0, c: int = 0) -> int:
    return op(name) | (a << 8) | (b << 16) | (c << 24)


def ad(name: str, a: int = 0, d: int = 0) -> int:
    return op(name) | (a << 8) | ((d & 0xFFFF) << 16)


def ae(name: str, e: int = 0) -> int:
    return op(name) | ((e & 0xFFFFFF) << 8)


def import_word(*indices: int) -> int:
    word = len(indices) << 30
    for shift, index in zip((20, 10, 0), indices):
        word |= index << shift
    return word


# Constants are encoded as (tag, payload bytes) pairs.
def k_nil() -> Tuple[int, bytes]:
    return 0, b""


def k_bool(value: bool) -> Tuple[int, bytes]:
    return 1, bytes([1 if value else 0])


def k_number(value: float) -> Tuple[int, bytes]:
    return 2, struct.pack("<d", value)


def k_string(index: int) -> Tuple[int, bytes]:
    return 3, varint(index)


def k_import(word: int) -> Tuple[int, bytes]:
    return 4, u32(word)


def k_table(keys: Sequence[int]) -> Tuple[int, bytes]:
    return 5, varint(len(keys)) + b"".join(varint(key) for key in keys)


def k_closure(proto_id: int) -> Tuple[int, bytes]:
    return 6, varint(proto_id)


@dataclass
class ProtoSpec:
    code: List[int] = field(default_factory=list)
    constants: List[Tuple[int, bytes]] = field(default_factory=list)
    children: List[int] = field(default_factory=list)
    max_stack_size: int = 2
    num_params: int = 0
    num_upvalues: int = 0
    is_vararg: int = 0
    line_defined: int = 0
    debug_name: int = 0
    line_gap_log2: Optional[int] = None
    line_offsets: Sequence[int] = ()
    line_deltas: Sequence[int] = ()
    locals: Sequence[Tuple[int, int, int, int]] = ()
    upvalue_names: Sequence[int] = ()
    debug_info: bool = False

    def encode(self) -> bytes:
        out = bytearray(
            [self.max_stack_size, self.num_params, self.num_upvalues, self.is_vararg]
        )
        out += varint(len(self.code))
        for word in self.code:
            out += u32(word)
        out += varint(len(self.constants))
        for tag, payload in self.constants:
            out.append(tag)
            out += payload
        out += varint(len(self.children))
        for child in self.children:
            out += varint(child)
        out += varint(self.line_defined)
        out += varint(self.debug_name)
        if self.line_gap_log2 is None:
            out.append(0)
        else:
            out.append(1)
            out.append(self.line_gap_log2)
            out += bytes(self.line_offsets)
            for delta in self.line_deltas:
                out += u32(delta)
        if self.debug_info:
            out.append(1)
            out += varint(len(self.locals))
            for name, start, end, reg in self.locals:
                out += varint(name) + varint(start) + varint(end) + bytes([reg])
            out += varint(len(self.upvalue_names))
            for name in self.upvalue_names:
                out += varint(name)
        else:
            out.append(0)
        return bytes(out)


def build_module(
    protos: Sequence[ProtoSpec],
    strings: Sequence[str] = (),
    main: int = 0,
    version: int = 2,
) -> bytes:
    out = bytearray([version])
    out += varint(len(strings))
    for text in strings:
        raw = text.encode("utf-8")
        out += varint(len(raw)) + raw
    out += varint(len(protos))
    for proto in protos:
        out += proto.encode()
    out += varint(main)
    return bytes(out)
