"""Deserialiser for compiled Luau bytecode modules."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple

from .constants import Constant, read_constants
from .errors import InvalidReference, UnsupportedVersion
from .lineinfo import LineTable, read_line_table
from .reader import ByteReader, StringPool, read_string_pool

logger = logging.getLogger(__name__)

BYTECODE_VERSION = 2
ERROR_VERSION = 0
DEFAULT_DEBUG_NAME = "UNNAMED"


@dataclass(frozen=True)
class Prototype:
    """A single compiled function."""

    max_stack_size: int
    num_params: int
    num_upvalues: int
    is_vararg: int
    instructions: Tuple[int, ...]
    constants: Tuple[Constant, ...]
    children: Tuple[int, ...]
    line_defined: int = 0
    debug_name: str = DEFAULT_DEBUG_NAME
    line_table: Optional[LineTable] = None
    num_locals: int = 0
    num_upvalue_names: int = 0

    def line(self, pc: int) -> int:
        """Source line of the instruction at ``pc`` or ``0`` without line info."""

        if self.line_table is None:
            return 0
        return self.line_table.line(pc)


@dataclass(frozen=True)
class BytecodeModule:
    """Decoded module: every prototype plus the entry point."""

    prototypes: Tuple[Prototype, ...]
    main_index: int
    strings: StringPool
    version: int = BYTECODE_VERSION

    def __len__(self) -> int:  # pragma: no cover - trivial proxy
        return len(self.prototypes)

    def iter_prototypes(self) -> Iterator[Tuple[int, Prototype]]:
        return iter(enumerate(self.prototypes))

    @property
    def main(self) -> Prototype:
        return self.prototypes[self.main_index]

    @classmethod
    def load(cls, path: Path) -> "BytecodeModule":
        return decode(path.read_bytes())


def _skip_debug_info(reader: ByteReader) -> Tuple[int, int]:
    num_locals = reader.read_varint("local variable count")
    for _ in range(num_locals):
        reader.read_varint("local variable name")
        reader.read_varint("local variable start pc")
        reader.read_varint("local variable end pc")
        reader.read_u8("local variable register")

    num_upvalue_names = reader.read_varint("upvalue name count")
    for _ in range(num_upvalue_names):
        reader.read_varint("upvalue name")
    return num_locals, num_upvalue_names


def read_prototype(reader: ByteReader, strings: StringPool) -> Prototype:
    max_stack_size = reader.read_u8("maxstacksize")
    num_params = reader.read_u8("numparams")
    num_upvalues = reader.read_u8("nups")
    is_vararg = reader.read_u8("is_vararg")

    size_code = reader.read_varint("instruction count")
    instructions = tuple(reader.read_u32("instruction") for _ in range(size_code))

    constants = tuple(read_constants(reader, strings))

    size_children = reader.read_varint("child proto count")
    children = tuple(reader.read_varint("child proto index") for _ in range(size_children))

    line_defined = reader.read_varint("linedefined")

    name_offset = reader.offset
    debug_name = strings.lookup(reader.read_varint("debug name"), offset=name_offset)

    line_table = None
    if reader.read_u8("line info flag"):
        line_table = read_line_table(reader, size_code)

    num_locals = num_upvalue_names = 0
    if reader.read_u8("debug info flag"):
        num_locals, num_upvalue_names = _skip_debug_info(reader)

    return Prototype(
        max_stack_size=max_stack_size,
        num_params=num_params,
        num_upvalues=num_upvalues,
        is_vararg=is_vararg,
        instructions=instructions,
        constants=constants,
        children=children,
        line_defined=line_defined,
        debug_name=debug_name if debug_name is not None else DEFAULT_DEBUG_NAME,
        line_table=line_table,
        num_locals=num_locals,
        num_upvalue_names=num_upvalue_names,
    )


def _check_version(reader: ByteReader) -> int:
    version = reader.read_u8("version")
    if version == ERROR_VERSION:
        # The compiler emits a zero version followed by its error message.
        message = reader.read_rest().decode("utf-8", "replace")
        raise UnsupportedVersion(version, f"bytecode carries a compile error: {message}")
    if version != BYTECODE_VERSION:
        raise UnsupportedVersion(version)
    return version


def _validate_references(prototypes: Tuple[Prototype, ...], main_index: int) -> None:
    total = len(prototypes)
    for index, proto in enumerate(prototypes):
        for child in proto.children:
            if child >= total:
                raise InvalidReference(
                    f"proto {index} lists child {child} but module has {total} protos"
                )
    if main_index >= total:
        raise InvalidReference(f"main proto {main_index} outside of module ({total} protos)")


def decode(data: bytes) -> BytecodeModule:
    """Deserialise ``data`` into a :class:`BytecodeModule`."""

    reader = ByteReader(data)
    version = _check_version(reader)
    strings = read_string_pool(reader)

    proto_count = reader.read_varint("proto count")
    prototypes = tuple(read_prototype(reader, strings) for _ in range(proto_count))

    main_index = reader.read_varint("main proto index")
    _validate_references(prototypes, main_index)

    if not reader.at_end():
        logger.debug("ignoring %d trailing byte(s) after main proto index", reader.remaining)
    logger.debug(
        "decoded %d string(s), %d proto(s), main=%d", len(strings), len(prototypes), main_index
    )
    return BytecodeModule(prototypes, main_index, strings, version)
