"""Constant table decoding for function prototypes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Union

from .errors import InvalidReference, UnknownConstantTag
from .reader import ByteReader, StringPool

# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

TAG_NIL = 0
TAG_BOOLEAN = 1
TAG_NUMBER = 2
TAG_STRING = 3
TAG_IMPORT = 4
TAG_TABLE = 5
TAG_CLOSURE = 6


@dataclass(frozen=True)
class NilConstant:
    def describe(self) -> str:
        return "nil"


@dataclass(frozen=True)
class BooleanConstant:
    value: bool

    def describe(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class NumberConstant:
    value: float

    def describe(self) -> str:
        return f"{self.value:4.3f}"


@dataclass(frozen=True)
class StringConstant:
    value: str

    def describe(self) -> str:
        return f"'{self.value}'"


@dataclass(frozen=True)
class ImportConstant:
    """Dotted global path such as ``game.Players``."""

    path: str
    count: int

    def describe(self) -> str:
        return f"import '{self.path}'"


@dataclass(frozen=True)
class TableConstant:
    """Table template; the key list is consumed but not kept."""

    def describe(self) -> str:
        return "table"


@dataclass(frozen=True)
class ClosureConstant:
    """Pre-created closure; the prototype id is consumed but not kept."""

    def describe(self) -> str:
        return "closure"


Constant = Union[
    NilConstant,
    BooleanConstant,
    NumberConstant,
    StringConstant,
    ImportConstant,
    TableConstant,
    ClosureConstant,
]


def dissect_import(word: int, constants: Sequence[Constant]) -> ImportConstant:
    """Resolve a packed import word against ``constants``.

    The top two bits hold the segment count (1-3).  Segment indices are
    10 bits wide and packed from the high end: bits 20-29, 10-19 and 0-9.
    Every segment must name a string constant already present in
    ``constants``.
    """

    count = (word >> 30) & 0x3
    if count == 0:
        raise InvalidReference(f"import word 0x{word:08X} declares no path segments")

    indices = [(word >> 20) & 0x3FF, (word >> 10) & 0x3FF, word & 0x3FF][:count]
    segments: List[str] = []
    for index in indices:
        if index >= len(constants):
            raise InvalidReference(
                f"import segment refers to constant {index}, "
                f"only {len(constants)} decoded so far"
            )
        segment = constants[index]
        if not isinstance(segment, StringConstant):
            raise InvalidReference(
                f"import segment refers to constant {index} which is not a string"
            )
        segments.append(segment.value)
    return ImportConstant(".".join(segments), count)


def read_constants(reader: ByteReader, strings: StringPool) -> List[Constant]:
    count = reader.read_varint("constant count")
    constants: List[Constant] = []
    for index in range(count):
        tag_offset = reader.offset
        tag = reader.read_u8(f"tag of constant {index}")
        if tag == TAG_NIL:
            constants.append(NilConstant())
        elif tag == TAG_BOOLEAN:
            constants.append(BooleanConstant(reader.read_u8("boolean constant") != 0))
        elif tag == TAG_NUMBER:
            constants.append(NumberConstant(reader.read_f64("number constant")))
        elif tag == TAG_STRING:
            string_offset = reader.offset
            string_index = reader.read_varint("string constant index")
            value = strings.lookup(string_index, offset=string_offset)
            if value is None:
                raise InvalidReference(
                    f"string constant {index} has no string", offset=string_offset
                )
            constants.append(StringConstant(value))
        elif tag == TAG_IMPORT:
            word_offset = reader.offset
            word = reader.read_u32("import constant")
            try:
                constants.append(dissect_import(word, constants))
            except InvalidReference as exc:
                raise InvalidReference(f"constant {index}: {exc}", offset=word_offset) from exc
        elif tag == TAG_TABLE:
            keys = reader.read_varint("table constant key count")
            for _ in range(keys):
                reader.read_varint("table constant key")
            constants.append(TableConstant())
        elif tag == TAG_CLOSURE:
            reader.read_varint("closure constant id")
            constants.append(ClosureConstant())
        else:
            raise UnknownConstantTag(tag, index, offset=tag_offset)
    return constants
