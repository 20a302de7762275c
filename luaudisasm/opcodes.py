"""Opcode table: mnemonic, operand shape and text formatter per opcode.

Opcode values follow the encoded (multiplied) numbering used by the client
bytecode this tool targets, not the canonical Luau enumeration order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Optional

from .constants import dissect_import
from .errors import InvalidReference, TruncatedInput
from .instruction import InstructionWord

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .bytecode import Prototype


class OperandShape(Enum):
    """Physical operand layout; ``*_AUX`` shapes own the following word."""

    A = "A"
    AB = "AB"
    ABC = "ABC"
    AD = "AD"
    AE = "AE"
    A_AUX = "A+AUX"
    AD_AUX = "AD+AUX"
    ABC_AUX = "ABC+AUX"

    @property
    def has_aux(self) -> bool:
        return self.value.endswith("+AUX")

    @property
    def width(self) -> int:
        return 2 if self.has_aux else 1


@dataclass(frozen=True)
class DecodedInstruction:
    """An instruction located in a prototype's stream.

    ``pc`` is the index of the primary word; ``aux`` is the word that follows
    it when the opcode's shape owns one.  ``info`` is ``None`` for opcodes the
    table does not know.
    """

    pc: int
    word: InstructionWord
    info: Optional["OpcodeInfo"]
    aux: Optional[int] = None

    @property
    def mnemonic(self) -> str:
        return self.info.mnemonic if self.info else "UNKNOWN"

    @property
    def width(self) -> int:
        return self.info.shape.width if self.info else 1

    @property
    def missing_aux(self) -> bool:
        return self.info is not None and self.info.shape.has_aux and self.aux is None

    @property
    def next_pc(self) -> int:
        return self.pc + self.width


Formatter = Callable[[DecodedInstruction, "Prototype"], str]


@dataclass(frozen=True)
class OpcodeInfo:
    opcode: int
    mnemonic: str
    shape: OperandShape
    formatter: Formatter

    def format(self, insn: DecodedInstruction, proto: "Prototype") -> str:
        return self.formatter(insn, proto)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _operands(insn: DecodedInstruction, *values: object) -> str:
    return " ".join([insn.mnemonic, *(str(value) for value in values)])


def _with_comment(text: str, comment: str) -> str:
    return f"{text} ; {comment}"


def _count(field: int) -> str:
    """Render an ``N + 1`` count field where ``0`` means MULTRET."""

    return "MULTRET" if field == 0 else str(field - 1)


def _constant(proto: "Prototype", index: int) -> str:
    if 0 <= index < len(proto.constants):
        text = proto.constants[index].describe()
    else:
        text = "<out of range>"
    return f"K({index}) = {text}"


def _aux(insn: DecodedInstruction) -> int:
    if insn.aux is None:
        raise TruncatedInput(f"{insn.mnemonic} at pc {insn.pc} has no auxiliary word")
    return insn.aux


def _aux_position(insn: DecodedInstruction) -> int:
    # Jump targets of aux-carrying opcodes are taken relative to the aux word.
    return insn.pc + 1


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def _fmt_plain(insn: DecodedInstruction, proto: "Prototype") -> str:
    return insn.mnemonic


def _fmt_nop(insn: DecodedInstruction, proto: "Prototype") -> str:
    # printf "%#010X" semantics: the prefix is uppercased too, except for zero.
    raw = insn.word.raw
    return f"{insn.mnemonic} (0X{raw:08X})" if raw else f"{insn.mnemonic} (0x00000000)"


def _fmt_a(insn: DecodedInstruction, proto: "Prototype") -> str:
    return _operands(insn, insn.word.a)


def _fmt_ab(insn: DecodedInstruction, proto: "Prototype") -> str:
    return _operands(insn, insn.word.a, insn.word.b)


def _fmt_abc(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    return _operands(insn, word.a, word.b, word.c)


def _fmt_ad(insn: DecodedInstruction, proto: "Prototype") -> str:
    return _operands(insn, insn.word.a, insn.word.d)


def _fmt_loadb(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    value = "true" if word.b else "false"
    if word.c > 0:
        text = _operands(insn, word.a, word.b, word.c)
        return _with_comment(text, f"{value}, jump to {insn.pc + word.c + 1}")
    return _with_comment(_operands(insn, word.a, word.b), value)


def _fmt_ad_constant(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    return _with_comment(_operands(insn, word.a, word.d), _constant(proto, word.d))


def _fmt_a_aux_constant(insn: DecodedInstruction, proto: "Prototype") -> str:
    aux = _aux(insn)
    return _with_comment(_operands(insn, insn.word.a, aux), _constant(proto, aux))


def _fmt_ab_aux_constant(insn: DecodedInstruction, proto: "Prototype") -> str:
    aux = _aux(insn)
    word = insn.word
    return _with_comment(_operands(insn, word.a, word.b, aux), _constant(proto, aux))


def _fmt_abc_constant(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    return _with_comment(_operands(insn, word.a, word.b, word.c), _constant(proto, word.c))


def _fmt_getimport(insn: DecodedInstruction, proto: "Prototype") -> str:
    aux = _aux(insn)
    text = _operands(insn, insn.word.a, insn.word.d)
    try:
        imported = dissect_import(aux, proto.constants)
    except InvalidReference:
        return _with_comment(text, f"count = {aux >> 30}, <invalid import 0x{aux:08X}>")
    return _with_comment(text, f"count = {imported.count}, '{imported.path}'")


def _fmt_table_index(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    return _with_comment(_operands(insn, word.a, word.b, word.c), f"index = {word.c + 1}")


def _fmt_newclosure(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    text = _operands(insn, word.a, word.d)
    if 0 <= word.d < len(proto.children):
        return _with_comment(text, f"global id = {proto.children[word.d]}")
    return _with_comment(text, "global id = <out of range>")


def _fmt_call(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    return _with_comment(
        _operands(insn, word.a, word.b, word.c),
        f"{_count(word.b)} arguments, {_count(word.c)} results",
    )


def _fmt_return(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    return _with_comment(
        _operands(insn, word.a, word.b),
        f"values start at {word.a}, num returned values = {_count(word.b)}",
    )


def _fmt_jump(insn: DecodedInstruction, proto: "Prototype") -> str:
    offset = insn.word.d
    return _with_comment(_operands(insn, offset), f"to {insn.pc + offset + 1}")


def _fmt_register_jump(insn: DecodedInstruction, proto: "Prototype") -> str:
    offset = insn.word.d
    return _with_comment(_operands(insn, insn.word.a, offset), f"to {insn.pc + offset + 1}")


def _fmt_compare_jump(insn: DecodedInstruction, proto: "Prototype") -> str:
    offset = insn.word.d
    text = _operands(insn, insn.word.a, _aux(insn), offset)
    return _with_comment(text, f"to {_aux_position(insn) + offset}")


def _fmt_compare_constant_jump(insn: DecodedInstruction, proto: "Prototype") -> str:
    aux = _aux(insn)
    offset = insn.word.d
    text = _operands(insn, insn.word.a, aux, offset)
    # Target is relative to the instruction itself here, unlike the other
    # compare-and-jump forms; listings have always been rendered this way.
    return _with_comment(text, f"{_constant(proto, aux)}, to {insn.pc + offset}")


def _fmt_newtable(insn: DecodedInstruction, proto: "Prototype") -> str:
    return _operands(insn, insn.word.a, insn.word.b, _aux(insn))


def _fmt_setlist(insn: DecodedInstruction, proto: "Prototype") -> str:
    aux = _aux(insn)
    word = insn.word
    return _with_comment(
        _operands(insn, word.a, word.b, word.c, aux),
        f"start at register {word.b}, fill {_count(word.c)} values, start at table index {aux}",
    )


def _fmt_forgloop(insn: DecodedInstruction, proto: "Prototype") -> str:
    aux = _aux(insn)
    offset = insn.word.d
    text = _operands(insn, insn.word.a, offset, aux)
    return _with_comment(text, f"to {_aux_position(insn) + offset}, {aux & 0xFF} variables")


def _fmt_getvarargs(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    return _with_comment(_operands(insn, word.a, word.b), f"{_count(word.b)} values")


def _fmt_jumpx(insn: DecodedInstruction, proto: "Prototype") -> str:
    offset = insn.word.e
    return _with_comment(_operands(insn, offset), f"to {insn.pc + offset + 1}")


def _fmt_coverage(insn: DecodedInstruction, proto: "Prototype") -> str:
    return _with_comment(_operands(insn, insn.word.e), f"hits = {insn.word.e}")


def _fmt_fastcall(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    return _with_comment(_operands(insn, word.a, word.c), f"to {insn.pc + word.c + 1}")


def _fmt_fastcall1(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    text = _operands(insn, word.a, word.b, word.c)
    return _with_comment(text, f"jump to {insn.pc + word.c + 1}")


def _fmt_fastcall2(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    text = _operands(insn, word.a, word.b, _aux(insn), word.c)
    return _with_comment(text, f"jump to {_aux_position(insn) + word.c}")


def _fmt_fastcall2k(insn: DecodedInstruction, proto: "Prototype") -> str:
    aux = _aux(insn)
    word = insn.word
    text = _operands(insn, word.a, word.b, aux, word.c)
    return _with_comment(
        text, f"{_constant(proto, aux)}, jump to {_aux_position(insn) + word.c}"
    )


CAPTURE_TYPES = ("VAL", "REF", "UPVAL")


def _fmt_capture(insn: DecodedInstruction, proto: "Prototype") -> str:
    word = insn.word
    kind = CAPTURE_TYPES[word.a] if word.a < len(CAPTURE_TYPES) else "unknown"
    return _with_comment(_operands(insn, word.a, word.b), f"{kind} capture")


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------

S = OperandShape

_DEFINITIONS = (
    (0x00, "NOP", S.A, _fmt_nop),
    (0xE3, "BREAK", S.A, _fmt_plain),
    (0xC6, "LOADNIL", S.A, _fmt_a),
    (0xA9, "LOADB", S.ABC, _fmt_loadb),
    (0x8C, "LOADN", S.AD, _fmt_ad),
    (0x6F, "LOADK", S.AD, _fmt_ad_constant),
    (0x52, "MOVE", S.AB, _fmt_ab),
    (0x35, "GETGLOBAL", S.ABC_AUX, _fmt_a_aux_constant),
    (0x18, "SETGLOBAL", S.ABC_AUX, _fmt_a_aux_constant),
    (0xFB, "GETUPVAL", S.AB, _fmt_ab),
    (0xDE, "SETUPVAL", S.AB, _fmt_ab),
    (0xC1, "CLOSEUPVALS", S.A, _fmt_a),
    (0xA4, "GETIMPORT", S.AD_AUX, _fmt_getimport),
    (0x87, "GETTABLE", S.ABC, _fmt_abc),
    (0x6A, "SETTABLE", S.ABC, _fmt_abc),
    (0x4D, "GETTABLEKS", S.ABC_AUX, _fmt_ab_aux_constant),
    (0x30, "SETTABLEKS", S.ABC_AUX, _fmt_ab_aux_constant),
    (0x13, "GETTABLEN", S.ABC, _fmt_table_index),
    (0xF6, "SETTABLEN", S.ABC, _fmt_table_index),
    (0xD9, "NEWCLOSURE", S.AD, _fmt_newclosure),
    (0xBC, "NAMECALL", S.ABC_AUX, _fmt_ab_aux_constant),
    (0x9F, "CALL", S.ABC, _fmt_call),
    (0x82, "RETURN", S.AB, _fmt_return),
    (0x65, "JUMP", S.AD, _fmt_jump),
    (0x48, "JUMPBACK", S.AD, _fmt_jump),
    (0x2B, "JUMPIF", S.AD, _fmt_register_jump),
    (0x0E, "JUMPIFNOT", S.AD, _fmt_register_jump),
    (0xF1, "JUMPIFEQ", S.AD_AUX, _fmt_compare_jump),
    (0xD4, "JUMPIFLE", S.AD_AUX, _fmt_compare_jump),
    (0xB7, "JUMPIFLT", S.AD_AUX, _fmt_compare_jump),
    (0x9A, "JUMPIFNOTEQ", S.AD_AUX, _fmt_compare_jump),
    (0x7D, "JUMPIFNOTLE", S.AD_AUX, _fmt_compare_jump),
    (0x60, "JUMPIFNOTLT", S.AD_AUX, _fmt_compare_jump),
    (0x43, "ADD", S.ABC, _fmt_abc),
    (0x26, "SUB", S.ABC, _fmt_abc),
    (0x09, "MUL", S.ABC, _fmt_abc),
    (0xEC, "DIV", S.ABC, _fmt_abc),
    (0xCF, "MOD", S.ABC, _fmt_abc),
    (0xB2, "POW", S.ABC, _fmt_abc),
    (0x95, "ADDK", S.ABC, _fmt_abc_constant),
    (0x78, "SUBK", S.ABC, _fmt_abc_constant),
    (0x5B, "MULK", S.ABC, _fmt_abc_constant),
    (0x3E, "DIVK", S.ABC, _fmt_abc_constant),
    (0x21, "MODK", S.ABC, _fmt_abc_constant),
    (0x04, "POWK", S.ABC, _fmt_abc_constant),
    (0xE7, "AND", S.ABC, _fmt_abc),
    (0xCA, "OR", S.ABC, _fmt_abc),
    (0xAD, "ANDK", S.ABC, _fmt_abc_constant),
    (0x90, "ORK", S.ABC, _fmt_abc_constant),
    (0x73, "CONCAT", S.ABC, _fmt_abc),
    (0x56, "NOT", S.AB, _fmt_ab),
    (0x39, "MINUS", S.AB, _fmt_ab),
    (0x1C, "LENGTH", S.AB, _fmt_ab),
    (0xFF, "NEWTABLE", S.ABC_AUX, _fmt_newtable),
    (0xE2, "DUPTABLE", S.AD, _fmt_ad),
    (0xC5, "SETLIST", S.ABC_AUX, _fmt_setlist),
    (0xA8, "FORNPREP", S.AD, _fmt_register_jump),
    (0x8B, "FORNLOOP", S.AD, _fmt_register_jump),
    (0x6E, "FORGLOOP", S.AD_AUX, _fmt_forgloop),
    (0x51, "FORGPREP_INEXT", S.AD, _fmt_register_jump),
    (0x34, "FORGLOOP_INEXT", S.AD, _fmt_register_jump),
    (0x17, "FORGPREP_NEXT", S.AD, _fmt_register_jump),
    (0xFA, "FORGLOOP_NEXT", S.AD, _fmt_register_jump),
    (0xDD, "GETVARARGS", S.AB, _fmt_getvarargs),
    (0xC0, "DUPCLOSURE", S.AD, _fmt_ad),
    (0xA3, "PREPVARARGS", S.A, _fmt_a),
    (0x86, "LOADKX", S.A_AUX, _fmt_a_aux_constant),
    (0x69, "JUMPX", S.AE, _fmt_jumpx),
    (0x4C, "FASTCALL", S.ABC, _fmt_fastcall),
    (0x2F, "COVERAGE", S.AE, _fmt_coverage),
    (0x12, "CAPTURE", S.AB, _fmt_capture),
    (0xF5, "JUMPIFEQK", S.AD_AUX, _fmt_compare_constant_jump),
    (0xD8, "JUMPIFNOTEQK", S.AD_AUX, _fmt_compare_constant_jump),
    (0xBB, "FASTCALL1", S.ABC, _fmt_fastcall1),
    (0x9E, "FASTCALL2", S.ABC_AUX, _fmt_fastcall2),
    (0x81, "FASTCALL2K", S.ABC_AUX, _fmt_fastcall2k),
)

OPCODES: Dict[int, OpcodeInfo] = {
    opcode: OpcodeInfo(opcode, mnemonic, shape, formatter)
    for opcode, mnemonic, shape, formatter in _DEFINITIONS
}

OPCODES_BY_NAME: Dict[str, OpcodeInfo] = {info.mnemonic: info for info in OPCODES.values()}


def lookup(opcode: int) -> Optional[OpcodeInfo]:
    return OPCODES.get(opcode)
