"""Public package exports for the Luau bytecode disassembler."""

from .bytecode import BYTECODE_VERSION, BytecodeModule, Prototype, decode
from .constants import dissect_import
from .disassembler import Disassembler, disassemble
from .errors import (
    DecodeError,
    InvalidReference,
    TruncatedInput,
    UnknownConstantTag,
    UnsupportedVersion,
)
from .instruction import InstructionWord
from .lineinfo import LineTable
from .opcodes import OPCODES, OperandShape

__all__ = [
    "BYTECODE_VERSION",
    "BytecodeModule",
    "Prototype",
    "decode",
    "dissect_import",
    "Disassembler",
    "disassemble",
    "DecodeError",
    "InvalidReference",
    "TruncatedInput",
    "UnknownConstantTag",
    "UnsupportedVersion",
    "InstructionWord",
    "LineTable",
    "OPCODES",
    "OperandShape",
]
