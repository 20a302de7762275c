"""Instruction listing utilities."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Mapping, Optional

from .bytecode import BytecodeModule, Prototype, decode
from .instruction import InstructionWord
from .opcodes import OPCODES, DecodedInstruction, OpcodeInfo

logger = logging.getLogger(__name__)


class Disassembler:
    """Render textual listings of decoded bytecode modules."""

    def __init__(self, opcodes: Optional[Mapping[int, OpcodeInfo]] = None) -> None:
        self.opcodes = opcodes if opcodes is not None else OPCODES

    def iter_instructions(self, proto: Prototype) -> Iterator[DecodedInstruction]:
        """Walk ``proto``'s stream, folding aux words into their owner.

        Unknown opcodes are yielded with ``info=None`` and are assumed to be a
        single word wide, so the rest of the stream is decoded on a best-effort
        basis.  An aux-carrying opcode on the last word (typically a misframed
        word after an unknown opcode) is yielded with ``aux=None`` and ends the
        walk.
        """

        code = proto.instructions
        pc = 0
        while pc < len(code):
            word = InstructionWord(code[pc])
            info = self.opcodes.get(word.opcode)
            aux = None
            if info is None:
                logger.debug("unknown opcode at pc %d: %s", pc, word.format())
            elif info.shape.has_aux:
                if pc + 1 < len(code):
                    aux = code[pc + 1]
                else:
                    logger.debug("%s at pc %d has no aux word before end of stream", info.mnemonic, pc)
            insn = DecodedInstruction(pc, word, info, aux)
            yield insn
            pc = insn.next_pc

    def format_instruction(
        self,
        insn: DecodedInstruction,
        proto: Prototype,
        *,
        show_line_info: bool = False,
    ) -> str:
        if insn.info is None:
            text = "UNKNOWN"
        elif insn.missing_aux:
            text = f"{insn.mnemonic} {insn.word.a} <missing aux>"
        else:
            text = insn.info.format(insn, proto)
        if show_line_info:
            return f"L{proto.line(insn.pc)} [{insn.pc:03d}] {text}"
        return f"[{insn.pc:03d}] {text}"

    def render_header(self, index: int, proto: Prototype) -> List[str]:
        # Blank lines and the child-list slot mirror the established listing layout.
        lines = [
            f"; global id: {index}",
            f"; proto name: {proto.debug_name}",
            f"; linedefined: {proto.line_defined}",
            "",
            f"; maxstacksize: {proto.max_stack_size}",
            f"; numparams: {proto.num_params}",
            f"; nups: {proto.num_upvalues}",
            f"; is_vararg: {proto.is_vararg:02X}",
        ]
        if proto.children:
            lines.append("")
            lines.append("; child protos: " + ", ".join(str(child) for child in proto.children))
        lines.append("")
        lines.append(f"; sizecode: {len(proto.instructions)}")
        lines.append(f"; sizek: {len(proto.constants)}")
        return lines

    def render_prototype(
        self,
        index: int,
        proto: Prototype,
        *,
        show_line_info: bool = False,
    ) -> List[str]:
        lines = self.render_header(index, proto)
        for insn in self.iter_instructions(proto):
            lines.append(self.format_instruction(insn, proto, show_line_info=show_line_info))
        return lines

    def generate_listing(self, module: BytecodeModule, *, show_line_info: bool = False) -> str:
        lines: List[str] = []
        for index, proto in module.iter_prototypes():
            lines.extend(self.render_prototype(index, proto, show_line_info=show_line_info))
        return "".join(f"{line}\n" for line in lines)

    def write_listing(
        self,
        module: BytecodeModule,
        output_path: Path,
        *,
        show_line_info: bool = False,
    ) -> None:
        listing = self.generate_listing(module, show_line_info=show_line_info)
        output_path.write_text(listing, "utf-8")


def disassemble(data: bytes, show_line_info: bool = False) -> str:
    """Decode ``data`` and return its listing in one step."""

    return Disassembler().generate_listing(decode(data), show_line_info=show_line_info)
