"""Instruction decoder for the LC-3 VM.

Turns a raw 16-bit instruction word into an operation key and a
parameter dictionary that the opcode registry can execute.

Architecture:
    Instruction word -> InstructionDecoder -> (operation_key, params) -> Registry -> Execute

Encoding:
    bits 15-12  opcode
    bits 11-0   opcode specific: register indices (3 bits each), an
                immediate-mode flag, and signed fields of 5, 6, 9 or 11 bits

Every signed field is sign-extended here, so handlers receive ready-to-add
16-bit offsets.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from .state import WORD_MASK


# Opcodes, in encoding order
OP_BR = 0x0    # branch
OP_ADD = 0x1   # add
OP_LD = 0x2    # load
OP_ST = 0x3    # store
OP_JSR = 0x4   # jump register
OP_AND = 0x5   # bitwise and
OP_LDR = 0x6   # load register
OP_STR = 0x7   # store register
OP_RTI = 0x8   # unused
OP_NOT = 0x9   # bitwise not
OP_LDI = 0xA   # load indirect
OP_STI = 0xB   # store indirect
OP_JMP = 0xC   # jump
OP_RES = 0xD   # reserved (unused)
OP_LEA = 0xE   # load effective address
OP_TRAP = 0xF  # execute trap

OPCODE_KEYS: Dict[int, str] = {
    OP_BR: "OP_BR",
    OP_ADD: "OP_ADD",
    OP_LD: "OP_LD",
    OP_ST: "OP_ST",
    OP_JSR: "OP_JSR",
    OP_AND: "OP_AND",
    OP_LDR: "OP_LDR",
    OP_STR: "OP_STR",
    OP_RTI: "OP_RTI",
    OP_NOT: "OP_NOT",
    OP_LDI: "OP_LDI",
    OP_STI: "OP_STI",
    OP_JMP: "OP_JMP",
    OP_RES: "OP_RES",
    OP_LEA: "OP_LEA",
    OP_TRAP: "OP_TRAP",
}


def sign_extend(x: int, bit_count: int) -> int:
    """Sign-extend a bit_count-wide field to 16 bits.

    Args:
        x: Field value (only the low bit_count bits are significant)
        bit_count: Width of the field

    Returns:
        16-bit two's complement value
    """
    if (x >> (bit_count - 1)) & 1:
        x |= (WORD_MASK << bit_count)
    return x & WORD_MASK


@dataclass
class DecodeResult:
    """Result of instruction decode operation.

    Attributes:
        key: Operation key (e.g., "OP_ADD")
        params: Operation parameters dictionary
        valid: Whether decode succeeded
        error: Error message if decode failed
        raw_instruction: Original instruction word
    """
    key: str
    params: Dict = field(default_factory=dict)
    valid: bool = True
    error: Optional[str] = None
    raw_instruction: int = 0


class InstructionDecoder:
    """Bit-field decoder for LC-3 instruction words.

    Attributes:
        VALID_KEYS: Operation keys a valid decode can emit
    """

    VALID_KEYS: Set[str] = {
        "OP_BR",
        "OP_ADD",
        "OP_LD",
        "OP_ST",
        "OP_JSR",
        "OP_AND",
        "OP_LDR",
        "OP_STR",
        "OP_NOT",
        "OP_LDI",
        "OP_STI",
        "OP_JMP",
        "OP_LEA",
        "OP_TRAP",
    }

    def decode(self, instruction: int) -> DecodeResult:
        """Decode an instruction word to operation key and parameters.

        Args:
            instruction: 16-bit instruction word

        Returns:
            DecodeResult; RTI and the reserved opcode come back with valid=False
        """
        instruction &= WORD_MASK
        op = instruction >> 12
        key = OPCODE_KEYS[op]

        if key not in self.VALID_KEYS:
            return DecodeResult(
                key,
                {},
                False,
                error=f"{key} is not supported",
                raw_instruction=instruction,
            )

        params = getattr(self, f"_decode_{key[3:].lower()}")(instruction)
        return DecodeResult(key, params, True, raw_instruction=instruction)

    # =========================================================================
    # Field extraction
    # =========================================================================

    @staticmethod
    def _dr(instr: int) -> int:
        return (instr >> 9) & 0x7

    @staticmethod
    def _sr1(instr: int) -> int:
        return (instr >> 6) & 0x7

    @staticmethod
    def _pc_offset9(instr: int) -> int:
        return sign_extend(instr & 0x1FF, 9)

    def _decode_arith(self, instr: int) -> Dict:
        # ADD and AND share an encoding: register or imm5 second operand
        params = {"dest": self._dr(instr), "src1": self._sr1(instr)}
        if (instr >> 5) & 0x1:
            params["imm"] = True
            params["value"] = sign_extend(instr & 0x1F, 5)
        else:
            params["imm"] = False
            params["src2"] = instr & 0x7
        return params

    # =========================================================================
    # Per-opcode decoders
    # =========================================================================

    def _decode_br(self, instr: int) -> Dict:
        # n, z, p test bits line up with FL_NEG, FL_ZRO, FL_POS
        return {"cond": (instr >> 9) & 0x7, "offset": self._pc_offset9(instr)}

    def _decode_add(self, instr: int) -> Dict:
        return self._decode_arith(instr)

    def _decode_and(self, instr: int) -> Dict:
        return self._decode_arith(instr)

    def _decode_ld(self, instr: int) -> Dict:
        return {"dest": self._dr(instr), "offset": self._pc_offset9(instr)}

    def _decode_ldi(self, instr: int) -> Dict:
        return {"dest": self._dr(instr), "offset": self._pc_offset9(instr)}

    def _decode_lea(self, instr: int) -> Dict:
        return {"dest": self._dr(instr), "offset": self._pc_offset9(instr)}

    def _decode_st(self, instr: int) -> Dict:
        return {"src": self._dr(instr), "offset": self._pc_offset9(instr)}

    def _decode_sti(self, instr: int) -> Dict:
        return {"src": self._dr(instr), "offset": self._pc_offset9(instr)}

    def _decode_jsr(self, instr: int) -> Dict:
        if (instr >> 11) & 0x1:
            return {"long": True, "offset": sign_extend(instr & 0x7FF, 11)}
        return {"long": False, "base": self._sr1(instr)}

    def _decode_ldr(self, instr: int) -> Dict:
        return {
            "dest": self._dr(instr),
            "base": self._sr1(instr),
            "offset": sign_extend(instr & 0x3F, 6),
        }

    def _decode_str(self, instr: int) -> Dict:
        return {
            "src": self._dr(instr),
            "base": self._sr1(instr),
            "offset": sign_extend(instr & 0x3F, 6),
        }

    def _decode_not(self, instr: int) -> Dict:
        return {"dest": self._dr(instr), "src": self._sr1(instr)}

    def _decode_jmp(self, instr: int) -> Dict:
        # BaseR = R7 is RET; not distinguished
        return {"base": self._sr1(instr)}

    def _decode_trap(self, instr: int) -> Dict:
        return {"vector": instr & 0xFF}
