"""MachineState: register file and address space for the LC-3 VM.

This module defines the state owned by a single virtual machine instance.

State Components:
    - Registers: R0-R7 (8 general-purpose 16-bit unsigned integers)
    - PC: Program counter (16-bit, wraps at 65536)
    - COND: Condition code, exactly one of FL_POS, FL_ZRO, FL_NEG
    - Memory: 65536 16-bit cells, zero-initialised
    - Halted: Set by the HALT trap
    - Cycle count: Total executed instructions

Unlike a purely functional state, the address space is far too large to
copy on every instruction, so MachineState is mutated in place and
`snapshot()` is used when a copy is needed for tracing.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Union


MEMORY_SIZE = 1 << 16
WORD_MASK = 0xFFFF
REGISTER_COUNT = 8

# Condition flags
FL_POS = 1 << 0  # P
FL_ZRO = 1 << 1  # Z
FL_NEG = 1 << 2  # N

COND_NAMES = {FL_POS: "P", FL_ZRO: "Z", FL_NEG: "N"}

RegisterRef = Union[int, str]


@dataclass
class MachineState:
    """Mutable LC-3 machine state.

    Attributes:
        registers: List of eight 16-bit register values, indexed 0-7
        pc: Program counter
        cond: Condition code (one of FL_POS, FL_ZRO, FL_NEG)
        memory: 65536-cell address space
        halted: Whether the machine has executed HALT
        cycle_count: Number of instructions executed
    """
    registers: List[int] = field(default_factory=lambda: [0] * REGISTER_COUNT)
    pc: int = 0
    cond: int = FL_ZRO
    memory: List[int] = field(default_factory=lambda: [0] * MEMORY_SIZE)
    halted: bool = False
    cycle_count: int = 0

    def snapshot(self) -> dict:
        """Create a snapshot of the register file for tracing.

        Returns:
            Dictionary with copies of registers, pc, cond, halted and cycle_count
        """
        return {
            "registers": list(self.registers),
            "pc": self.pc,
            "cond": self.cond,
            "halted": self.halted,
            "cycle_count": self.cycle_count,
            # Memory excluded; 64K cells per cycle is too much to copy
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Exactly eight registers, each a 16-bit unsigned int
            - PC within the address space
            - COND holds exactly one condition flag
            - Memory is the full address space

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.registers) != REGISTER_COUNT:
            return False
        for value in self.registers:
            if not isinstance(value, int) or not 0 <= value <= WORD_MASK:
                return False

        if not 0 <= self.pc <= WORD_MASK:
            return False
        if self.cond not in COND_NAMES:
            return False
        if len(self.memory) != MEMORY_SIZE:
            return False
        if self.cycle_count < 0:
            return False

        return True

    # =========================================================================
    # Register file
    # =========================================================================

    @staticmethod
    def register_index(reg: RegisterRef) -> int:
        """Resolve a register reference to its index.

        Args:
            reg: Register index (0-7) or name ("R0"-"R7", case insensitive)

        Returns:
            Register index

        Raises:
            KeyError: If register doesn't exist
        """
        if isinstance(reg, str):
            name = reg.upper()
            if len(name) == 2 and name[0] == "R" and name[1] in "01234567":
                return int(name[1])
            raise KeyError(f"Invalid register: {reg}")
        if not 0 <= reg < REGISTER_COUNT:
            raise KeyError(f"Invalid register: {reg}")
        return reg

    def get_register(self, reg: RegisterRef) -> int:
        return self.registers[self.register_index(reg)]

    def set_register(self, reg: RegisterRef, value: int) -> None:
        """Store a value in a register, truncated to 16 bits."""
        self.registers[self.register_index(reg)] = value & WORD_MASK

    def update_condition(self, reg: RegisterRef) -> None:
        """Recompute COND from the signed value of a register.

        Bit 15 set means negative, zero means zero, anything else positive.
        """
        value = self.get_register(reg)
        if value == 0:
            self.cond = FL_ZRO
        elif value >> 15:
            self.cond = FL_NEG
        else:
            self.cond = FL_POS

    def increment_pc(self) -> None:
        self.pc = (self.pc + 1) & WORD_MASK

    def set_pc(self, new_pc: int) -> None:
        self.pc = new_pc & WORD_MASK

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed by name.

        Returns:
            Dictionary of register names (R0-R7) to values
        """
        return {f"R{i}": value for i, value in enumerate(self.registers)}

    # =========================================================================
    # Address space
    # =========================================================================

    def mem_read(self, address: int) -> int:
        return self.memory[address & WORD_MASK]

    def mem_write(self, address: int, value: int) -> None:
        self.memory[address & WORD_MASK] = value & WORD_MASK

    def load_words(self, origin: int, words: List[int]) -> int:
        """Copy words into memory starting at origin.

        Words that would run past the end of the address space are dropped.

        Returns:
            Number of words actually stored
        """
        origin &= WORD_MASK
        count = min(len(words), MEMORY_SIZE - origin)
        self.memory[origin:origin + count] = [w & WORD_MASK for w in words[:count]]
        return count

    def __str__(self) -> str:
        """Human-readable state representation."""
        regs = " ".join(f"R{i}=0x{v:04X}" for i, v in enumerate(self.registers))
        halted = " HALTED" if self.halted else ""
        return (
            f"[Cycle {self.cycle_count}] PC=0x{self.pc:04X} {regs} "
            f"COND={COND_NAMES.get(self.cond, '?')}{halted}"
        )


def create_initial_state() -> MachineState:
    """Create a fresh machine with zeroed registers and memory.

    Returns:
        MachineState with COND set to Z
    """
    return MachineState(
        registers=[0] * REGISTER_COUNT,
        pc=0,
        cond=FL_ZRO,
        memory=[0] * MEMORY_SIZE,
        halted=False,
        cycle_count=0,
    )
