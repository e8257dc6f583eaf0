"""OpcodeRegistry: verified opcode primitives for the LC-3 VM.

Each decoded operation key maps to exactly one handler that mutates a
MachineState in a fixed, auditable way. The registry is frozen after
initialization so no handler can be swapped at runtime.

Registry Keys:
    OP_BR: Conditional PC-relative branch
    OP_ADD: Add register or imm5 to register
    OP_LD: PC-relative load
    OP_ST: PC-relative store
    OP_JSR: Jump to subroutine (PC-relative or register)
    OP_AND: Bitwise AND with register or imm5
    OP_LDR: Base+offset load
    OP_STR: Base+offset store
    OP_NOT: Bitwise complement
    OP_LDI: Indirect load
    OP_STI: Indirect store
    OP_JMP: Jump to register (RET when base is R7)
    OP_LEA: Load effective address
    OP_TRAP: Save return address; the trap routine itself runs in TrapDispatcher

Handlers run after the fetch has already incremented PC. All results are
truncated to 16 bits.
"""

from typing import Any, Callable, Dict, Optional

from .state import MachineState


Handler = Callable[[MachineState, Dict[str, Any]], None]


class OpcodeRegistry:
    """Verified registry of LC-3 opcode primitives.

    Attributes:
        _primitives: Dictionary mapping operation keys to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        """Initialize registry with all opcode primitives."""
        self._primitives: Dict[str, Handler] = {}
        self._frozen = False
        self._register_all_primitives()
        self.freeze()

    def _register_all_primitives(self) -> None:
        """Register all opcode primitives."""
        # Operate
        self.register("OP_ADD", self._op_add)
        self.register("OP_AND", self._op_and)
        self.register("OP_NOT", self._op_not)

        # Data movement
        self.register("OP_LD", self._op_ld)
        self.register("OP_LDI", self._op_ldi)
        self.register("OP_LDR", self._op_ldr)
        self.register("OP_LEA", self._op_lea)
        self.register("OP_ST", self._op_st)
        self.register("OP_STI", self._op_sti)
        self.register("OP_STR", self._op_str)

        # Control
        self.register("OP_BR", self._op_br)
        self.register("OP_JMP", self._op_jmp)
        self.register("OP_JSR", self._op_jsr)
        self.register("OP_TRAP", self._op_trap)

    def register(self, key: str, handler: Handler) -> None:
        """Register a primitive operation.

        Args:
            key: Operation key (e.g., "OP_ADD")
            handler: Function that takes (state, params) and mutates state

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register primitives: registry is frozen")
        if key in self._primitives:
            raise ValueError(f"Primitive already registered: {key}")
        self._primitives[key] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_keys(self) -> set:
        return set(self._primitives.keys())

    def execute(self, state: MachineState, key: str, params: Dict[str, Any]) -> None:
        """Execute a registered primitive against state.

        Args:
            state: Machine state, PC already pointing past the instruction
            key: Operation key
            params: Decoded operation parameters

        Raises:
            KeyError: If key not in registry
        """
        if key not in self._primitives:
            raise KeyError(f"Unknown operation key: {key}")
        self._primitives[key](state, params)

    # =========================================================================
    # Operate Primitives
    # =========================================================================

    def _second_operand(self, state: MachineState, params: Dict[str, Any]) -> int:
        if params["imm"]:
            return params["value"]
        return state.get_register(params["src2"])

    def _op_add(self, state: MachineState, params: Dict[str, Any]) -> None:
        """ADD DR, SR1, SR2|imm5 - Sum wraps modulo 65536."""
        dest = params["dest"]
        result = state.get_register(params["src1"]) + self._second_operand(state, params)
        state.set_register(dest, result)
        state.update_condition(dest)

    def _op_and(self, state: MachineState, params: Dict[str, Any]) -> None:
        """AND DR, SR1, SR2|imm5 - Bitwise AND."""
        dest = params["dest"]
        result = state.get_register(params["src1"]) & self._second_operand(state, params)
        state.set_register(dest, result)
        state.update_condition(dest)

    def _op_not(self, state: MachineState, params: Dict[str, Any]) -> None:
        """NOT DR, SR - Bitwise complement."""
        dest = params["dest"]
        state.set_register(dest, ~state.get_register(params["src"]))
        state.update_condition(dest)

    # =========================================================================
    # Data Movement Primitives
    # =========================================================================

    def _op_ld(self, state: MachineState, params: Dict[str, Any]) -> None:
        """LD DR, PCoffset9 - DR = mem[PC + offset]."""
        dest = params["dest"]
        state.set_register(dest, state.mem_read(state.pc + params["offset"]))
        state.update_condition(dest)

    def _op_ldi(self, state: MachineState, params: Dict[str, Any]) -> None:
        """LDI DR, PCoffset9 - DR = mem[mem[PC + offset]]."""
        dest = params["dest"]
        pointer = state.mem_read(state.pc + params["offset"])
        state.set_register(dest, state.mem_read(pointer))
        state.update_condition(dest)

    def _op_ldr(self, state: MachineState, params: Dict[str, Any]) -> None:
        """LDR DR, BaseR, offset6 - DR = mem[BaseR + offset]."""
        dest = params["dest"]
        address = state.get_register(params["base"]) + params["offset"]
        state.set_register(dest, state.mem_read(address))
        state.update_condition(dest)

    def _op_lea(self, state: MachineState, params: Dict[str, Any]) -> None:
        """LEA DR, PCoffset9 - DR = PC + offset (no memory access)."""
        dest = params["dest"]
        state.set_register(dest, state.pc + params["offset"])
        state.update_condition(dest)

    def _op_st(self, state: MachineState, params: Dict[str, Any]) -> None:
        """ST SR, PCoffset9 - mem[PC + offset] = SR."""
        state.mem_write(state.pc + params["offset"], state.get_register(params["src"]))

    def _op_sti(self, state: MachineState, params: Dict[str, Any]) -> None:
        """STI SR, PCoffset9 - mem[mem[PC + offset]] = SR."""
        pointer = state.mem_read(state.pc + params["offset"])
        state.mem_write(pointer, state.get_register(params["src"]))

    def _op_str(self, state: MachineState, params: Dict[str, Any]) -> None:
        """STR SR, BaseR, offset6 - mem[BaseR + offset] = SR."""
        address = state.get_register(params["base"]) + params["offset"]
        state.mem_write(address, state.get_register(params["src"]))

    # =========================================================================
    # Control Primitives
    # =========================================================================

    def _op_br(self, state: MachineState, params: Dict[str, Any]) -> None:
        """BR[n][z][p] PCoffset9 - Branch if any tested flag is set."""
        if params["cond"] & state.cond:
            state.set_pc(state.pc + params["offset"])

    def _op_jmp(self, state: MachineState, params: Dict[str, Any]) -> None:
        """JMP BaseR - PC = BaseR."""
        state.set_pc(state.get_register(params["base"]))

    def _op_jsr(self, state: MachineState, params: Dict[str, Any]) -> None:
        """JSR PCoffset11 / JSRR BaseR - Save PC in R7, then jump."""
        # R7 is written first, so JSRR R7 jumps to the saved PC
        state.set_register(7, state.pc)
        if params["long"]:
            state.set_pc(state.pc + params["offset"])
        else:
            state.set_pc(state.get_register(params["base"]))

    def _op_trap(self, state: MachineState, params: Dict[str, Any]) -> None:
        """TRAP trapvect8 - Save return address in R7."""
        state.set_register(7, state.pc)


# Singleton registry instance
_registry: Optional[OpcodeRegistry] = None


def get_registry() -> OpcodeRegistry:
    """Get the singleton opcode registry instance.

    Returns:
        The frozen OpcodeRegistry instance
    """
    global _registry
    if _registry is None:
        _registry = OpcodeRegistry()
    return _registry
