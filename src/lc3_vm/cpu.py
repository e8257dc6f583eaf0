"""LC3CPU: run controller for the LC-3 virtual machine.

This module ties the pieces into the fetch-decode-execute cycle:
    MEMORY -> FETCH -> DECODE -> KEY -> REGISTRY -> EXECUTE -> STATE
                                  |
                              OP_TRAP -> TrapDispatcher -> I/O streams

`step()` executes exactly one instruction and raises typed errors.
`run()` resets PC and COND, then drives `step()` until HALT or a fatal
condition and reports how it stopped as a RunResult.
"""

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, TextIO, Union

from .decode import DecodeResult, InstructionDecoder
from .errors import IllegalInstruction, IOFailure, LC3Error
from .loader import LoadedImage, load_image, load_image_bytes
from .registry import get_registry
from .state import COND_NAMES, FL_ZRO, MachineState, create_initial_state
from .traps import TRAP_NAMES, TrapDispatcher


logger = logging.getLogger(__name__)

# Memory below this is reserved for trap/OS code
PC_START = 0x3000


class StopReason(Enum):
    HALT = "HALT"
    ILLEGAL = "ILLEGAL"
    IO_ERROR = "IO_ERROR"
    MAX_CYCLES = "MAX_CYCLES"


@dataclass
class RunResult:
    """How a run ended.

    Attributes:
        reason: Why the run loop stopped
        cycles: Instructions completed during this run
        error: The IllegalInstruction or IOFailure that stopped it, if any
    """
    reason: StopReason
    cycles: int
    error: Optional[LC3Error] = None

    @property
    def halted(self) -> bool:
        return self.reason is StopReason.HALT


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        address: Address the instruction was fetched from
        instruction: Raw instruction word
        decode_result: Result from the decoder
        pre_state: Register snapshot before execution
        post_state: Register snapshot after execution
        error: Error message if execution failed
    """
    cycle: int
    address: int
    instruction: int
    decode_result: DecodeResult
    pre_state: dict
    post_state: dict
    error: Optional[str] = None


class LC3CPU:
    """LC-3 virtual machine.

    Attributes:
        decoder: InstructionDecoder for instruction words
        registry: OpcodeRegistry with verified primitives
        traps: TrapDispatcher bound to the I/O streams
        state: Register file and address space
        trace: Execution trace entries (only filled when trace=True)
        max_cycles: Default cycle limit per run, None for unbounded
        images: Images loaded so far, in load order
    """

    def __init__(
        self,
        input_stream: Optional[BinaryIO] = None,
        output_stream: Optional[BinaryIO] = None,
        max_cycles: Optional[int] = None,
        trace: bool = False
    ):
        """Initialize the VM.

        Args:
            input_stream: Binary stream for GETC/IN (default: stdin)
            output_stream: Binary stream for output traps (default: stdout)
            max_cycles: Safety limit on instructions per run
            trace: Record an ExecutionTraceEntry for every cycle
        """
        self.decoder = InstructionDecoder()
        self.registry = get_registry()
        self.traps = TrapDispatcher(input_stream, output_stream)
        self.state: MachineState = create_initial_state()
        self.trace_enabled = trace
        self.trace: List[ExecutionTraceEntry] = []
        self.max_cycles = max_cycles
        self.images: List[LoadedImage] = []

    # =========================================================================
    # Loading
    # =========================================================================

    def load_image(self, path: Union[str, Path]) -> LoadedImage:
        """Load an image file, overlaying whatever is already in memory.

        Raises:
            ImageLoadError: If the file cannot be read
        """
        image = load_image(self.state, path)
        self.images.append(image)
        return image

    def load_image_bytes(self, data: bytes, path: str = "<bytes>") -> LoadedImage:
        image = load_image_bytes(self.state, data, path)
        self.images.append(image)
        return image

    def load_words(self, origin: int, words: List[int]) -> int:
        """Store words directly into memory starting at origin."""
        return self.state.load_words(origin, words)

    # =========================================================================
    # Execution
    # =========================================================================

    def step(self) -> DecodeResult:
        """Execute a single instruction cycle.

        Performs: FETCH -> DECODE -> EXECUTE (-> TRAP)

        Returns:
            DecodeResult of the executed instruction

        Raises:
            RuntimeError: If the machine is halted
            IllegalInstruction: Reserved opcode or undefined trap vector
            IOFailure: A trap routine's stream failed; PC and R7 are left
                as they were before the TRAP so it can be retried
        """
        state = self.state
        if state.halted:
            raise RuntimeError("CPU is halted")

        # FETCH
        address = state.pc
        instruction = state.mem_read(address)
        pre_state = state.snapshot() if self.trace_enabled else {}
        state.increment_pc()

        # DECODE
        decode_result = self.decoder.decode(instruction)

        # EXECUTE
        try:
            if not decode_result.valid:
                raise IllegalInstruction(instruction, address, decode_result.error)
            if decode_result.key == "OP_TRAP":
                self._execute_trap(address, instruction, decode_result)
            else:
                self.registry.execute(state, decode_result.key, decode_result.params)
        except LC3Error as e:
            logger.info("%s", e)
            self._record(address, instruction, decode_result, pre_state, str(e))
            raise

        state.cycle_count += 1
        self._record(address, instruction, decode_result, pre_state)
        return decode_result

    def _execute_trap(self, address: int, instruction: int, decode_result: DecodeResult) -> None:
        vector = decode_result.params["vector"]
        if not self.traps.is_defined(vector):
            raise IllegalInstruction(
                instruction, address, f"undefined trap vector 0x{vector:02X}"
            )

        saved_r7 = self.state.get_register(7)
        self.registry.execute(self.state, decode_result.key, decode_result.params)
        try:
            self.traps.dispatch(self.state, vector)
        except IOFailure as e:
            e.vector = vector
            # Rewind so resume() re-executes the TRAP
            self.state.set_register(7, saved_r7)
            self.state.set_pc(address)
            raise

    def _record(
        self,
        address: int,
        instruction: int,
        decode_result: DecodeResult,
        pre_state: dict,
        error: Optional[str] = None
    ) -> None:
        if not self.trace_enabled:
            return
        self.trace.append(ExecutionTraceEntry(
            cycle=self.state.cycle_count - (0 if error else 1),
            address=address,
            instruction=instruction,
            decode_result=decode_result,
            pre_state=pre_state,
            post_state=self.state.snapshot(),
            error=error,
        ))

    def run(self, max_cycles: Optional[int] = None) -> RunResult:
        """Run a loaded program from PC_START until HALT or a fatal error.

        COND is reset to Z and PC to PC_START; registers and memory are
        left as loaded.

        Args:
            max_cycles: Override the instance cycle limit

        Returns:
            RunResult describing why execution stopped
        """
        self.state.cond = FL_ZRO
        self.state.set_pc(PC_START)
        self.state.halted = False
        return self.resume(max_cycles)

    def resume(self, max_cycles: Optional[int] = None) -> RunResult:
        """Continue from the current PC without resetting anything.

        Args:
            max_cycles: Override the instance cycle limit

        Returns:
            RunResult describing why execution stopped
        """
        limit = max_cycles if max_cycles is not None else self.max_cycles
        executed = 0

        while not self.state.halted:
            if limit is not None and executed >= limit:
                logger.warning("max cycles (%d) exceeded", limit)
                return RunResult(StopReason.MAX_CYCLES, executed)
            try:
                self.step()
            except IllegalInstruction as e:
                return RunResult(StopReason.ILLEGAL, executed, e)
            except IOFailure as e:
                return RunResult(StopReason.IO_ERROR, executed, e)
            executed += 1

        return RunResult(StopReason.HALT, executed)

    # =========================================================================
    # Accessors
    # =========================================================================

    def get_register(self, reg: Union[int, str]) -> int:
        return self.state.get_register(reg)

    def set_register(self, reg: Union[int, str], value: int) -> None:
        self.state.set_register(reg, value)

    def dump_registers(self) -> Dict[str, int]:
        return self.state.dump_registers()

    def get_pc(self) -> int:
        return self.state.pc

    def get_cond(self) -> int:
        return self.state.cond

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def is_halted(self) -> bool:
        return self.state.halted

    def read_memory(self, address: int) -> int:
        return self.state.mem_read(address)

    def write_memory(self, address: int, value: int) -> None:
        self.state.mem_write(address, value)

    # =========================================================================
    # Reporting
    # =========================================================================

    def print_trace(self, stream: Optional[TextIO] = None) -> None:
        """Print execution trace in human-readable format."""
        out = stream if stream is not None else sys.stdout
        print("=" * 70, file=out)
        print("LC-3 EXECUTION TRACE", file=out)
        print("=" * 70, file=out)

        for entry in self.trace:
            status = "OK" if not entry.error else f"ERROR: {entry.error}"
            key = entry.decode_result.key
            if key == "OP_TRAP":
                vector = entry.decode_result.params["vector"]
                key = f"{key} {TRAP_NAMES.get(vector, f'0x{vector:02X}')}"
            print(f"\n[Cycle {entry.cycle}] {status}", file=out)
            print(f"  0x{entry.address:04X}: 0x{entry.instruction:04X} {key}", file=out)

            pre_regs = entry.pre_state.get("registers", [])
            post_regs = entry.post_state.get("registers", [])
            changes = [
                f"R{i}: 0x{before:04X} -> 0x{after:04X}"
                for i, (before, after) in enumerate(zip(pre_regs, post_regs))
                if before != after
            ]
            if changes:
                print(f"  Changes: {', '.join(changes)}", file=out)

            pre_cond = entry.pre_state.get("cond")
            post_cond = entry.post_state.get("cond")
            if pre_cond != post_cond:
                print(f"  COND: {COND_NAMES[pre_cond]} -> {COND_NAMES[post_cond]}", file=out)

        print("\n" + "=" * 70, file=out)
        print("FINAL STATE", file=out)
        print("=" * 70, file=out)
        print(f"  {self.state}", file=out)

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "registers": self.dump_registers(),
            "cond": COND_NAMES[self.state.cond],
            "pc": self.get_pc(),
            "images": [(i.path, i.origin, i.word_count) for i in self.images],
            "trace_length": len(self.trace),
            "errors": [e.error for e in self.trace if e.error],
        }
