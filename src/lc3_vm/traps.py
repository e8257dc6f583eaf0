"""TrapDispatcher: the six built-in I/O trap routines.

The dispatcher is the only place the VM touches the outside world. It
works against a binary input stream and a binary output stream, so a
terminal, a file or an in-memory buffer can stand in interchangeably.

Trap Vectors:
    0x20 GETC: Read one character into R0, no echo
    0x21 OUT: Write the low byte of R0
    0x22 PUTS: Write one character per cell from address R0 until a zero cell
    0x23 IN: Prompt, read one character, echo it, store in R0
    0x24 PUTSP: Write two packed characters per cell from address R0
    0x25 HALT: Write a halt notice and stop the machine
"""

import logging
import sys
from typing import BinaryIO, Callable, Dict, Optional

from .errors import IOFailure
from .state import MachineState


logger = logging.getLogger(__name__)

TRAP_GETC = 0x20
TRAP_OUT = 0x21
TRAP_PUTS = 0x22
TRAP_IN = 0x23
TRAP_PUTSP = 0x24
TRAP_HALT = 0x25

TRAP_NAMES = {
    TRAP_GETC: "GETC",
    TRAP_OUT: "OUT",
    TRAP_PUTS: "PUTS",
    TRAP_IN: "IN",
    TRAP_PUTSP: "PUTSP",
    TRAP_HALT: "HALT",
}

IN_PROMPT = b"Enter a character: "
HALT_NOTICE = b"HALT\n"


class TrapDispatcher:
    """Dispatches TRAP vectors to I/O routines.

    Attributes:
        input_stream: Binary stream GETC and IN read from
        output_stream: Binary stream every writing trap writes to
    """

    def __init__(
        self,
        input_stream: Optional[BinaryIO] = None,
        output_stream: Optional[BinaryIO] = None
    ):
        self.input_stream = input_stream if input_stream is not None else sys.stdin.buffer
        self.output_stream = output_stream if output_stream is not None else sys.stdout.buffer
        self._routines: Dict[int, Callable[[MachineState], None]] = {
            TRAP_GETC: self._trap_getc,
            TRAP_OUT: self._trap_out,
            TRAP_PUTS: self._trap_puts,
            TRAP_IN: self._trap_in,
            TRAP_PUTSP: self._trap_putsp,
            TRAP_HALT: self._trap_halt,
        }

    def is_defined(self, vector: int) -> bool:
        return vector in self._routines

    def dispatch(self, state: MachineState, vector: int) -> None:
        """Run the routine for a trap vector.

        Args:
            state: Machine state (R7 already holds the return address)
            vector: 8-bit trap vector

        Raises:
            KeyError: If the vector has no routine
            IOFailure: If a stream read or write fails
        """
        if vector not in self._routines:
            raise KeyError(f"Undefined trap vector: 0x{vector:02X}")
        self._routines[vector](state)

    # =========================================================================
    # Stream helpers
    # =========================================================================

    def _read_char(self) -> int:
        try:
            data = self.input_stream.read(1)
        except OSError as e:
            raise IOFailure(f"input stream read failed: {e}") from e
        if not data:
            raise IOFailure("end of input")
        return data[0]

    def _write(self, data: bytes) -> None:
        try:
            self.output_stream.write(data)
            self.output_stream.flush()
        except OSError as e:
            raise IOFailure(f"output stream write failed: {e}") from e

    # =========================================================================
    # Trap routines
    # =========================================================================

    def _trap_getc(self, state: MachineState) -> None:
        state.set_register(0, self._read_char())
        state.update_condition(0)

    def _trap_out(self, state: MachineState) -> None:
        self._write(bytes([state.get_register(0) & 0xFF]))

    def _trap_puts(self, state: MachineState) -> None:
        out = bytearray()
        address = state.get_register(0)
        cell = state.mem_read(address)
        while cell:
            out.append(cell & 0xFF)
            address += 1
            cell = state.mem_read(address)
        self._write(bytes(out))

    def _trap_in(self, state: MachineState) -> None:
        self._write(IN_PROMPT)
        char = self._read_char()
        self._write(bytes([char]))
        state.set_register(0, char)
        state.update_condition(0)

    def _trap_putsp(self, state: MachineState) -> None:
        """Write packed characters, low byte first, until a zero cell.

        A zero high byte is skipped rather than ending the string.
        """
        out = bytearray()
        address = state.get_register(0)
        cell = state.mem_read(address)
        while cell:
            out.append(cell & 0xFF)
            high = cell >> 8
            if high:
                out.append(high)
            address += 1
            cell = state.mem_read(address)
        self._write(bytes(out))

    def _trap_halt(self, state: MachineState) -> None:
        self._write(HALT_NOTICE)
        state.halted = True
        logger.info("HALT after %d cycles", state.cycle_count + 1)
