"""Tests for the TrapDispatcher I/O routines."""

import io
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from lc3_vm.errors import IOFailure
from lc3_vm.state import MachineState, FL_POS, FL_ZRO
from lc3_vm.traps import (
    TrapDispatcher, TRAP_GETC, TRAP_OUT, TRAP_PUTS, TRAP_IN, TRAP_PUTSP, TRAP_HALT,
    IN_PROMPT, HALT_NOTICE,
)


def make_dispatcher(stdin=b""):
    return TrapDispatcher(io.BytesIO(stdin), io.BytesIO())


def output_of(dispatcher):
    return dispatcher.output_stream.getvalue()


def store_string(state, address, text):
    for offset, char in enumerate(text):
        state.mem_write(address + offset, ord(char))
    state.mem_write(address + len(text), 0)


class TestDispatch:
    """Test vector lookup."""

    def test_defined_vectors(self):
        dispatcher = make_dispatcher()
        for vector in range(0x20, 0x26):
            assert dispatcher.is_defined(vector)
        assert not dispatcher.is_defined(0x26)
        assert not dispatcher.is_defined(0x00)

    def test_undefined_vector_raises(self):
        with pytest.raises(KeyError):
            make_dispatcher().dispatch(MachineState(), 0x19)


class TestInputTraps:
    """Test GETC and IN."""

    def test_getc_reads_without_echo(self):
        dispatcher = make_dispatcher(b"ab")
        state = MachineState()
        dispatcher.dispatch(state, TRAP_GETC)
        assert state.get_register(0) == ord("a")
        assert state.cond == FL_POS
        assert output_of(dispatcher) == b""

    def test_getc_nul_sets_zero(self):
        dispatcher = make_dispatcher(b"\x00")
        state = MachineState(cond=FL_POS)
        dispatcher.dispatch(state, TRAP_GETC)
        assert state.get_register(0) == 0
        assert state.cond == FL_ZRO

    def test_getc_end_of_input(self):
        state = MachineState()
        state.set_register(0, 7)
        with pytest.raises(IOFailure, match="end of input"):
            make_dispatcher(b"").dispatch(state, TRAP_GETC)
        assert state.get_register(0) == 7

    def test_in_prompts_and_echoes(self):
        dispatcher = make_dispatcher(b"x")
        state = MachineState()
        dispatcher.dispatch(state, TRAP_IN)
        assert state.get_register(0) == ord("x")
        assert state.cond == FL_POS
        assert output_of(dispatcher) == IN_PROMPT + b"x"

    def test_in_end_of_input(self):
        with pytest.raises(IOFailure):
            make_dispatcher(b"").dispatch(MachineState(), TRAP_IN)


class TestOutputTraps:
    """Test OUT, PUTS, PUTSP and HALT."""

    def test_out_writes_low_byte(self):
        dispatcher = make_dispatcher()
        state = MachineState()
        state.set_register(0, 0x1241)
        dispatcher.dispatch(state, TRAP_OUT)
        assert output_of(dispatcher) == b"A"
        assert state.cond == FL_ZRO

    def test_puts(self):
        dispatcher = make_dispatcher()
        state = MachineState()
        store_string(state, 0x4000, "Hello, World!\n")
        state.set_register(0, 0x4000)
        dispatcher.dispatch(state, TRAP_PUTS)
        assert output_of(dispatcher) == b"Hello, World!\n"

    def test_puts_empty(self):
        dispatcher = make_dispatcher()
        dispatcher.dispatch(MachineState(), TRAP_PUTS)
        assert output_of(dispatcher) == b""

    def test_puts_wraps_address_space(self):
        dispatcher = make_dispatcher()
        state = MachineState()
        state.mem_write(0xFFFF, ord("h"))
        state.mem_write(0x0000, ord("i"))
        state.set_register(0, 0xFFFF)
        dispatcher.dispatch(state, TRAP_PUTS)
        assert output_of(dispatcher) == b"hi"

    def test_putsp_packed(self):
        """Low byte first, then high byte."""
        dispatcher = make_dispatcher()
        state = MachineState()
        state.mem_write(0x4000, ord("e") << 8 | ord("H"))
        state.mem_write(0x4001, ord("l") << 8 | ord("l"))
        state.mem_write(0x4002, ord("o"))
        state.mem_write(0x4003, ord("!"))
        state.set_register(0, 0x4000)
        dispatcher.dispatch(state, TRAP_PUTSP)
        assert output_of(dispatcher) == b"Hello!"

    def test_putsp_even_length(self):
        dispatcher = make_dispatcher()
        state = MachineState()
        state.mem_write(0x4000, ord("i") << 8 | ord("h"))
        state.set_register(0, 0x4000)
        dispatcher.dispatch(state, TRAP_PUTSP)
        assert output_of(dispatcher) == b"hi"

    def test_putsp_zero_high_byte_does_not_end_string(self):
        """Only a zero cell ends the string."""
        dispatcher = make_dispatcher()
        state = MachineState()
        state.mem_write(0x4000, ord("o"))
        state.mem_write(0x4001, ord("!"))
        state.set_register(0, 0x4000)
        dispatcher.dispatch(state, TRAP_PUTSP)
        assert output_of(dispatcher) == b"o!"

    def test_putsp_empty(self):
        dispatcher = make_dispatcher()
        dispatcher.dispatch(MachineState(), TRAP_PUTSP)
        assert output_of(dispatcher) == b""

    def test_halt(self):
        dispatcher = make_dispatcher()
        state = MachineState()
        dispatcher.dispatch(state, TRAP_HALT)
        assert state.halted is True
        assert output_of(dispatcher) == HALT_NOTICE

    def test_write_failure_is_io_failure(self):
        class BrokenStream(io.RawIOBase):
            def writable(self):
                return True

            def write(self, data):
                raise OSError("broken pipe")

        dispatcher = TrapDispatcher(io.BytesIO(), BrokenStream())
        with pytest.raises(IOFailure, match="broken pipe"):
            dispatcher.dispatch(MachineState(), TRAP_OUT)
