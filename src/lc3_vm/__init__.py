"""LC3-VM: a behavioral interpreter for the LC-3 16-bit instruction set.

Loads big-endian program images into a 65536-word address space and runs
them through a fetch-decode-execute cycle until the HALT trap.

Architecture:
    IMAGE -> LOADER -> MEMORY -> FETCH -> DECODE -> KEY -> REGISTRY -> STATE
                                                     |
                                                 OP_TRAP -> TRAPS -> I/O

Modules:
    state: MachineState register file and address space
    decode: sign_extend and the InstructionDecoder
    registry: Verified opcode primitives (OP_ADD, OP_LDI, ...)
    traps: TrapDispatcher for GETC, OUT, PUTS, IN, PUTSP, HALT
    loader: Image file loading
    cpu: LC3CPU run controller
    terminal: Scoped cbreak terminal mode
    cli: `lc3` command line entry point
"""

__version__ = "0.1.0"
__author__ = "LC3-VM Project"

from .state import MachineState, FL_POS, FL_ZRO, FL_NEG
from .decode import InstructionDecoder, DecodeResult, sign_extend
from .registry import OpcodeRegistry
from .traps import TrapDispatcher
from .loader import LoadedImage, load_image
from .errors import LC3Error, ImageLoadError, IllegalInstruction, IOFailure
from .cpu import LC3CPU, RunResult, StopReason, PC_START

__all__ = [
    "MachineState", "FL_POS", "FL_ZRO", "FL_NEG",
    "InstructionDecoder", "DecodeResult", "sign_extend",
    "OpcodeRegistry", "TrapDispatcher", "LoadedImage", "load_image",
    "LC3Error", "ImageLoadError", "IllegalInstruction", "IOFailure",
    "LC3CPU", "RunResult", "StopReason", "PC_START",
]
