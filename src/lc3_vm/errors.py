"""Error taxonomy for the LC-3 virtual machine.

Every fatal condition the VM can hit is one of these types. The run loop
never swallows them: `LC3CPU.step()` raises them and `LC3CPU.run()`
returns them inside a `RunResult`.
"""

from typing import Optional


class LC3Error(Exception):
    """Base class for all VM errors."""


class ImageLoadError(LC3Error):
    """An image file could not be opened or parsed.

    Attributes:
        path: Path of the image that failed
        reason: Human readable cause
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"failed to load image: {path} ({reason})")


class IllegalInstruction(LC3Error):
    """A reserved opcode or undefined trap vector was executed.

    Attributes:
        instruction: The raw 16-bit instruction word
        address: Address the instruction was fetched from
        reason: What made it illegal
    """

    def __init__(self, instruction: int, address: int, reason: str):
        self.instruction = instruction
        self.address = address
        self.reason = reason
        super().__init__(
            f"illegal instruction 0x{instruction:04X} at 0x{address:04X}: {reason}"
        )


class IOFailure(LC3Error):
    """The input or output stream failed (e.g. end of input on GETC)."""

    def __init__(self, reason: str, vector: Optional[int] = None):
        self.reason = reason
        self.vector = vector
        super().__init__(reason)
