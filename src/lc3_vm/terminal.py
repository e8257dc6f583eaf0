"""Scoped terminal mode for interactive runs.

GETC must see keys as they are typed, without waiting for Enter and
without the terminal echoing them. `raw_terminal()` switches a tty stdin
to cbreak mode and restores the saved settings however the block exits
(HALT, an error, or Ctrl-C).
"""

import logging
import os
import sys
from contextlib import contextmanager
from typing import Iterator, Optional, TextIO


logger = logging.getLogger(__name__)


@contextmanager
def raw_terminal(stream: Optional[TextIO] = None) -> Iterator[bool]:
    """Put a tty into cbreak mode for the duration of the block.

    Args:
        stream: Terminal input (defaults to sys.stdin)

    Yields:
        True if the terminal mode was changed, False if nothing was done
        (not a tty, or no termios on this platform)
    """
    stream = stream if stream is not None else sys.stdin
    try:
        fd = stream.fileno()
    except (AttributeError, OSError, ValueError):
        yield False
        return

    if not os.isatty(fd):
        yield False
        return

    try:
        import termios
        import tty
    except ImportError:
        logger.debug("termios unavailable; leaving terminal mode unchanged")
        yield False
        return

    old_settings = termios.tcgetattr(fd)
    try:
        # cbreak keeps ISIG, so Ctrl-C still raises KeyboardInterrupt
        tty.setcbreak(fd)
        yield True
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
