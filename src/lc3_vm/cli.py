"""LC3-VM Command Line Interface.

Load one or more LC-3 images and run them.

Usage:
    lc3 programs/2048.obj
    lc3 os.obj program.obj --max-cycles 1000000 --trace

Exit codes:
    0    program executed HALT
    1    an image could not be loaded
    2    bad command line (no image given)
    3    illegal instruction
    4    input/output failure (e.g. end of input)
    5    cycle limit reached
    254  interrupted with Ctrl-C
"""

import argparse
import logging
import sys
from typing import List, Optional

from .cpu import LC3CPU, StopReason
from .errors import ImageLoadError, IOFailure
from .terminal import raw_terminal
from .traps import TRAP_NAMES


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_LOAD_FAILURE = 1
EXIT_ILLEGAL = 3
EXIT_IO_FAILURE = 4
EXIT_MAX_CYCLES = 5
EXIT_INTERRUPTED = 254

STOP_EXIT_CODES = {
    StopReason.HALT: EXIT_OK,
    StopReason.ILLEGAL: EXIT_ILLEGAL,
    StopReason.IO_ERROR: EXIT_IO_FAILURE,
    StopReason.MAX_CYCLES: EXIT_MAX_CYCLES,
}

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lc3",
        description="LC3-VM: LC-3 virtual machine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run a program image
    lc3 hello.obj

    # Load an OS image first, then a program over it
    lc3 os.obj program.obj

    # Stop after a million instructions and dump the trace
    lc3 program.obj --max-cycles 1000000 --trace
        """
    )

    parser.add_argument(
        "images",
        nargs="+",
        metavar="image-file",
        help="LC-3 image files, loaded in order"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Maximum instructions to execute (safety limit). Default: unlimited"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace to stderr after the run"
    )
    parser.add_argument(
        "--stats", "-s",
        action="store_true",
        help="Print final registers and cycle count to stderr"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=sorted(LOG_LEVELS),
        default="warning",
        help="Logging level. Default: warning"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    # argparse exits with status 2 and a usage line when no image is given
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=LOG_LEVELS[args.log_level],
        format="%(levelname)s:%(name)s:%(message)s",
        stream=sys.stderr,
    )

    cpu = LC3CPU(max_cycles=args.max_cycles, trace=args.trace)

    try:
        for path in args.images:
            try:
                cpu.load_image(path)
            except ImageLoadError as e:
                logger.debug("%s", e)
                print(f"failed to load image: {path}")
                return EXIT_LOAD_FAILURE

        with raw_terminal():
            result = cpu.run()
    except KeyboardInterrupt:
        print()
        return EXIT_INTERRUPTED

    if isinstance(result.error, IOFailure) and result.error.vector is not None:
        name = TRAP_NAMES.get(result.error.vector, "TRAP")
        print(f"\n{name} (0x{result.error.vector:02X}): {result.error}", file=sys.stderr)
    elif result.error is not None:
        print(f"\n{result.error}", file=sys.stderr)
    elif result.reason is StopReason.MAX_CYCLES:
        print(f"\nmax cycles ({args.max_cycles}) exceeded", file=sys.stderr)

    if args.trace:
        cpu.print_trace(sys.stderr)
    if args.stats:
        summary = cpu.get_summary()
        print(f"Cycles: {summary['cycles']}", file=sys.stderr)
        print(f"Halted: {summary['halted']}", file=sys.stderr)
        print(f"Registers: {summary['registers']}", file=sys.stderr)
        print(f"COND: {summary['cond']}  PC: 0x{summary['pc']:04X}", file=sys.stderr)

    return STOP_EXIT_CODES[result.reason]


if __name__ == "__main__":
    sys.exit(main())
