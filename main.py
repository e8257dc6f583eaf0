#!/usr/bin/env python3
"""LC3-VM Command Line Interface.

Run LC-3 program images without installing the package.

Usage:
    python main.py programs/hello.obj
    python main.py os.obj program.obj --trace
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from lc3_vm.cli import main


if __name__ == "__main__":
    sys.exit(main())
