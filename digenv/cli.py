"""
Command line entry point.

Usage: digenv [GREP ARGUMENTS...]

Every argument is handed to grep(1) unchanged, digenv has no options of its
own. The pager is taken from $PAGER, falling back to less(1), then more(1).

Exit status: 0 if every stage succeeded, 1 if a system call failed or a
program could not be launched, 2 if a stage was killed by a signal,
otherwise the first non-zero status reported by a stage.
"""

import os
import sys
from typing import List, Optional

from .diagnostics import configure_logging
from .pipeline import run_digenv


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    configure_logging(os.environ)
    return run_digenv(argv)


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == '__main__':
    run()
