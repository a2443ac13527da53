"""
Program replacement for forked stage processes.

os.execvpe() does not return when it succeeds. exec_first() turns the
fallback chain into a plain loop: each failed attempt yields its OSError
and the next candidate is tried; only when all of them failed does control
come back to the caller, together with the last error.
"""

import os
import signal
from typing import Callable, List, Mapping, Optional, Sequence

# Python ignores these at startup and exec() preserves ignored dispositions.
# A stage must die of SIGPIPE when its reader goes away, like under a shell.
RESTORED_SIGNALS = ('SIGPIPE', 'SIGXFSZ')

Exec = Callable[[str, List[str], Mapping[str, str]], None]


def restore_default_signals() -> None:
    for name in RESTORED_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is not None:
            signal.signal(signum, signal.SIG_DFL)


def exec_first(programs: Sequence[str], args: Sequence[str], env: Mapping[str, str],
               execvpe: Optional[Exec] = None) -> Optional[OSError]:
    """
    Replace the current process image with the first program that launches.

    Args:
        programs: Candidate program names, searched on env's PATH
        args: Arguments following the program name
        env: Environment of the new image
        execvpe: Replacement primitive (os.execvpe unless injected)

    Returns:
        The error of the last failed attempt, or None if there was nothing
        to try. Never returns after a successful replacement.
    """
    execvpe = execvpe or os.execvpe
    last_error = None
    for program in programs:
        try:
            execvpe(program, [program] + list(args), env)
        except OSError as e:
            last_error = e
    return last_error
