"""
Diagnostic output for digenv.

User-facing messages go to the error stream as single lines prefixed with
the program name. Developer tracing goes through the logging module and is
only switched on by DIGENV_DEBUG.
"""

import logging
import sys
from typing import Mapping, Optional, TextIO

PROGRAM_NAME = 'digenv'

DEBUG_VARIABLE = 'DIGENV_DEBUG'

LOG_FORMAT = '%(name)s[%(process)d] %(levelname)s: %(message)s'


def write_error(message: str, stream: Optional[TextIO] = None, prefix_program: bool = True):
    """
    Write an error message to stderr.

    The stream is flushed right away, the caller may be a forked child that
    is about to leave through os._exit().

    Args:
        message: The error message
        stream: Stream to write to (defaults to the current sys.stderr)
        prefix_program: If True, prefix message with the program name
    """
    stream = stream or sys.stderr
    if prefix_program:
        stream.write(f"{PROGRAM_NAME}: {message}\n")
    else:
        stream.write(f"{message}\n")
    stream.flush()


def debug_enabled(env: Mapping[str, str]) -> bool:
    value = env.get(DEBUG_VARIABLE, '')
    return value not in ('', '0')


def configure_logging(env: Mapping[str, str], stream: Optional[TextIO] = None) -> None:
    """
    Configure the root logger from the environment.

    Without DIGENV_DEBUG only warnings reach the error stream.
    """
    level = logging.DEBUG if debug_enabled(env) else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=stream or sys.stderr)


__all__ = [
    'PROGRAM_NAME',
    'DEBUG_VARIABLE',
    'write_error',
    'debug_enabled',
    'configure_logging',
]
