"""
Exception hierarchy for digenv.

Every error carries the exit status the program terminates with when the
error reaches the command line entry point:

    from digenv.exceptions import DigenvError

    try:
        result = pipeline.run()
    except DigenvError as e:
        write_error(str(e))
        return e.exit_code

Failures of the stages themselves are not exceptions; they are collected as
stage outcomes and folded into the pipeline's exit status.
"""

from typing import Optional

from .exit_codes import EXIT_LAUNCH_FAILURE, EXIT_SYSCALL_FAILURE


class DigenvError(Exception):
    """
    Base class for all digenv errors.

    Attributes:
        message: Error message
        exit_code: Status to terminate with (default: 1)
    """

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code

    def __str__(self):
        return self.message


class SystemCallError(DigenvError):
    """
    Raised when a system call needed to build the pipeline fails.

    Example:
        try:
            read_fd, write_fd = os.pipe()
        except OSError as e:
            raise SystemCallError("pipe", e)
    """

    def __init__(self, operation: str, cause: OSError, stage: Optional[str] = None):
        reason = cause.strerror or str(cause)
        if stage:
            message = f"{stage}: {operation}: {reason}"
        else:
            message = f"{operation}: {reason}"
        super().__init__(message, exit_code=EXIT_SYSCALL_FAILURE)
        self.operation = operation
        self.cause = cause
        self.stage = stage


class LaunchError(DigenvError):
    """
    Raised when none of a stage's candidate programs could be executed.

    Example:
        raise LaunchError("pager", ["less", "more"], error)
    """

    def __init__(self, stage: str, programs, cause: Optional[OSError] = None):
        programs = list(programs)
        if not programs:
            message = f"{stage}: no program to launch"
        else:
            reason = "No such file or directory"
            if cause is not None:
                reason = cause.strerror or str(cause)
            message = f"{stage}: cannot launch {', '.join(programs)}: {reason}"
        super().__init__(message, exit_code=EXIT_LAUNCH_FAILURE)
        self.stage = stage
        self.programs = programs
        self.cause = cause


class ConfigurationError(DigenvError):
    """
    Raised when a configuration value is not acceptable.

    Example:
        raise ConfigurationError("DIGENV_PRECEDENCE", "sideways")
    """

    def __init__(self, setting: str, value: str, details: Optional[str] = None):
        message = f"{setting}: invalid value '{value}'"
        if details:
            message = f"{message} ({details})"
        super().__init__(message, exit_code=1)
        self.setting = setting
        self.value = value
