"""Stage and StageOutcome: one step of a pipeline before and after it ran"""

import os
import signal
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence


@dataclass
class Stage:
    """
    A planned pipeline step: an external program and its arguments.

    Args:
        name: Label used in diagnostics (e.g. 'sort', 'pager')
        programs: Candidate program names, tried in order until one launches
        args: Arguments passed after the program name
        program_variable: Environment variable whose value, when set and
            non-empty, is tried before every entry of programs

    The position, first/last flags and channel usage are assigned when the
    stage becomes part of a pipeline.
    """

    name: str
    programs: Sequence[str]
    args: List[str] = field(default_factory=list)
    program_variable: Optional[str] = None

    position: int = 0
    stage_count: int = 1

    def __post_init__(self):
        if isinstance(self.programs, str):
            self.programs = (self.programs,)
        self.programs = tuple(self.programs)
        self.args = list(self.args)

    @property
    def is_first(self) -> bool:
        return self.position == 0

    @property
    def is_last(self) -> bool:
        return self.position == self.stage_count - 1

    @property
    def reads_channel(self) -> bool:
        return not self.is_first

    @property
    def writes_channel(self) -> bool:
        return not self.is_last

    def candidates(self, env: Mapping[str, str]) -> List[str]:
        """
        Programs to try, in order.

        Examples:
            >>> pager = Stage('pager', ('less', 'more'), program_variable='PAGER')
            >>> pager.candidates({'PAGER': 'most'})
            ['most', 'less', 'more']
            >>> pager.candidates({})
            ['less', 'more']
        """
        result = []
        if self.program_variable:
            preferred = env.get(self.program_variable, '')
            if preferred:
                result.append(preferred)
        result.extend(self.programs)
        return result

    def __repr__(self):
        words = ['|'.join(self.programs)] + self.args
        return f"Stage({self.position}: {' '.join(words)})"


@dataclass
class StageOutcome:
    """
    How one spawned stage terminated.

    Exactly one of exit_code (normal termination) and signal (killed) is set.
    """

    pid: int
    stage: Optional[Stage] = None
    exit_code: Optional[int] = None
    signal: Optional[int] = None

    @classmethod
    def from_wait_status(cls, pid: int, status: int,
                         stage: Optional[Stage] = None) -> 'StageOutcome':
        """
        Decode a raw status as returned by os.wait().

        Raises:
            ValueError: If the status describes neither an exit nor a signal
                (a stopped child, which os.wait() without WUNTRACED never
                reports)
        """
        if os.WIFEXITED(status):
            return cls(pid, stage, exit_code=os.WEXITSTATUS(status))
        if os.WIFSIGNALED(status):
            return cls(pid, stage, signal=os.WTERMSIG(status))
        raise ValueError(f"pid {pid}: unexpected wait status {status:#x}")

    @property
    def signaled(self) -> bool:
        return self.signal is not None

    @property
    def failed(self) -> bool:
        return self.signaled or self.exit_code != 0

    @property
    def stage_name(self) -> str:
        return self.stage.name if self.stage else 'child'

    @property
    def signal_name(self) -> str:
        if self.signal is None:
            return ''
        try:
            return signal.Signals(self.signal).name
        except ValueError:
            return f"signal {self.signal}"

    def describe(self) -> str:
        """
        One-line description for diagnostics.

        Examples:
            'grep (pid 4242) exited with status 1'
            'sort (pid 4243) terminated by signal 9 (SIGKILL)'
        """
        who = f"{self.stage_name} (pid {self.pid})"
        if self.signaled:
            return f"{who} terminated by signal {self.signal} ({self.signal_name})"
        return f"{who} exited with status {self.exit_code}"
