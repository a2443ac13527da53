"""
Pipeline orchestration: wire N external programs together with N-1 pipes.

    printenv | [grep ARGS... |] sort | pager

The orchestrator creates every channel up front, forks one child per stage,
points the child's stdin/stdout at the adjacent channel ends, closes every
other pipe descriptor in the child and in itself, then waits for all
children and folds their outcomes into a single exit status.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from .channel import ChannelSet, Endpoint
from .config import DigenvConfig, PRECEDENCE_POSITION
from .diagnostics import write_error
from .exceptions import DigenvError, LaunchError, SystemCallError
from .exit_codes import (
    EXIT_LAUNCH_FAILURE,
    EXIT_SIGNALED,
    EXIT_SUCCESS,
    EXIT_SYSCALL_FAILURE,
)
from .launcher import exec_first, restore_default_signals
from .process import Stage, StageOutcome

logger = logging.getLogger(__name__)

STDIN_FILENO = 0
STDOUT_FILENO = 1


def plan_stages(filter_args: Sequence[str], config: Optional[DigenvConfig] = None) -> List[Stage]:
    """
    Build the digenv stage list.

    Args:
        filter_args: Command line arguments; when non-empty a filter stage
            receiving them verbatim is inserted after the dumper
        config: Program names and pager fallbacks

    Returns:
        Three stages without filter arguments, four with them

    Example:
        >>> [s.name for s in plan_stages([])]
        ['printenv', 'sort', 'pager']
        >>> plan_stages(['-i', 'path'])[1].args
        ['-i', 'path']
    """
    config = config or DigenvConfig()
    stages = [Stage(config.dumper, (config.dumper,))]
    if filter_args:
        stages.append(Stage(config.filter, (config.filter,), list(filter_args)))
    stages.append(Stage(config.sorter, (config.sorter,)))
    stages.append(Stage('pager', config.fallback_pagers, program_variable=config.pager_variable))
    return stages


class ExitAggregator:
    """
    Folds stage outcomes into the pipeline's exit status.

    The first failing outcome folded in decides the status; later failures
    are reported but leave it unchanged. A signal-killed stage maps to
    EXIT_SIGNALED, never to the raw signal number, so that "exited with N"
    and "killed by signal N" stay distinguishable.
    """

    def __init__(self, report: Optional[Callable[[str], None]] = None):
        self.exit_code = EXIT_SUCCESS
        self.report = report or write_error

    def add(self, outcome: StageOutcome) -> int:
        if not outcome.failed:
            return self.exit_code

        self.report(outcome.describe())
        if self.exit_code == EXIT_SUCCESS:
            if outcome.signaled:
                self.exit_code = EXIT_SIGNALED
            else:
                self.exit_code = outcome.exit_code
        return self.exit_code


@dataclass
class PipelineResult:
    """Container for the result of one pipeline run."""

    exit_code: int
    outcomes: List[StageOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.exit_code == EXIT_SUCCESS


class Pipeline:
    """
    Runs a linear chain of external programs connected by pipes.

    Usage:
        pipeline = Pipeline(plan_stages(sys.argv[1:]))
        result = pipeline.run()
        sys.exit(result.exit_code)

    Attributes:
        stages: Stages in pipeline order
        env: Environment given to every stage and used for pager lookup
        config: Precedence policy for folding outcomes
    """

    def __init__(self, stages: Sequence[Stage], env: Optional[Mapping[str, str]] = None,
                 config: Optional[DigenvConfig] = None):
        if not stages:
            raise ValueError("a pipeline needs at least one stage")
        self.stages = list(stages)
        for position, stage in enumerate(self.stages):
            stage.position = position
            stage.stage_count = len(self.stages)
        self.env: Dict[str, str] = dict(os.environ if env is None else env)
        self.config = config or DigenvConfig()
        self.pids: Dict[int, Stage] = {}

    def run(self) -> PipelineResult:
        """
        Spawn every stage, wait for all of them and aggregate.

        Returns:
            PipelineResult with the aggregate exit status and the outcomes
            in the order they were collected

        Raises:
            SystemCallError: If pipe, fork, close or wait fails in the
                orchestrator; every channel endpoint it still holds is
                released before the error propagates
        """
        self.pids = {}
        with ChannelSet(len(self.stages) - 1) as channels:
            for stage in self.stages:
                self._spawn(stage, channels)
                if stage.position > 0:
                    # Writer and reader of the previous channel both exist now
                    channels[stage.position - 1].close()
            logger.debug("all %d stages spawned, %d endpoints left open",
                         len(self.stages), len(channels.open_endpoints()))

        return self._collect()

    def _spawn(self, stage: Stage, channels: ChannelSet) -> int:
        # Unflushed text would be written once by the parent and once per child
        sys.stdout.flush()
        sys.stderr.flush()
        try:
            pid = os.fork()
        except OSError as e:
            raise SystemCallError("fork", e, stage=stage.name)

        if pid == 0:
            self._run_child(stage, channels)  # never returns

        logger.debug("spawned %r as pid %d", stage, pid)
        self.pids[pid] = stage
        return pid

    def _run_child(self, stage: Stage, channels: ChannelSet) -> None:
        """
        Body of a forked stage process.

        Leaves through os._exit() on every path: the child must never run
        the orchestrator's code (or a test runner's) after the fork.
        """
        status = EXIT_SYSCALL_FAILURE
        try:
            restore_default_signals()
            self._redirect(stage, channels.input_for(stage.position), STDIN_FILENO)
            self._redirect(stage, channels.output_for(stage.position), STDOUT_FILENO)
            # Includes non-adjacent channels: a stray write end held here
            # would keep a downstream reader from ever seeing end-of-input.
            channels.close()

            programs = stage.candidates(self.env)
            error = exec_first(programs, stage.args, self.env)
            raise LaunchError(stage.name, programs, error)
        except LaunchError as e:
            status = EXIT_LAUNCH_FAILURE
            write_error(str(e))
        except SystemCallError as e:
            write_error(f"{stage.name}: {e}" if e.stage is None else str(e))
        except BaseException as e:
            write_error(f"{stage.name}: {type(e).__name__}: {e}")
        finally:
            os._exit(status)

    @staticmethod
    def _redirect(stage: Stage, endpoint: Optional[Endpoint], target_fd: int) -> None:
        if endpoint is None:
            return
        try:
            os.dup2(endpoint.fileno(), target_fd)
        except OSError as e:
            raise SystemCallError(f"dup2 {endpoint.role} end of pipe {endpoint.channel_index}",
                                  e, stage=stage.name)

    def _collect(self) -> PipelineResult:
        """Wait for each spawned child exactly once, in termination order."""
        aggregator = ExitAggregator()
        by_position = self.config.precedence == PRECEDENCE_POSITION
        outcomes: List[StageOutcome] = []
        pending = dict(self.pids)

        while pending:
            try:
                pid, status = os.wait()
            except OSError as e:
                raise SystemCallError("wait", e)
            stage = pending.pop(pid, None)
            if stage is None:
                logger.debug("reaped pid %d which is not a stage of this pipeline", pid)
                continue

            outcome = StageOutcome.from_wait_status(pid, status, stage)
            logger.debug("collected %s", outcome.describe())
            outcomes.append(outcome)
            if not by_position:
                aggregator.add(outcome)

        if by_position:
            for outcome in sorted(outcomes, key=lambda o: o.stage.position):
                aggregator.add(outcome)

        return PipelineResult(aggregator.exit_code, outcomes)


def run_digenv(filter_args: Sequence[str], env: Optional[Mapping[str, str]] = None,
               config: Optional[DigenvConfig] = None) -> int:
    """
    Run the digenv pipeline and return its exit status.

    Setup errors are reported on stderr and turned into their exit code.
    """
    env = os.environ if env is None else env
    try:
        config = config or DigenvConfig.from_env(env)
        pipeline = Pipeline(plan_stages(filter_args, config), env=env, config=config)
        return pipeline.run().exit_code
    except DigenvError as e:
        write_error(str(e))
        return e.exit_code
