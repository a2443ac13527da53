"""
Pytest configuration and shared fixtures for digenv tests.

This module provides reusable test fixtures for:
- Availability of the external programs the pipelines run
- A small, predictable environment for the stages
- Descriptor accounting for the orchestrating process
- Stage factories for shell-scripted collaborators
"""

import os
import shutil
from typing import Callable, Dict

import pytest

from digenv.config import DigenvConfig
from digenv.process import Stage


REQUIRED_PROGRAMS = ('printenv', 'grep', 'sort', 'cat', 'sh', 'true')

MISSING_PROGRAMS = ('digenv-test-no-such-pager', 'digenv-test-no-such-fallback')


# ============================================================================
# External programs
# ============================================================================

@pytest.fixture
def unix_tools():
    """Skip the test when the programs the pipelines run are not installed."""
    missing = [name for name in REQUIRED_PROGRAMS if shutil.which(name) is None]
    if missing:
        pytest.skip(f"missing programs: {', '.join(missing)}")


# ============================================================================
# Environment
# ============================================================================

@pytest.fixture
def stage_env() -> Dict[str, str]:
    """
    Environment handed to every stage.

    Only PATH is taken from the test process, so printenv output is fully
    determined by the test. LC_ALL=C keeps sort byte-ordered.
    """
    return {
        'PATH': os.environ.get('PATH', os.defpath),
        'LC_ALL': 'C',
        'DIGENV_SAMPLE_ONE': 'first',
        'DIGENV_SAMPLE_TWO': 'second',
        'ZEBRA': 'last',
    }


@pytest.fixture
def cat_pager_config() -> DigenvConfig:
    """Configuration whose pager is cat(1), so the output can be captured."""
    return DigenvConfig(fallback_pagers=('cat',))


@pytest.fixture
def missing_pager_config() -> DigenvConfig:
    """Configuration in which no pager can be launched."""
    return DigenvConfig(fallback_pagers=MISSING_PROGRAMS)


# ============================================================================
# Descriptor accounting
# ============================================================================

@pytest.fixture
def open_fd_count() -> Callable[[], int]:
    """Return a function counting the descriptors open in this process."""
    if not os.path.isdir('/proc/self/fd'):
        pytest.skip("/proc/self/fd is not available")

    def count() -> int:
        return len(os.listdir('/proc/self/fd'))

    return count


# ============================================================================
# Stage factories
# ============================================================================

@pytest.fixture
def sh_stage() -> Callable[[str], Stage]:
    """
    Build a stage running a shell snippet.

    Example:
        stage = sh_stage('cat >/dev/null; exit 3')
    """

    def make(script: str, name: str = 'sh') -> Stage:
        return Stage(name, ('sh',), ['-c', script])

    return make


@pytest.fixture
def program_stage() -> Callable[..., Stage]:
    """Build a stage running a single program with fixed arguments."""

    def make(program: str, *args: str) -> Stage:
        return Stage(program, (program,), list(args))

    return make
