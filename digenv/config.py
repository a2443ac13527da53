"""
DigenvConfig - the external programs and policies a pipeline run uses.

The defaults describe the classic digenv pipeline. Only the failure
precedence can be changed from the environment; the program names are
fields so that callers (and tests) can substitute their own collaborators.
"""

from dataclasses import dataclass
from typing import Mapping, Tuple

from .exceptions import ConfigurationError

PRECEDENCE_VARIABLE = 'DIGENV_PRECEDENCE'

# First failure to be waited on wins
PRECEDENCE_ARRIVAL = 'arrival'
# Earliest failing stage in pipeline order wins
PRECEDENCE_POSITION = 'position'

PRECEDENCES = (PRECEDENCE_ARRIVAL, PRECEDENCE_POSITION)


@dataclass
class DigenvConfig:
    """
    Names of the external collaborators and the exit status policy.

    Example:
        >>> config = DigenvConfig.from_env({'DIGENV_PRECEDENCE': 'position'})
        >>> config.precedence
        'position'
        >>> config.fallback_pagers
        ('less', 'more')
    """

    dumper: str = 'printenv'
    filter: str = 'grep'
    sorter: str = 'sort'

    # Environment variable naming the preferred pager
    pager_variable: str = 'PAGER'
    # Tried in order when the pager variable is unset or cannot be launched
    fallback_pagers: Tuple[str, ...] = ('less', 'more')

    precedence: str = PRECEDENCE_ARRIVAL

    def __post_init__(self):
        self.fallback_pagers = tuple(self.fallback_pagers)
        if self.precedence not in PRECEDENCES:
            raise ConfigurationError(
                'precedence', self.precedence,
                f"expected one of: {', '.join(PRECEDENCES)}"
            )

    @classmethod
    def from_env(cls, env: Mapping[str, str], **overrides) -> 'DigenvConfig':
        """
        Build a configuration from an environment mapping.

        Args:
            env: Environment variables (usually os.environ)
            **overrides: Field values that take priority over the environment

        Raises:
            ConfigurationError: If DIGENV_PRECEDENCE holds an unknown value
        """
        values = {}
        precedence = env.get(PRECEDENCE_VARIABLE, '').strip().lower()
        if precedence:
            if precedence not in PRECEDENCES:
                raise ConfigurationError(
                    PRECEDENCE_VARIABLE, env[PRECEDENCE_VARIABLE],
                    f"expected one of: {', '.join(PRECEDENCES)}"
                )
            values['precedence'] = precedence
        values.update(overrides)
        return cls(**values)
