"""Allow ``python -m digenv``."""

from .cli import run

run()
