"""Configuration settings and constants for passhero.

Everything lives in `config.settings`; this package re-exports it so
`from config import DEFAULT_ITERATIONS` works as well.
"""

from .settings import *  # noqa: F401,F403
from .settings import __all__  # noqa: F401
