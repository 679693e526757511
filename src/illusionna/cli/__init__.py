"""illusionna CLI: browse and edit a branch of a bare git repository."""

from ._helpers import main  # noqa: F401 — entry point

# Import command modules to register Click commands with the main group.
from . import _basic, _edit  # noqa: F401
