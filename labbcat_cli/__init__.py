"""
labbcat-cli: an async client and command line tool for LaBB-CAT linguistic
annotation stores.
"""

from labbcat_cli.api import (
    CallOutcome,
    LabbcatAdmin,
    LabbcatEdit,
    LabbcatView,
)
from labbcat_cli.models import ClientConfig, MatchId, TaskStatus

__version__ = "0.4.0"

__all__ = [
    "CallOutcome",
    "ClientConfig",
    "LabbcatAdmin",
    "LabbcatEdit",
    "LabbcatView",
    "MatchId",
    "TaskStatus",
    "__version__",
]
