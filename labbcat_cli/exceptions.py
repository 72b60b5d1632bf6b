"""
Defines custom exceptions for the application to allow for more specific error handling.

Client operations report server and transport failures through
``CallOutcome.errors``; these exceptions are only raised at the edges
(configuration loading, the raw binary fetch helper and the CLI).
"""

from typing import Optional


class LabbcatCliError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(LabbcatCliError):
    """Raised for issues related to configuration loading or validation."""


class TransportError(LabbcatCliError):
    """
    Raised by the binary fetch helper when a request does not produce a usable
    response, whether because of a connection failure or a non-2xx status.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TaskTimeoutError(LabbcatCliError):
    """Raised by the CLI when a server task is still running after the wait budget."""
