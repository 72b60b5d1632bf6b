"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application: client configuration, server
task status, batch download items and parsed match identifiers.
"""

from .config import ClientConfig
from .fragment import BatchItem
from .match_id import MatchId
from .task import TaskStatus

__all__ = ["BatchItem", "ClientConfig", "MatchId", "TaskStatus"]
