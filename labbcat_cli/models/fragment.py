"""
Dataclass describing one element of a batch fragment download.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class BatchItem:
    """A single time-bounded excerpt to fetch, and what became of it."""

    index: int
    resource_id: str
    start_offset: float
    end_offset: float
    local_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.local_path is not None and self.error is None
