"""
Pydantic model for the status of a long-running server task (e.g. a search or
an annotation generation job).
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_REFRESH_SECONDS = 2.0


class TaskStatus(BaseModel):
    """
    A transient copy of a server task's status.

    The server owns this record; the client only ever re-fetches it. Keys the
    server adds beyond the ones below (result URLs, sizes, etc.) are kept as
    extra attributes.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    thread_id: Optional[str] = Field(None, alias="threadId")
    running: bool = False
    percent_complete: Optional[float] = Field(None, alias="percentComplete")
    refresh_seconds: Optional[float] = Field(None, alias="refreshSeconds")
    status: str = ""
    thread_name: Optional[str] = Field(None, alias="threadName")

    @field_validator("thread_id", mode="before")
    @classmethod
    def coerce_thread_id(cls, v: Any) -> Optional[str]:
        """Task IDs are opaque strings, although some servers send numbers."""
        return None if v is None else str(v)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def wait_interval(self) -> float:
        """Seconds to wait before checking again, as advertised by the server."""
        return self.refresh_seconds if self.refresh_seconds else DEFAULT_REFRESH_SECONDS
