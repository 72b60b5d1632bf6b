"""
Operations on long-running server tasks (searches, annotation generation...),
including waiting for a task to finish.
"""

import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from labbcat_cli.models.task import TaskStatus

from .envelope import CallOutcome

log = logging.getLogger(__name__)


class TaskOperations:
    """Task status, polling and control. Mixed into a LabbcatClient."""

    async def get_tasks(self) -> CallOutcome:
        """Gets a map of task IDs to statuses."""
        return await self.request("getTasks", None, self.base_url + "threads")

    async def task_status(self, task_id: str) -> CallOutcome:
        """Gets the status of a task."""
        return await self.request(
            "taskStatus", {"id": task_id, "threadId": task_id}, self.base_url + "thread"
        )

    async def wait_for_task(
        self, task_id: str, max_seconds: Optional[float] = 0
    ) -> CallOutcome:
        """
        Waits for the given task to finish.

        The status is checked, then re-checked after the interval the server
        advertises in ``refreshSeconds`` (2 seconds if it doesn't), until the
        task stops running or the next wait would exceed ``max_seconds``.
        Waiting is an ``asyncio.sleep``, so other coroutines keep running.

        Args:
            task_id: The task ID.
            max_seconds: The maximum time to wait, or 0/None to wait for as long as it takes.

        Returns:
            An outcome whose result is the last TaskStatus seen. Check
            ``result.running`` to tell completion (False) from a timeout (True).
        """
        unbounded = not max_seconds
        remaining = max_seconds or 0
        checks = 0

        while True:
            outcome = await self.task_status(task_id)
            checks += 1
            if outcome.result is None or not isinstance(outcome.result, dict):
                return outcome

            try:
                status = TaskStatus.model_validate(outcome.result)
            except ValidationError as e:
                return outcome._replace(
                    errors=(outcome.errors or []) + [f"Invalid task status: {e}"]
                )
            outcome = outcome._replace(result=status)

            if not status.running:
                self._diag(f"task {task_id} finished after {checks} checks")
                return outcome

            interval = status.wait_interval
            if not unbounded and remaining <= interval:
                log.debug(
                    f"Stopped waiting for task {task_id}: "
                    f"{status.percent_complete or 0}% complete, {status.status}"
                )
                return outcome

            self._diag(f"task {task_id} still running ({status.status}), next check in {interval}s")
            await asyncio.sleep(interval)
            if not unbounded:
                remaining -= interval

    async def release_task(self, task_id: str) -> CallOutcome:
        """Releases a finished task so it no longer uses resources on the server."""
        return await self.request(
            "releaseTask",
            {"threadId": task_id, "command": "release"},
            self.base_url + "threads",
        )

    async def cancel_task(self, task_id: str) -> CallOutcome:
        """Cancels a running task."""
        return await self.request(
            "cancelTask",
            {"threadId": task_id, "command": "cancel"},
            self.base_url + "threads",
        )
