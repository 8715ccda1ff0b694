"""Polling of asynchronous server-side tasks.

Long-running operations answer with a task reference. The client re-reads
the task by HREF until its status leaves ``queued``, ``preRunning`` and
``running``.

Example:
    >>> task = await client.openapi_post_item_async(version, url, None, payload)
    >>> await task.wait_task_completion()
    >>> print(task.task.status)
    success
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .exceptions import APIResponseError, TaskError, ValidationError, VcdError
from .logging_config import get_logger
from .models import TaskModel, XmlReference

if TYPE_CHECKING:
    from .api_client import VcdAPIClient

logger = get_logger(__name__)

TASK_RUNNING_STATES = frozenset({"queued", "preRunning", "running"})
TASK_FAILED_STATES = frozenset({"error", "aborted"})

DEFAULT_POLL_DELAY = 3.0

InspectionFunc = Callable[[TaskModel, int, float, bool, bool], None]


def _reference_from_xml(node: Any) -> XmlReference | None:
    if node is None:
        return None
    return XmlReference(
        href=node.get("href", ""),
        id=node.get("id", ""),
        type=node.get("type", ""),
        name=node.get("name", ""),
    )


def _result_content(root: Any) -> str:
    # Behavior invocations report their output in Result/ResultContent
    result = root.find("{*}Result")
    if result is None:
        return ""
    return result.findtext("{*}ResultContent") or ""


def task_from_xml(root: Any) -> TaskModel:
    """Build a :class:`TaskModel` from a parsed ``Task`` element."""
    error_node = root.find("{*}Error")
    error = dict(error_node.attrib) if error_node is not None else None
    progress = root.findtext("{*}Progress")
    return TaskModel(
        href=root.get("href", ""),
        type=root.get("type", ""),
        id=root.get("id", ""),
        operation_key=root.get("operationKey", ""),
        name=root.get("name", ""),
        status=root.get("status", ""),
        operation=root.get("operation", ""),
        operation_name=root.get("operationName", ""),
        service_namespace=root.get("serviceNamespace", ""),
        start_time=root.get("startTime", ""),
        end_time=root.get("endTime", ""),
        expiry_time=root.get("expiryTime", ""),
        cancel_requested=root.get("cancelRequested", "false").lower() == "true",
        description=root.findtext("{*}Description") or "",
        owner=_reference_from_xml(root.find("{*}Owner")),
        error=error,
        user=_reference_from_xml(root.find("{*}User")),
        organization=_reference_from_xml(root.find("{*}Organization")),
        progress=int(progress) if progress and progress.strip().isdigit() else 0,
        details=root.findtext("{*}Details") or "",
        result=_result_content(root),
    )


def task_error_message(task: TaskModel) -> str:
    """Combine the task description with its embedded error, if any."""
    message = task.description
    if task.error:
        major = task.error.get("majorErrorCode", "")
        minor = task.error.get("minorErrorCode", "")
        detail = task.error.get("message", "")
        message = f"{message} [{major}:{minor}] - {detail}".strip()
    return message


class Task:
    """Client-side handle of a server-side task.

    Attributes:
        task: Latest known state of the task.
    """

    def __init__(self, client: VcdAPIClient, task: TaskModel | None = None) -> None:
        self.client = client
        self.task = task if task is not None else TaskModel()

    @classmethod
    def from_href(cls, client: VcdAPIClient, href: str) -> Task:
        return cls(client, TaskModel(href=href))

    async def refresh(self) -> None:
        """Re-read the task from the server.

        Raises:
            ValidationError: If the task has no HREF.
            VcdError: If the task cannot be retrieved.
        """
        if self.task is None or not self.task.href:
            raise ValidationError("cannot refresh, Object is empty")
        root = await self.client.execute_xml_request(self.task.href, "GET")
        self.task = task_from_xml(root)

    async def wait_inspect_task_completion(
        self,
        inspection_func: InspectionFunc | None = None,
        delay: float = DEFAULT_POLL_DELAY,
        timeout: float | None = None,
    ) -> None:
        """Poll the task until it reaches a final state.

        Args:
            inspection_func: Called after every poll with the task, the poll
                count, the elapsed seconds, and first/last flags.
            delay: Seconds between polls.
            timeout: Give up after this many seconds. None waits forever.

        Raises:
            TaskError: If the task ends in error, is aborted, or times out.
        """
        if self.task is None or not self.task.href:
            raise ValidationError("cannot refresh, Object is empty")

        polls = 0
        start = time.monotonic()
        while True:
            polls += 1
            try:
                await self.refresh()
            except (VcdError, APIResponseError) as e:
                raise VcdError(f"error retrieving task: {e}") from e
            elapsed = time.monotonic() - start

            status = self.task.status
            if status not in TASK_RUNNING_STATES:
                if inspection_func is not None:
                    inspection_func(self.task, polls, elapsed, polls == 1, status in ("error", "success"))
                if status in TASK_FAILED_STATES:
                    raise TaskError(
                        f"task did not complete successfully: {task_error_message(self.task)}",
                        task=self.task,
                    )
                logger.debug(
                    "Task finished",
                    extra={"task": self.task.href, "status": status, "polls": polls},
                )
                return

            if inspection_func is not None:
                inspection_func(self.task, polls, elapsed, polls == 1, False)

            if timeout is not None and elapsed >= timeout:
                raise TaskError(
                    f"timed out after {timeout}s waiting for task {self.task.href} (status: {status})",
                    task=self.task,
                )
            if timeout is not None:
                await asyncio.sleep(min(delay, timeout - elapsed))
            else:
                await asyncio.sleep(delay)

    async def wait_task_completion(self, timeout: float | None = None) -> None:
        """Poll the task until it finishes.

        ``timeout`` defaults to the client's ``max_retry_timeout``; a zero
        client value waits without limit.
        """
        if timeout is None:
            timeout = self.client.max_retry_timeout or None
        await self.wait_inspect_task_completion(None, DEFAULT_POLL_DELAY, timeout)

    async def get_task_progress(self) -> str:
        """Refresh the task and return its progress percentage as a string."""
        if self.task is None or not self.task.href:
            raise ValidationError("cannot refresh, Object is empty")
        await self.refresh()
        if self.task.status in TASK_FAILED_STATES:
            raise TaskError(
                f"task did not complete successfully: {task_error_message(self.task)}",
                task=self.task,
            )
        return str(self.task.progress)

    async def cancel_task(self) -> None:
        """Ask the server to cancel the task."""
        if self.task is None or not self.task.href:
            raise ValidationError("cannot cancel, Object is empty")
        if self.task.status not in TASK_RUNNING_STATES:
            logger.debug(f"Task {self.task.href} is already {self.task.status}")
            return
        await self.client.execute_xml_request(f"{self.task.href}/action/cancel", "POST")
