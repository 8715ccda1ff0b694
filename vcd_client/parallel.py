"""Collect items from concurrent callers and run one operation for all of them.

Every caller submits its item under a shared ``global_id`` and keeps calling
:func:`run_when_ready` until the outcome is final. The caller that brings
the collection to ``how_many`` items runs the operation; the others get the
stored result on their next call.

Example:
    >>> outcome, result = await run_when_ready(
    ...     ParallelInput(
    ...         client=client,
    ...         global_id=vapp_href,
    ...         item_id="vm-1",
    ...         how_many=3,
    ...         item=vm_definition,
    ...         run=recompose,
    ...     )
    ... )
"""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .logging_config import get_logger

logger = get_logger(__name__)

OUTCOME_DONE = "done"
OUTCOME_WAITING = "waiting"
OUTCOME_RUNNING = "running"
OUTCOME_RUN_TIMEOUT = "run-timeout"
OUTCOME_COLLECTION_TIMEOUT = "collection-timeout"
OUTCOME_FAIL = "fail"

FINAL_OUTCOMES = frozenset({OUTCOME_DONE, OUTCOME_RUN_TIMEOUT, OUTCOME_COLLECTION_TIMEOUT, OUTCOME_FAIL})

RunAfterCollection = Callable[[Any, str, dict[str, Any]], Awaitable[Any]]

_debugging = bool(os.getenv("parallel_debug"))


@dataclass
class ParallelInput:
    """One caller's contribution to a collective operation.

    Attributes:
        client: Passed through to ``run``.
        global_id: Identifies the collective job (e.g. the vApp HREF).
        item_id: Identifies this caller's part. Repeated submissions are ignored.
        how_many: Number of items to collect before running.
        item: This caller's data.
        run: Coroutine function called with the client, the global id and
            every collected item.
        collection_timeout: Seconds to wait for all items. 0 waits forever.
        run_timeout: Seconds to wait for ``run`` to finish. 0 waits forever.
    """

    client: Any
    global_id: str
    item_id: str
    how_many: int
    item: Any
    run: RunAfterCollection
    collection_timeout: float = 0
    run_timeout: float = 0


@dataclass
class _ParallelInfo:
    data: dict[str, Any] = field(default_factory=dict)
    is_running: bool = False
    finished: bool = False
    timed_out: bool = False
    result: Any = None
    error: BaseException | None = None
    run_start_time: float = 0.0
    collection_start_time: float = 0.0


class ParallelScheduler:
    """Shared collection state, one lock per ``global_id``."""

    def __init__(self) -> None:
        self._jobs: dict[str, _ParallelInfo] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, global_id: str) -> asyncio.Lock:
        lock = self._locks.get(global_id)
        if lock is None:
            lock = self._locks[global_id] = asyncio.Lock()
        return lock

    def forget(self, global_id: str) -> None:
        """Drop the state of a finished job so the id can be reused."""
        self._jobs.pop(global_id, None)
        self._locks.pop(global_id, None)

    async def run_when_ready(self, parallel_input: ParallelInput) -> tuple[str, Any]:
        """Add the caller's item and run the operation once all items are in.

        Callers arriving while the operation runs get ``running``.

        Returns:
            The outcome and, for ``done``, the result of ``run``.

        Raises:
            Exception: Whatever ``run`` raised, re-raised to every caller
                that reaches the ``done`` outcome.
        """
        async with self._lock(parallel_input.global_id):
            info = self._jobs.setdefault(parallel_input.global_id, _ParallelInfo())
            _debug(f"entering run_when_ready: {parallel_input.global_id} - {parallel_input.item_id} ({len(info.data)})")

            if len(info.data) != parallel_input.how_many:
                return self._collect(parallel_input, info)

            if info.finished:
                if info.timed_out:
                    return OUTCOME_RUN_TIMEOUT, None
                if info.error is not None:
                    raise info.error
                return OUTCOME_DONE, info.result
            if info.is_running:
                return OUTCOME_RUNNING, None

            info.is_running = True
            info.run_start_time = time.monotonic()
            items = dict(info.data)

        # The lock is released while running.
        run = parallel_input.run(parallel_input.client, parallel_input.global_id, items)
        try:
            if parallel_input.run_timeout > 0:
                info.result = await asyncio.wait_for(run, parallel_input.run_timeout)
            else:
                info.result = await run
        except asyncio.TimeoutError:
            info.timed_out = True
            return OUTCOME_RUN_TIMEOUT, None
        except Exception as e:
            info.error = e
            raise
        finally:
            info.is_running = False
            info.finished = True
        return OUTCOME_DONE, info.result

    def _collect(self, parallel_input: ParallelInput, info: _ParallelInfo) -> tuple[str, Any]:
        if not info.data:
            info.collection_start_time = time.monotonic()
            _debug(f"initializing collection {parallel_input.global_id} - {parallel_input.item_id}")
        if (
            parallel_input.collection_timeout > 0
            and time.monotonic() - info.collection_start_time > parallel_input.collection_timeout
        ):
            return OUTCOME_COLLECTION_TIMEOUT, None
        if parallel_input.item_id not in info.data:
            info.data[parallel_input.item_id] = parallel_input.item
            _debug(f"adding item: {parallel_input.global_id} - {parallel_input.item_id} ({len(info.data)})")
        return OUTCOME_WAITING, None


def _debug(message: str) -> None:
    if _debugging:
        logger.debug(message)


default_scheduler = ParallelScheduler()


async def run_when_ready(parallel_input: ParallelInput) -> tuple[str, Any]:
    """Module level shortcut to :meth:`ParallelScheduler.run_when_ready`."""
    return await default_scheduler.run_when_ready(parallel_input)
