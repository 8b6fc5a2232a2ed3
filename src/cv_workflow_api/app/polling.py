"""Bounded polling of remote workflow runs.

``poll_until`` is the reusable primitive: wait, fetch, stop on the first
terminal value or after ``max_attempts`` fetches. ``WorkflowPoller`` applies it
to a run id and turns the terminal state into a return value or an error.

The wait between fetches is awaited, so a polling request holds no worker
thread while it waits; each blocking status query runs in the threadpool.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from fastapi.concurrency import run_in_threadpool

from .config import Settings
from .errors import ProcessingFailedError, WorkflowTimeoutError
from .models import WorkflowRun
from .workflow_client import WorkflowRunSource

T = TypeVar("T")
logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class PollOutcome(Generic[T]):
    value: T | None
    attempts: int
    timed_out: bool


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    is_terminal: Callable[[T], bool],
    *,
    interval_s: float,
    max_attempts: int,
    sleep: Sleep = asyncio.sleep,
    on_attempt: Callable[[int, T], None] | None = None,
) -> PollOutcome[T]:
    """Await ``fetch`` until ``is_terminal`` holds, sleeping ``interval_s`` before each call.

    Exceptions raised by ``fetch`` propagate unchanged: only "not done yet" is
    retried, never a failure.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if interval_s < 0:
        raise ValueError("interval_s must not be negative")

    last_value: T | None = None
    for attempt in range(1, max_attempts + 1):
        await sleep(interval_s)
        last_value = await fetch()
        if on_attempt is not None:
            on_attempt(attempt, last_value)
        if is_terminal(last_value):
            return PollOutcome(value=last_value, attempts=attempt, timed_out=False)
    return PollOutcome(value=last_value, attempts=max_attempts, timed_out=True)


def is_terminal_run(run: WorkflowRun) -> bool:
    return run.is_terminal


class WorkflowPoller:
    """Waits for one run to reach completed, failed, or the attempt cap."""

    def __init__(
        self,
        *,
        source: WorkflowRunSource,
        interval_s: float = 5.0,
        max_attempts: int = 60,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.source = source
        self.interval_s = interval_s
        self.max_attempts = max_attempts
        self.sleep = sleep

    @property
    def max_wait_s(self) -> float:
        return self.max_attempts * self.interval_s

    async def wait_for_output(self, run_id: str) -> dict[str, Any]:
        """Return the output mapping of a completed run.

        Raises ``ProcessingFailedError`` as soon as the run reports failure,
        ``WorkflowTimeoutError`` when the attempt cap is reached, and lets
        ``PollError`` from the status query end the wait.
        """

        def log_attempt(attempt: int, run: WorkflowRun) -> None:
            logger.info(
                "poll event=status run_id=%s attempt=%d/%d status=%s",
                run_id,
                attempt,
                self.max_attempts,
                run.status,
            )

        async def fetch() -> WorkflowRun:
            return await run_in_threadpool(self.source.get_run, run_id)

        outcome = await poll_until(
            fetch,
            is_terminal_run,
            interval_s=self.interval_s,
            max_attempts=self.max_attempts,
            sleep=self.sleep,
            on_attempt=log_attempt,
        )

        if outcome.timed_out or outcome.value is None:
            logger.warning(
                "poll event=timed_out run_id=%s attempts=%d max_wait_s=%s",
                run_id,
                outcome.attempts,
                _format_seconds(self.max_wait_s),
            )
            raise WorkflowTimeoutError(
                details=f"Processing exceeded {_format_seconds(self.max_wait_s)} seconds"
            )

        run = outcome.value
        if run.status == "failed":
            logger.error(
                "poll event=failed run_id=%s attempt=%d error=%s",
                run_id,
                outcome.attempts,
                run.error,
            )
            raise ProcessingFailedError(details=run.error or "Workflow execution failed")

        logger.info(
            "poll event=completed run_id=%s attempt=%d outputs=%s",
            run_id,
            outcome.attempts,
            list(run.output.keys()),
        )
        return run.output


def build_poller(
    settings: Settings,
    source: WorkflowRunSource,
    *,
    sleep: Sleep = asyncio.sleep,
) -> WorkflowPoller:
    return WorkflowPoller(
        source=source,
        interval_s=settings.poll_interval_s,
        max_attempts=settings.poll_max_attempts,
        sleep=sleep,
    )


def _format_seconds(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"
