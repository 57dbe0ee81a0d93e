"""Supervised fire-and-forget tasks.

Work that must outlive the request that started it (e.g. composing a rewrite
after a transcription has already been returned) runs here instead of in the
request task:

- Tasks are plain asyncio tasks; the supervisor keeps a strong reference until
  they finish so they are not garbage collected mid-flight.
- They are not tied to the request's cancellation: a client disconnect does
  not cancel them.
- Every outcome is logged (background_task_succeeded / background_task_failed).
  Failures never reach the caller and are never retried.
- drain() waits for everything still running; the application calls it at
  shutdown and tests call it to observe results.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from luma.logging import bind_task_context, clear_task_context, get_logger

logger = get_logger(__name__)


class BackgroundTaskSupervisor:
    """Owns detached tasks for the life of the application."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        name: str,
        factory: Callable[[], Awaitable[Any]],
        **log_fields: Any,
    ) -> asyncio.Task:
        """Start factory() as a detached task.

        Args:
            name: Short task name used in logs.
            factory: Zero-argument callable returning the coroutine to run.
            **log_fields: Extra identifiers included in the outcome log.

        Returns:
            The running task (callers normally ignore it).
        """
        task_id = str(uuid.uuid4())
        task = asyncio.get_running_loop().create_task(
            self._run(name, task_id, factory, log_fields), name=f"{name}:{task_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        name: str,
        task_id: str,
        factory: Callable[[], Awaitable[Any]],
        log_fields: dict[str, Any],
    ) -> Any:
        # Runs in a copy of the spawning context; request_id stays attached
        bind_task_context(task_name=name, task_id=task_id)
        try:
            result = await factory()
        except asyncio.CancelledError:
            logger.warning("background_task_cancelled", **log_fields)
            raise
        except Exception as e:
            logger.exception(
                "background_task_failed",
                error_type=type(e).__name__,
                **log_fields,
            )
            return None
        else:
            logger.info("background_task_succeeded", **log_fields)
            return result
        finally:
            clear_task_context()

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every task that is still running."""
        while self._tasks:
            done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
            if pending and timeout is not None:
                logger.warning("background_tasks_still_running", count=len(pending))
                return
