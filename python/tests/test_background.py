"""Tests for the background task supervisor."""

import asyncio

import pytest
import structlog
from structlog.testing import LogCapture

from luma.logging import clear_request_context, get_request_id, set_request_context
from luma.services import background as background_module
from luma.services.background import BackgroundTaskSupervisor


@pytest.fixture
def log_sink(monkeypatch) -> list[dict]:
    capture = LogCapture()
    monkeypatch.setattr(
        background_module,
        "logger",
        structlog.wrap_logger(
            None, processors=[capture], wrapper_class=structlog.stdlib.BoundLogger
        ),
    )
    return capture.entries


class TestSupervisor:
    @pytest.mark.asyncio
    async def test_success_is_logged(self, log_sink):
        supervisor = BackgroundTaskSupervisor()

        async def work():
            return 42

        task = supervisor.spawn("answer", work, job="x")
        await supervisor.drain()

        assert task.result() == 42
        assert supervisor.pending == 0
        assert log_sink[-1]["event"] == "background_task_succeeded"
        assert log_sink[-1]["job"] == "x"

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, log_sink):
        supervisor = BackgroundTaskSupervisor()

        async def broken():
            raise RuntimeError("boom")

        task = supervisor.spawn("broken", broken)
        await supervisor.drain()

        assert task.result() is None
        assert log_sink[-1]["event"] == "background_task_failed"
        assert log_sink[-1]["error_type"] == "RuntimeError"

    @pytest.mark.asyncio
    async def test_task_outlives_spawner(self):
        """The spawning coroutine can finish (or be cancelled) without stopping the task."""
        supervisor = BackgroundTaskSupervisor()
        finished = asyncio.Event()

        async def slow():
            await asyncio.sleep(0.01)
            finished.set()

        async def request_handler():
            supervisor.spawn("slow", slow)
            await asyncio.sleep(10)

        handler = asyncio.create_task(request_handler())
        await asyncio.sleep(0)
        handler.cancel()
        await supervisor.drain()

        assert finished.is_set()
        with pytest.raises(asyncio.CancelledError):
            await handler

    @pytest.mark.asyncio
    async def test_request_id_is_inherited(self):
        supervisor = BackgroundTaskSupervisor()
        seen: list[str | None] = []

        async def work():
            seen.append(get_request_id())

        set_request_context("req-abc")
        try:
            supervisor.spawn("ctx", work)
            await supervisor.drain()
        finally:
            clear_request_context()

        assert seen == ["req-abc"]

    @pytest.mark.asyncio
    async def test_drain_with_timeout_returns_while_running(self, log_sink):
        supervisor = BackgroundTaskSupervisor()
        release = asyncio.Event()

        async def blocked():
            await release.wait()

        supervisor.spawn("blocked", blocked)
        await supervisor.drain(timeout=0.01)

        assert supervisor.pending == 1
        assert log_sink[-1]["event"] == "background_tasks_still_running"

        release.set()
        await supervisor.drain()
        assert supervisor.pending == 0
