"""
Tests for the execution contexts.
"""

import asyncio
import threading

import pytest

from sddl.scheduler import AsyncioScheduler, ThreadScheduler


class TestThreadScheduler:
    """Tasks run on one dedicated thread, in due order."""

    def test_runs_on_dedicated_thread(self, quiet_logger):
        scheduler = ThreadScheduler(name="sddl-test-main", logger=quiet_logger)
        seen = []
        done = threading.Event()

        def task():
            seen.append((threading.current_thread().name, scheduler.is_current()))
            done.set()

        scheduler.post(task)
        assert done.wait(2)
        assert seen == [("sddl-test-main", True)]
        assert not scheduler.is_current()
        scheduler.shutdown()

    def test_delayed_tasks_run_in_due_order(self, quiet_logger):
        scheduler = ThreadScheduler(logger=quiet_logger)
        order = []
        done = threading.Event()

        scheduler.call_later(0.06, lambda: (order.append("late"), done.set()))
        scheduler.call_later(0.02, lambda: order.append("early"))
        scheduler.post(lambda: order.append("now"))

        assert done.wait(2)
        assert order == ["now", "early", "late"]
        scheduler.shutdown()

    def test_failing_task_does_not_stop_loop(self, quiet_logger):
        scheduler = ThreadScheduler(logger=quiet_logger)
        done = threading.Event()

        def boom():
            raise RuntimeError("task failed")

        scheduler.post(boom)
        scheduler.post(done.set)

        assert done.wait(2)
        scheduler.shutdown()

    def test_shutdown_rejects_new_tasks(self, quiet_logger):
        scheduler = ThreadScheduler(logger=quiet_logger)
        scheduler.post(lambda: None)
        scheduler.shutdown()

        with pytest.raises(RuntimeError):
            scheduler.post(lambda: None)


class TestAsyncioScheduler:
    def test_tasks_run_on_loop(self):
        loop = asyncio.new_event_loop()
        try:
            scheduler = AsyncioScheduler(loop)
            seen = []

            async def main():
                finished = asyncio.Event()
                # Post from a foreign thread, as the io executor would
                poster = threading.Thread(target=lambda: scheduler.post(lambda: seen.append("posted")))
                poster.start()
                poster.join()
                scheduler.call_later(0.02, lambda: (seen.append("delayed"), finished.set()))
                await asyncio.wait_for(finished.wait(), 2)

            loop.run_until_complete(main())
            assert seen == ["posted", "delayed"]
        finally:
            loop.close()
