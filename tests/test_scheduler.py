"""
Unit tests for the debounced task
"""
import time
from unittest.mock import Mock

import pytest

from storefront.scheduler import DebouncedTask


class TestDebouncedTask:
    """Test DebouncedTask"""

    @pytest.fixture
    def func(self):
        return Mock()

    @pytest.fixture
    def task(self, func):
        task = DebouncedTask(func, delay_ms=30, name="test-task")
        yield task
        task.cancel()

    def wait_for(self, condition, timeout=2.0):
        deadline = time.monotonic() + timeout
        while not condition() and time.monotonic() < deadline:
            time.sleep(0.01)

    def test_runs_once_after_burst(self, task, func):
        for _ in range(5):
            task.schedule()

        self.wait_for(lambda: func.called)
        time.sleep(0.06)

        func.assert_called_once_with()
        assert task.pending is False

    def test_flush_runs_immediately(self, task, func):
        task.schedule()

        assert task.flush() is True
        func.assert_called_once_with()
        assert task.flush() is False

    def test_discard_keeps_task_usable(self, task, func):
        task.schedule()
        task.discard()

        assert task.pending is False
        func.assert_not_called()

        task.schedule()
        assert task.flush() is True
        func.assert_called_once_with()

    def test_cancel_refuses_new_runs(self, task, func):
        task.cancel()
        task.schedule()

        assert task.pending is False
        time.sleep(0.06)
        func.assert_not_called()

    def test_failure_is_logged_not_raised(self, task, func):
        func.side_effect = RuntimeError("disk full")
        task.schedule()

        assert task.flush() is True
        func.assert_called_once_with()
