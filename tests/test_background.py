"""
tests/test_background.py -- Unit tests for core/background.py.
"""

from __future__ import annotations

import logging
import threading

from core import background


class TestFireAndForget:
    def teardown_method(self) -> None:
        background.shutdown(wait=True)

    def test_runs_off_the_calling_thread(self) -> None:
        seen: list[str] = []
        future = background.fire_and_forget(lambda: seen.append(threading.current_thread().name))
        future.result(timeout=3)
        assert seen and seen[0].startswith("inkpress-bg")

    def test_failure_is_logged_not_raised(self, caplog) -> None:
        def boom() -> None:
            raise RuntimeError("kaboom")

        with caplog.at_level(logging.ERROR, logger="inkpress.background"):
            future = background.fire_and_forget(boom, description="exploding task")
            background.shutdown(wait=True)

        assert isinstance(future.exception(), RuntimeError)
        assert "Background task failed: exploding task" in caplog.text

    def test_pool_recreated_after_shutdown(self) -> None:
        background.shutdown(wait=True)
        assert background.fire_and_forget(lambda: 7).result(timeout=3) == 7
