"""
core/background.py -- Detached fire-and-forget work.

Two side effects must never delay or fail the request that triggers them:
  - stamping last_used_at on a service account after bearer verification
  - incrementing a post's view counter on the public read path

fire_and_forget() submits the callable to a small process-wide thread pool
and attaches a done-callback that logs any exception. The returned Future is
for tests and shutdown only -- request code never joins it, and there is no
timeout or cancellation.

The pool is created lazily so a lifespan restart (one per TestClient) gets a
fresh executor after shutdown() tore the previous one down.

Layer rule: no imports from api/, auth/, or blog/.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

logger = logging.getLogger("inkpress.background")

_MAX_WORKERS = 4

_executor: ThreadPoolExecutor | None = None
_lock = threading.Lock()


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=_MAX_WORKERS, thread_name_prefix="inkpress-bg")
        return _executor


def _log_failure(description: str) -> Callable[[Future], None]:
    def _callback(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Background task failed: %s", description, exc_info=exc)

    return _callback


def fire_and_forget(fn: Callable[..., Any], *args: Any, description: str = "", **kwargs: Any) -> Future:
    """Run fn(*args, **kwargs) off the request path; log and swallow failures."""
    label = description or getattr(fn, "__name__", repr(fn))
    future = _get_executor().submit(fn, *args, **kwargs)
    future.add_done_callback(_log_failure(label))
    return future


def shutdown(wait: bool = True) -> None:
    """Drain pending work and release the pool. Called from the API lifespan."""
    global _executor
    with _lock:
        executor, _executor = _executor, None
    if executor is not None:
        executor.shutdown(wait=wait)
