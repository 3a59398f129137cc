"""
Run a blocking stack operation in the background while reporting progress.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Optional, TypeVar

from ..exceptions import HerogateError, OperationCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PROGRESS_INTERVAL = 10.0


def run_with_progress(
    task: Callable[[], T],
    poll: Callable[[], Optional[int]],
    render: Callable[[int], None],
    interval: float = DEFAULT_PROGRESS_INTERVAL,
    cancel: Optional[threading.Event] = None,
) -> T:
    """
    Run `task` on a single background worker and render `poll()` every
    `interval` seconds until it finishes.

    The task's return value (or exception) is handed back through its future.
    A poll that returns None renders nothing for that tick. Setting `cancel`
    stops the waiting, not the provider call already in flight; the same holds
    when the loop is left early for any other reason, e.g. KeyboardInterrupt.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="herogate")
    future = None
    try:
        future = executor.submit(task)
        render(0)
        while True:
            try:
                return future.result(timeout=interval)
            except FutureTimeout:
                pass

            if cancel is not None and cancel.is_set():
                future.cancel()
                raise OperationCancelled("Stopped waiting for the operation")

            try:
                percent = poll()
            except HerogateError as e:
                logger.warning(f"Failed to check progress: {e}")
                continue
            if percent is not None:
                render(percent)
    finally:
        # Never block on a provider call still in flight
        executor.shutdown(wait=future is None or future.done())
