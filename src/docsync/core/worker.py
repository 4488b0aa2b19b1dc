"""Background execution of a sync run with progress relayed to the calling thread"""

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class SyncJob:
    """Runs one synchronization at a time on a single worker thread.

    The worker calls report() from its own thread; wait() drains those events
    on the caller's thread, so progress callbacks never run on the worker.
    """

    def __init__(self) -> None:
        self.cancel = threading.Event()
        self.future: Optional[Future] = None
        self._events: "queue.Queue[tuple[int, int]]" = queue.Queue()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="docsync-sync")

    @property
    def running(self) -> bool:
        return self.future is not None and not self.future.done()

    def start(self, fn: Callable, *args, **kwargs) -> Future:
        if self.running:
            raise RuntimeError("A synchronization run is already in progress")
        self.cancel.clear()
        self.future = self._executor.submit(fn, *args, **kwargs)
        return self.future

    def report(self, current: int, total: int) -> None:
        """Thread-safe progress sink handed to the sync drivers."""
        self._events.put((current, total))

    def abort(self) -> None:
        """Ask the running sync to stop after the current item."""
        logger.info("Abort requested")
        self.cancel.set()

    def drain(self, on_progress: Optional[Callable[[int, int], None]] = None) -> None:
        while True:
            try:
                current, total = self._events.get_nowait()
            except queue.Empty:
                return
            if on_progress is not None:
                on_progress(current, total)

    def wait(self, on_progress: Optional[Callable[[int, int], None]] = None, poll: float = 0.1):
        """Block until the run finishes, relaying progress; returns its result or raises its error."""
        if self.future is None:
            raise RuntimeError("No synchronization run has been started")
        while not self.future.done():
            try:
                current, total = self._events.get(timeout=poll)
            except queue.Empty:
                continue
            if on_progress is not None:
                on_progress(current, total)
        self.drain(on_progress)
        return self.future.result()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
