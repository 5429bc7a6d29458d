"""Base class for objects that run their work loop on a background thread."""

from __future__ import annotations

import logging
import threading

log = logging.getLogger(__name__)


class Worker:
    """Run :meth:`work` on a thread; :meth:`stop` asks it to finish and joins.

    Subclasses override :meth:`work`, typically looping while
    ``not self.is_exit``, and may override :meth:`clear` to release
    resources after the thread has ended.
    """

    def __init__(self) -> None:
        self._exit = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_exit(self) -> bool:
        """True once a stop has been requested."""
        return self._exit.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None

    def start(self) -> None:
        """Start the worker thread."""
        if self._thread is not None:
            raise RuntimeError("worker already started")
        self._exit.clear()
        thread = threading.Thread(target=self.work, name=type(self).__name__, daemon=True)
        thread.start()
        self._thread = thread
        log.info("[%x]Worker.start, thread started, ident=%s.", id(self), thread.ident)

    def stop(self) -> None:
        """Request exit, wait for the thread, then call :meth:`clear`."""
        if self._thread is None:
            return
        log.info("[%x]Worker.stop, ident=%s.", id(self), self._thread.ident)
        self._exit.set()
        self._thread.join()
        self._thread = None
        self.clear()

    def work(self) -> None:
        """Body of the worker thread; does nothing by default."""

    def clear(self) -> None:
        """Release resources after the thread stops; does nothing by default."""

    def __enter__(self) -> "Worker":
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()