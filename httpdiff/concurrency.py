"""Running work in threads without letting exceptions escape."""

import logging
import threading

_log = logging.getLogger("httpdiff.concurrency")


class SafeGoWaitGroup:
    """Starts functions in threads and waits for all of them to finish.

    An exception raised by a function is handed to its panic writer instead
    of propagating.
    """

    def __init__(self):
        self._pending = 0
        self._condition = threading.Condition()

    def safe_go(self, func, panic_writer=None):
        """Run ``func`` in a new thread; pass any exception to ``panic_writer``."""
        with self._condition:
            self._pending += 1
        thread = threading.Thread(target=self._run, args=(func, panic_writer), daemon=True)
        thread.start()

    def _run(self, func, panic_writer):
        try:
            func()
        except Exception as exc:
            if panic_writer is not None:
                panic_writer(exc)
        finally:
            with self._condition:
                self._pending -= 1
                if self._pending == 0:
                    self._condition.notify_all()

    def wait(self):
        """Block until every started function has finished."""
        with self._condition:
            self._condition.wait_for(lambda: self._pending == 0)


def recovery_with_logger(func, tag):
    """Call ``func``, logging any exception it raises instead of propagating it."""
    try:
        func()
    except Exception as exc:
        _log.error("Recovered from panic", extra={"error": repr(exc), "tag": tag}, exc_info=True)


def recovery_with_logger_and_callback(func, tag, callback):
    """Call ``func``; on an exception, log it and then call ``callback``."""
    try:
        func()
    except Exception as exc:
        _log.error("Recovered from panic", extra={"error": repr(exc), "tag": tag}, exc_info=True)
        if callback is not None:
            callback()