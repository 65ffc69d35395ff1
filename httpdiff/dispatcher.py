"""Running every configured comparison task side by side."""

import logging
import threading

from httpdiff.concurrency import SafeGoWaitGroup
from httpdiff.task import Task, TaskConfig

_log = logging.getLogger("httpdiff.dispatcher")


def task_config_from_diff_config(diff_config):
    """Build the settings of one task from a ``DiffConfig`` entry."""
    return TaskConfig(
        task_name=diff_config.name,
        work_dir=diff_config.work_dir,
        payload=diff_config.payload,
        wait_time=diff_config.wait_time,
        concurrency=diff_config.concurrency,
        url_a=diff_config.url_a,
        url_b=diff_config.url_b,
        method=diff_config.method,
        content_type=diff_config.content_type,
        ignore_fields=diff_config.ignore_fields.split(","),
        output_show_no_diff_line=diff_config.output_show_no_diff_line,
        log_statistics=diff_config.log_statistics,
        success_conditions=diff_config.success_conditions,
    )


class Dispatcher:
    """Creates one task per diff configuration and runs them all concurrently.

    Creating the dispatcher raises the first error met while setting up a task.
    """

    def __init__(self, diff_configs, client=None):
        self.tasks = []
        self._group = SafeGoWaitGroup()
        self._done = threading.Event()
        for diff_config in diff_configs:
            task_config = task_config_from_diff_config(diff_config)
            try:
                task = Task(task_config, client)
            except (OSError, ValueError) as exc:
                _log.error(
                    "NewDispatcher failed to initialize task",
                    extra={"taskName": diff_config.name, "error": str(exc)},
                )
                raise
            self.tasks.append(task)

    def start(self):
        """Run every task and block until all of them have finished."""
        _log.info("Dispatcher started", extra={"tasks": [t.config.task_name for t in self.tasks]})
        for task in self.tasks:
            self._group.safe_go(task.run, self._panic_writer(task))
        self._group.wait()
        _log.info("Dispatcher stopped")
        self._done.set()

    @staticmethod
    def _panic_writer(task):
        def write(exc):
            _log.error(
                "Dispatcher task panic",
                extra={"task": task.config.task_name, "message": str(exc)},
            )

        return write

    def wait(self, timeout=None):
        """Wait until every task has finished; return whether they have."""
        return self._done.wait(timeout)