"""Comparing the responses of two endpoints for every payload of a task."""

import json
import logging
import os
import queue
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from itertools import zip_longest

from httpdiff.concurrency import SafeGoWaitGroup, recovery_with_logger_and_callback
from httpdiff.fileutil import DEFAULT_MAX_LINE_SIZE, file_line_count
from httpdiff.jsonfield import (
    JsonFieldError,
    get_field_value,
    set_json_field_to_nil,
    set_json_field_value,
)
from httpdiff.models import FailedOutput, Output, Payload, RequestInfo, Statistics
from httpdiff.request import do_request

QUEUE_SIZE = 1000
_POLL_SECONDS = 0.1
_DONE = object()
_MISSING = object()

_log = logging.getLogger("httpdiff.task")


@dataclass
class TaskConfig:
    """Settings of one comparison task."""

    task_name: str = ""
    work_dir: str = ""
    payload: str = ""
    wait_time: timedelta = timedelta(0)
    concurrency: int = 1
    url_a: str = ""
    url_b: str = ""
    method: str = ""
    content_type: str = ""
    ignore_fields: list[str] = field(default_factory=list)
    output_show_no_diff_line: bool = False
    log_statistics: bool = False
    success_conditions: str = ""


def parse_success_conditions(text):
    """Parse ``"key=value,key=value"`` into a dict; raise ``ValueError`` on a malformed item."""
    conditions = {}
    if not text:
        return conditions
    for condition in text.split(","):
        key, sep, value = condition.partition("=")
        if not sep:
            _log.error("InitTask Invalid success condition format", extra={"condition": condition})
            raise ValueError("invalid success condition format: " + condition)
        conditions[key] = value
    return conditions


def _to_string(value):
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        text = format(Decimal(repr(value)), "f")
        return text.rstrip("0").rstrip(".") if "." in text else text
    return ""


def _kind(value):
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


def _render(value):
    if value is _MISSING:
        return "<missing>"
    return json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)


def _collect(left, right, path, lines):
    if left is _MISSING or right is _MISSING:
        pass
    elif isinstance(left, dict) and isinstance(right, dict):
        for key in sorted(left.keys() | right.keys(), key=str):
            _collect(left.get(key, _MISSING), right.get(key, _MISSING), f"{path}.{key}", lines)
        return
    elif isinstance(left, list) and isinstance(right, list):
        pairs = zip_longest(left, right, fillvalue=_MISSING)
        for index, (item_left, item_right) in enumerate(pairs):
            _collect(item_left, item_right, f"{path}[{index}]", lines)
        return
    elif _kind(left) == _kind(right) and left == right:
        return
    if left is not _MISSING:
        lines.append(f"- {path}: {_render(left)}")
    if right is not _MISSING:
        lines.append(f"+ {path}: {_render(right)}")


def json_diff(left, right):
    """Describe how two decoded JSON documents differ; empty when they are equal."""
    lines = []
    _collect(left, right, "$", lines)
    return "\n".join(lines)


def _error_text(error):
    return "" if error is None else str(error)


class Task:
    """Sends every payload to two endpoints and records how the responses differ."""

    def __init__(self, config, client=None):
        self.config = config
        self.client = client
        total = sum(file_line_count(path) for path in self._payload_files())
        self.success_conditions = parse_success_conditions(config.success_conditions)
        self.statistics = Statistics(total)
        self.url_a_info = RequestInfo(config.method, config.url_a, config.content_type)
        self.url_b_info = RequestInfo(config.method, config.url_b, config.content_type)
        self._input = queue.Queue(QUEUE_SIZE)
        self._outputs = queue.Queue(QUEUE_SIZE)
        self._failed = queue.Queue(QUEUE_SIZE)
        self._stopped = threading.Event()

    @property
    def output_path(self):
        return os.path.join(self.config.work_dir, self.config.task_name + "_output.txt")

    @property
    def failed_path(self):
        return os.path.join(self.config.work_dir, self.config.task_name + "_failed_payload.txt")

    def _payload_files(self):
        return [os.path.join(self.config.work_dir, name) for name in self.config.payload.split(",")]

    def _worker_count(self):
        return self.config.concurrency if self.config.concurrency > 0 else 1

    def response_success(self, result):
        """Check that every success condition holds in a decoded response."""
        for key, expected in self.success_conditions.items():
            try:
                value = get_field_value(result, key)
            except JsonFieldError as exc:
                _log.debug("Task_responseSuccess lookup failed", extra={"key": key, "error": str(exc)})
                return False
            if _to_string(value) != expected:
                return False
        return True

    def _fail(self, payload, error):
        self.statistics.add_failed()
        return FailedOutput.from_payload(payload, error)

    def process(self, payload):
        """Compare both endpoints for one payload; return an ``Output`` or a ``FailedOutput``."""
        responses = {}
        errors = {}

        def fetch(side, info):
            responses[side] = do_request(info, payload, self.client)

        def failure(side):
            def record(exc):
                _log.error(
                    "Task_run Failed to get response",
                    extra={"side": side, "payload": repr(payload), "error": str(exc)},
                )
                errors[side] = exc

            return record

        group = SafeGoWaitGroup()
        group.safe_go(lambda: fetch("a", self.url_a_info), failure("a"))
        group.safe_go(lambda: fetch("b", self.url_b_info), failure("b"))
        group.wait()

        if errors:
            message = (
                "failed to get response: "
                + _error_text(errors.get("a"))
                + "; "
                + _error_text(errors.get("b"))
            )
            return self._fail(payload, message)

        response_a, response_b = responses["a"], responses["b"]
        if not self.response_success(response_a) or not self.response_success(response_b):
            _log.error("Task_run Response does not meet success conditions", extra={"payload": repr(payload)})
            return self._fail(payload, "response does not meet success conditions")

        saved_a, saved_b = {}, {}
        for name in self.config.ignore_fields:
            if not name:
                continue
            try:
                saved_a[name] = set_json_field_to_nil(response_a, name)
                saved_b[name] = set_json_field_to_nil(response_b, name)
            except JsonFieldError as exc:
                _log.error("Task_run Failed to set field to nil", extra={"field": name, "error": str(exc)})
                return self._fail(payload, exc)

        diff = json_diff(response_a, response_b)
        if not diff:
            self.statistics.add_same()
            return Output(payload=payload, diff="")

        error_a = self._restore(response_a, saved_a)
        error_b = self._restore(response_b, saved_b)
        if error_a is not None or error_b is not None:
            return self._fail(
                payload,
                "failed to set field value in response: "
                + _error_text(error_a)
                + "; "
                + _error_text(error_b),
            )

        self.statistics.add_diff()
        return Output(payload=payload, url_a_response=response_a, url_b_response=response_b, diff=diff)

    def _restore(self, json_data, saved):
        for name, value in saved.items():
            try:
                set_json_field_value(json_data, name, value)
            except JsonFieldError as exc:
                _log.error("Task_recoverFileValue Failed to set field value", extra={"field": name, "error": str(exc)})
                return exc
        return None

    def _put(self, target, item):
        while not self._stopped.is_set():
            try:
                target.put(item, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def _get(self, source):
        while not self._stopped.is_set():
            try:
                return source.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue
        return _DONE

    def _read_file(self, path):
        _log.warning("Task_runReader Reading file start", extra={"file": path})
        with open(path, "rb") as handle:
            for line_number, raw in enumerate(handle, 1):
                if len(raw) > DEFAULT_MAX_LINE_SIZE:
                    _log.error("Task_runReader Line too long", extra={"file": path, "lineNumber": line_number})
                    break
                line = raw.removesuffix(b"\n").removesuffix(b"\r").decode("utf-8", errors="replace")
                if not line:
                    self.statistics.add_failed()
                    _log.error("Task_runReader Empty line in file", extra={"file": path, "lineNumber": line_number})
                    continue
                try:
                    payload = Payload.from_json(line)
                except ValueError as exc:
                    self.statistics.add_failed()
                    _log.error(
                        "Task_runReader Failed to unmarshal payload",
                        extra={"line": line, "lineNumber": line_number, "error": str(exc)},
                    )
                    continue
                if not self._put(self._input, payload):
                    return False
        _log.warning("Task_runReader Reading file end", extra={"file": path})
        return True

    def _reader(self):
        try:
            for path in self._payload_files():
                if not self._read_file(path):
                    return
            _log.info("Task_runReader Finished reading all payload files")
        finally:
            for _ in range(self._worker_count()):
                self._put(self._input, _DONE)

    def _worker(self):
        wait_seconds = self.config.wait_time.total_seconds()
        while True:
            payload = self._get(self._input)
            if payload is _DONE:
                return
            if wait_seconds > 0 and self._stopped.wait(wait_seconds):
                return
            result = self.process(payload)
            target = self._failed if isinstance(result, FailedOutput) else self._outputs
            if not self._put(target, result):
                return

    def _writer(self, source, path, skip_same):
        with open(path, "w", encoding="utf-8") as handle:
            while True:
                item = self._get(source)
                if item is _DONE:
                    return
                if skip_same and item.diff == "":
                    continue
                try:
                    handle.write(item.to_json() + "\n")
                    handle.flush()
                except (OSError, TypeError, ValueError) as exc:
                    _log.error("Task write failed", extra={"file": path, "error": str(exc)})

    def _log_statistics(self):
        stats = self.statistics
        _log.info(
            "Task_logStatisticsInfo_" + self.config.task_name + ":",
            extra={
                "totalCount": stats.total_count,
                "sameCount": stats.same_count(),
                "diffCount": stats.diff_count(),
                "failedCount": stats.failed_count(),
                "progress": stats.progress(),
            },
        )

    def _statistics_loop(self):
        while not self._stopped.wait(1.0):
            self._log_statistics()

    def _spawn(self, func, tag):
        thread = threading.Thread(
            target=recovery_with_logger_and_callback, args=(func, tag, self.stop), daemon=True
        )
        thread.start()
        return thread

    def _coordinate(self, reader, workers, writers):
        reader.join()
        for worker in workers:
            worker.join()
        self._put(self._outputs, _DONE)
        self._put(self._failed, _DONE)
        for writer in writers:
            writer.join()
        self.stop()

    def run(self):
        """Process every payload and block until the task finishes or is stopped."""
        _log.info("Task_Run Start running task", extra={"task": self.config.task_name})
        reader = self._spawn(self._reader, "Task_Run_runReader")
        workers = [self._spawn(self._worker, "Task_Run_run") for _ in range(self._worker_count())]
        writers = [
            self._spawn(
                lambda: self._writer(self._outputs, self.output_path, not self.config.output_show_no_diff_line),
                "Task_Run_writeOutputToFile",
            ),
            self._spawn(
                lambda: self._writer(self._failed, self.failed_path, False),
                "Task_Run_writeFailedPayloadToFile",
            ),
        ]
        if self.config.log_statistics:
            self._spawn(self._statistics_loop, "Task_Run_logStatisticsInfoLoop")
        threading.Thread(target=self._coordinate, args=(reader, workers, writers), daemon=True).start()

        self._stopped.wait()
        if self.config.log_statistics:
            self._log_statistics()
        _log.info("Task_Run Stop running task", extra={"task": self.config.task_name})

    def stop(self):
        """Signal the task to finish."""
        self._stopped.set()

    def wait(self, timeout=None):
        """Wait until the task has finished; return whether it has."""
        return self._stopped.wait(timeout)