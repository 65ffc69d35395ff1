"""Task data: request info, payload lines, output records and counters."""

import json
import math
import threading
from dataclasses import asdict, dataclass, fields


def _dumps(data):
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


@dataclass
class RequestInfo:
    """Where and how one side of the comparison is requested."""

    method: str = ""
    url: str = ""
    content_type: str = ""


@dataclass
class Payload:
    """One line of a payload file: query string, JSON headers and body."""

    params: str = ""
    headers: str = ""
    body: str = ""

    @classmethod
    def from_json(cls, line):
        """Decode a payload from a JSON object; keys match case-insensitively."""
        data = json.loads(line)
        if not isinstance(data, dict):
            raise ValueError(f"payload must be a JSON object, got {type(data).__name__}")
        names = {spec.name for spec in fields(cls)}
        values = {}
        for key, value in data.items():
            name = key if key in names else key.lower()
            if name not in names or value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"payload field {key!r} must be a string")
            values[name] = value
        return cls(**values)

    def to_dict(self):
        return asdict(self)


@dataclass
class Output:
    """The result of comparing the two responses for one payload."""

    payload: Payload | None = None
    url_a_response: object = None
    url_b_response: object = None
    diff: str = ""

    def to_json(self):
        return _dumps(
            {
                "payload": self.payload.to_dict() if self.payload is not None else None,
                "urlAResponse": self.url_a_response,
                "urlBResponse": self.url_b_response,
                "diff": self.diff,
            }
        )


@dataclass
class FailedOutput:
    """A payload that could not be compared, with the reason."""

    params: str = ""
    headers: str = ""
    body: str = ""
    err: str = ""

    @classmethod
    def from_payload(cls, payload, error):
        return cls(
            params=payload.params,
            headers=payload.headers,
            body=payload.body,
            err=str(error) if error is not None else "",
        )

    def to_json(self):
        return _dumps(asdict(self))


class Statistics:
    """Thread-safe counters of compared payloads."""

    def __init__(self, total_count):
        self.total_count = total_count
        self._lock = threading.Lock()
        self._failed = 0
        self._diff = 0
        self._same = 0

    def add_failed(self):
        with self._lock:
            self._failed += 1

    def add_diff(self):
        with self._lock:
            self._diff += 1

    def add_same(self):
        with self._lock:
            self._same += 1

    def failed_count(self):
        with self._lock:
            return self._failed

    def diff_count(self):
        with self._lock:
            return self._diff

    def same_count(self):
        with self._lock:
            return self._same

    def progress(self):
        """Percentage of payloads handled so far."""
        with self._lock:
            done = self._failed + self._same + self._diff
        if self.total_count == 0:
            return math.nan if done == 0 else math.inf
        return done / self.total_count * 100