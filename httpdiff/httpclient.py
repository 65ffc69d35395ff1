"""HTTP client used to call the compared endpoints."""

import json
import logging
import threading
from collections.abc import Mapping
from datetime import timedelta
from urllib.parse import parse_qsl, urlencode

import httpx

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"
HEADER_CONTENT_TYPE = "Content-Type"
METHOD_GET = "GET"
METHOD_POST = "POST"

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_MAX_CONNS_PER_HOST = 512
DEFAULT_MAX_IDLE_SECONDS = 10.0
_IDEMPOTENT = frozenset({"GET", "HEAD", "PUT"})

_log = logging.getLogger("httpdiff.http")


class HttpError(Exception):
    """A request could not be sent or its response was not usable."""


def _seconds(value):
    if value is None:
        return None
    if isinstance(value, timedelta):
        value = value.total_seconds()
    return value if value > 0 else None


def _validate_url(url):
    try:
        httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise HttpError(f"invalid url {url!r}: {exc}") from exc


def _query_value(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _encode_params(params):
    if isinstance(params, str):
        return params
    if not isinstance(params, Mapping):
        raise HttpError(f"query parameters must be a mapping, got {type(params).__name__}")
    pairs = []
    for key in sorted(params, key=str):
        value = params[key]
        if isinstance(value, (list, tuple)):
            pairs.extend((str(key), _query_value(item)) for item in value)
        else:
            pairs.append((str(key), _query_value(value)))
    return urlencode(pairs)


class HttpClient:
    """Sends GET and POST requests and decodes JSON responses."""

    def __init__(self, config):
        self.config = config
        read_write = _seconds(config.read_timeout)
        conns = config.max_conns_per_host if config.max_conns_per_host > 0 else DEFAULT_MAX_CONNS_PER_HOST
        idle = _seconds(config.max_idle_conn_duration) or DEFAULT_MAX_IDLE_SECONDS
        self.max_attempts = config.retry_times if config.retry_times > 0 else DEFAULT_MAX_ATTEMPTS
        self._client = httpx.Client(
            timeout=httpx.Timeout(None, read=read_write, write=read_write),
            limits=httpx.Limits(
                max_connections=conns,
                max_keepalive_connections=conns,
                keepalive_expiry=idle,
            ),
        )

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def get(self, url, params=None, headers=None, timeout=None):
        """Send a GET request and return the decoded JSON body."""
        _validate_url(url)
        if params is not None:
            url = f"{url}?{_encode_params(params)}"
        return self._send(METHOD_GET, url, httpx.Headers(headers or {}), None, timeout)

    def post(self, url, params=None, headers=None, timeout=None):
        """Send a POST request, as a form or as JSON, and return the decoded JSON body."""
        _validate_url(url)
        headers = dict(headers or {})
        request_headers = httpx.Headers(headers)
        if headers.get(HEADER_CONTENT_TYPE) == CONTENT_TYPE_FORM:
            if not isinstance(params, str):
                raise HttpError("form parameters must be a query string")
            request_headers[HEADER_CONTENT_TYPE] = CONTENT_TYPE_FORM
            pairs = sorted(parse_qsl(params, keep_blank_values=True), key=lambda pair: pair[0])
            content = urlencode(pairs).encode()
        else:
            request_headers[HEADER_CONTENT_TYPE] = CONTENT_TYPE_JSON
            try:
                content = json.dumps(params, ensure_ascii=False, separators=(",", ":")).encode()
            except (TypeError, ValueError) as exc:
                raise HttpError(f"cannot encode request body: {exc}") from exc
        return self._send(METHOD_POST, url, request_headers, content, timeout)

    def _send(self, method, url, headers, content, timeout):
        request_timeout = _seconds(timeout)
        extra = {} if request_timeout is None else {"timeout": request_timeout}
        _log.info("http_DoTimeOut", extra={"method": method, "url": url, "timeOut": request_timeout})

        attempts = self.max_attempts if method in _IDEMPOTENT else 1
        for attempt in range(1, attempts + 1):
            try:
                response = self._client.request(method, url, headers=headers, content=content, **extra)
                break
            except httpx.TransportError as exc:
                if attempt == attempts:
                    raise HttpError(f"{method} {url} failed: {exc}") from exc

        if response.status_code != 200:
            raise HttpError(f"data request failed , code:{response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            _log.info("http_DoTimeOut unmarshal error", extra={"error": str(exc), "body": response.text})
            raise HttpError(f"cannot decode response body: {exc}") from exc

    def close(self):
        """Close the underlying connections."""
        self._client.close()


_client = None
_client_lock = threading.Lock()


def init_client(config):
    """Create the shared client on the first call; later calls return it unchanged."""
    global _client
    with _client_lock:
        if _client is None:
            _client = HttpClient(config)
        return _client


def get_client():
    """Return the shared client."""
    if _client is None:
        raise RuntimeError("http client is not initialised, call init_client first")
    return _client