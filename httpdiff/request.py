"""Building and sending the request for one payload."""

import json
import logging
import re
from urllib.parse import quote_plus, unquote_plus, urlsplit, urlunsplit

from httpdiff.httpclient import (
    CONTENT_TYPE_FORM,
    HEADER_CONTENT_TYPE,
    METHOD_GET,
    METHOD_POST,
    get_client,
)

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_log = logging.getLogger("httpdiff.request")


def _query_unescape(text):
    match = _BAD_ESCAPE.search(text)
    if match:
        raise ValueError(f"invalid URL escape {text[match.start():match.start() + 3]!r}")
    return unquote_plus(text)


def _parse_query(query, strict):
    result = {}
    for part in query.split("&"):
        try:
            if ";" in part:
                raise ValueError("invalid semicolon separator in query")
            if not part:
                continue
            key, _, value = part.partition("=")
            result.setdefault(_query_unescape(key), []).append(_query_unescape(value))
        except ValueError:
            if strict:
                raise
    return result


def _encode_query(query):
    return "&".join(
        f"{quote_plus(key, safe='')}={quote_plus(value, safe='')}"
        for key in sorted(query)
        for value in query[key]
    )


def build_url(url, params):
    """Merge an escaped query string into the query of ``url``, sorted by key."""
    parts = urlsplit(url)
    if not params:
        return url
    added = _parse_query(_query_unescape(params), strict=True)
    query = _parse_query(parts.query, strict=False)
    for key, values in added.items():
        query.setdefault(key, []).extend(values)
    return urlunsplit(parts._replace(query=_encode_query(query)))


def build_headers(info, payload):
    """Decode the payload's JSON headers and apply the task's content type."""
    headers = {}
    if payload.headers:
        decoded = json.loads(payload.headers)
        if decoded is None:
            decoded = {}
        if not isinstance(decoded, dict):
            raise ValueError("headers must be a JSON object")
        for key, value in decoded.items():
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ValueError(f"header {key!r} must be a string")
            headers[key] = value
    if info.content_type:
        headers[HEADER_CONTENT_TYPE] = info.content_type
    return headers


def build_post_params(info, payload):
    """Return the POST body: the raw string for forms, decoded JSON otherwise."""
    if not payload.body:
        return None
    if info.content_type == CONTENT_TYPE_FORM:
        return payload.body
    return json.loads(payload.body)


def do_request(info, payload, client=None):
    """Send the payload to the endpoint described by ``info`` and return the decoded response."""
    client = client if client is not None else get_client()
    _log.debug("DoRequest start", extra={"taskInfo": repr(info), "payload": repr(payload)})

    request_url = build_url(info.url, payload.params)
    headers = build_headers(info, payload)
    _log.debug("DoRequest requestUrl", extra={"url": request_url, "header": headers})

    if info.method == METHOD_GET:
        return client.get(request_url, None, headers)
    if info.method == METHOD_POST:
        params = build_post_params(info, payload)
        return client.post(request_url, params, headers)
    raise ValueError("unsupported method: " + info.method)