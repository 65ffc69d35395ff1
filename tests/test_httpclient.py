import json
from datetime import timedelta

import httpx
import pytest
import respx

from httpdiff.config import HttpClientConfig
from httpdiff.httpclient import (
    CONTENT_TYPE_FORM,
    CONTENT_TYPE_JSON,
    HEADER_CONTENT_TYPE,
    HttpClient,
    HttpError,
    get_client,
    init_client,
)


def _config(retry_times=2):
    return HttpClientConfig(
        read_timeout=timedelta(milliseconds=500),
        write_timeout=timedelta(milliseconds=500),
        max_idle_conn_duration=timedelta(hours=1),
        max_conns_per_host=512,
        retry_times=retry_times,
    )


@pytest.fixture
def client():
    http_client = HttpClient(_config())
    yield http_client
    http_client.close()


@pytest.fixture
def mock_router():
    with respx.mock(assert_all_called=False) as router:
        yield router


RESPONSE = {"code": "0", "message": "ok", "data": {"message": "pong"}, "traceId": "trace-1"}


def test_get_with_params(client, mock_router):
    route = mock_router.get("http://127.0.0.1:8080/ping").mock(
        return_value=httpx.Response(200, json=RESPONSE)
    )
    params = {"name": "test", "age": 18, "friends": ["name1", "name2"]}
    result = client.get("http://127.0.0.1:8080/ping", params, None, timedelta(seconds=1))
    assert result == RESPONSE
    sent = route.calls.last.request
    assert str(sent.url) == "http://127.0.0.1:8080/ping?age=18&friends=name1&friends=name2&name=test"


def test_get_without_params_keeps_url(client, mock_router):
    route = mock_router.get("http://127.0.0.1:8080/ping").mock(
        return_value=httpx.Response(200, json=[1, 2])
    )
    assert client.get("http://127.0.0.1:8080/ping") == [1, 2]
    assert str(route.calls.last.request.url) == "http://127.0.0.1:8080/ping"


def test_get_sends_headers(client, mock_router):
    route = mock_router.get("http://127.0.0.1:8080/ping").mock(
        return_value=httpx.Response(200, json={"seen": True})
    )
    result = client.get("http://127.0.0.1:8080/ping", None, {"X-Trace": "abc"})
    assert result == {"seen": True}
    assert route.calls.last.request.headers["X-Trace"] == "abc"


def test_post_form(client, mock_router):
    route = mock_router.post("http://127.0.0.1:8080/form").mock(
        return_value=httpx.Response(200, json={"data": {"success": "true"}})
    )
    headers = {HEADER_CONTENT_TYPE: CONTENT_TYPE_FORM}
    result = client.post(
        "http://127.0.0.1:8080/form",
        "name=test&age=18&friends=name1&friends=name2",
        headers,
        timedelta(seconds=1),
    )
    assert result == {"data": {"success": "true"}}
    sent = route.calls.last.request
    assert sent.headers[HEADER_CONTENT_TYPE] == CONTENT_TYPE_FORM
    assert sent.content == b"age=18&friends=name1&friends=name2&name=test"


def test_post_form_needs_string(client):
    with pytest.raises(HttpError):
        client.post("http://127.0.0.1:8080/form", {"a": 1}, {HEADER_CONTENT_TYPE: CONTENT_TYPE_FORM})


def test_post_json(client, mock_router):
    route = mock_router.post("http://127.0.0.1:8080/json").mock(
        return_value=httpx.Response(200, json=RESPONSE)
    )
    params = {"name": "test", "age": 18, "friends": ["name1", "name2"]}
    result = client.post("http://127.0.0.1:8080/json", params, None, timedelta(minutes=1))
    assert result == RESPONSE
    sent = route.calls.last.request
    assert sent.headers[HEADER_CONTENT_TYPE] == CONTENT_TYPE_JSON
    assert json.loads(sent.content) == params


def test_non_200_status_raises(client, mock_router):
    mock_router.get("http://127.0.0.1:8080/ping").mock(return_value=httpx.Response(500, json={}))
    with pytest.raises(HttpError, match="data request failed , code:500"):
        client.get("http://127.0.0.1:8080/ping")


def test_undecodable_body_raises(client, mock_router):
    mock_router.get("http://127.0.0.1:8080/ping").mock(
        return_value=httpx.Response(200, content=b"not json")
    )
    with pytest.raises(HttpError):
        client.get("http://127.0.0.1:8080/ping")


def test_get_is_retried_on_transport_error(client, mock_router):
    route = mock_router.get("http://127.0.0.1:8080/ping").mock(
        side_effect=[httpx.ConnectError("refused"), httpx.Response(200, json={"ok": True})]
    )
    assert client.get("http://127.0.0.1:8080/ping") == {"ok": True}
    assert route.call_count == 2


def test_get_gives_up_after_retry_times(client, mock_router):
    route = mock_router.get("http://127.0.0.1:8080/ping").mock(
        side_effect=httpx.ConnectError("refused")
    )
    with pytest.raises(HttpError):
        client.get("http://127.0.0.1:8080/ping")
    assert route.call_count == 2


def test_post_is_not_retried(client, mock_router):
    route = mock_router.post("http://127.0.0.1:8080/json").mock(
        side_effect=httpx.ConnectError("refused")
    )
    with pytest.raises(HttpError):
        client.post("http://127.0.0.1:8080/json", {"a": 1})
    assert route.call_count == 1


def test_init_client_is_created_once():
    first = init_client(_config())
    second = init_client(_config(retry_times=7))
    assert first is second
    assert get_client() is first