import json
from datetime import timedelta

import httpx
import pytest
import respx

from httpdiff.config import DiffConfig, HttpClientConfig
from httpdiff.dispatcher import Dispatcher, task_config_from_diff_config
from httpdiff.httpclient import HttpClient


@pytest.fixture
def client():
    http_client = HttpClient(HttpClientConfig())
    yield http_client
    http_client.close()


def _diff_config(tmp_path, **overrides):
    values = dict(
        name="task_1",
        concurrency=2,
        work_dir=str(tmp_path),
        payload="payload_task_1.txt",
        url_a="https://example.com/url_a",
        url_b="https://example.com/url_b",
        method="GET",
        content_type="application/json",
        ignore_fields="",
        output_show_no_diff_line=True,
        success_conditions="code=0",
    )
    values.update(overrides)
    return DiffConfig(**values)


def test_task_config_copies_fields():
    diff_config = DiffConfig(
        name="task_2",
        concurrency=5,
        wait_time=timedelta(seconds=1),
        work_dir="./data",
        payload="payload_task_2.txt",
        url_a="https://example.com/url_a",
        url_b="https://example.com/url_b",
        method="POST",
        content_type="application/json",
        ignore_fields="field_a,field_b",
        output_show_no_diff_line=False,
        log_statistics=True,
        success_conditions="stat=1,code=1",
    )
    config = task_config_from_diff_config(diff_config)
    assert config.task_name == "task_2"
    assert config.concurrency == 5
    assert config.wait_time == timedelta(seconds=1)
    assert config.work_dir == "./data"
    assert config.payload == "payload_task_2.txt"
    assert config.url_a == diff_config.url_a
    assert config.url_b == diff_config.url_b
    assert config.method == "POST"
    assert config.ignore_fields == ["field_a", "field_b"]
    assert config.output_show_no_diff_line is False
    assert config.log_statistics is True
    assert config.success_conditions == "stat=1,code=1"


def test_empty_ignore_fields_split_like_source():
    config = task_config_from_diff_config(DiffConfig(ignore_fields=""))
    assert config.ignore_fields == [""]


def test_missing_payload_file_raises(tmp_path, client):
    with pytest.raises(FileNotFoundError):
        Dispatcher([_diff_config(tmp_path)], client)


def test_invalid_success_condition_raises(tmp_path, client):
    (tmp_path / "payload_task_1.txt").write_text('{"params":"id=1"}\n')
    with pytest.raises(ValueError, match="invalid success condition format"):
        Dispatcher([_diff_config(tmp_path, success_conditions="code")], client)


def test_creates_one_task_per_config(tmp_path, client):
    (tmp_path / "a.txt").write_text('{"params":"id=1"}\n{"params":"id=2"}\n')
    (tmp_path / "b.txt").write_text('{"params":"id=3"}\n')
    dispatcher = Dispatcher(
        [
            _diff_config(tmp_path, name="first", payload="a.txt"),
            _diff_config(tmp_path, name="second", payload="b.txt"),
        ],
        client,
    )
    assert [task.config.task_name for task in dispatcher.tasks] == ["first", "second"]
    assert [task.statistics.total_count for task in dispatcher.tasks] == [2, 1]
    assert dispatcher.wait(0) is False


def test_start_runs_tasks_and_writes_output(tmp_path, client):
    (tmp_path / "payload_task_1.txt").write_text('{"params":"id=1"}\n')
    with respx.mock:
        respx.route(host="example.com", path="/url_a").mock(
            return_value=httpx.Response(200, json={"code": 0, "value": 1})
        )
        respx.route(host="example.com", path="/url_b").mock(
            return_value=httpx.Response(200, json={"code": 0, "value": 2})
        )
        dispatcher = Dispatcher([_diff_config(tmp_path)], client)
        dispatcher.start()

    assert dispatcher.wait(5) is True
    task = dispatcher.tasks[0]
    assert task.statistics.diff_count() == 1
    assert task.statistics.failed_count() == 0
    lines = (tmp_path / "task_1_output.txt").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["payload"]["params"] == "id=1"
    assert record["urlAResponse"] == {"code": 0, "value": 1}
    assert record["urlBResponse"] == {"code": 0, "value": 2}
    assert record["diff"] != ""
    assert (tmp_path / "task_1_failed_payload.txt").read_text() == ""