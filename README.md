# httpdiff

`httpdiff` replays a set of recorded requests against two HTTP endpoints
(an "A" URL and a "B" URL), compares the JSON responses and writes down
every request whose responses differ. It is meant for checking that a new
deployment or a rewritten service answers exactly like the one it replaces.

## Installation

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Running

```
http-diff start --config ./config/config.toml
```

`-c` is the short form of `--config`; when it is left out,
`./config/config.toml` is used. Run without a command, `http-diff` prints
its help. `start` runs every configured task concurrently and returns once
all of them have finished, or when it receives SIGINT, SIGTERM or SIGQUIT,
in which case every task is told to stop. If the configuration cannot be
read or a task cannot be set up (a payload file is missing, a success
condition is malformed), it prints `Error executing command: ...` and exits
with status 1.

## Configuration

The configuration is a TOML file (a `.json` file with the same structure is
accepted too). Keys are matched case-insensitively; missing keys keep their
defaults.

```toml
[app]
name = "http-diff"

[log]
level = "INFO"          # DEBUG, INFO, WARN or ERROR; anything else means DEBUG
console = true          # also log to standard output
path = "./"
file_name = "server.log"
max_size = 100          # MB per log file
max_backups = 30
max_age = 28            # days a rotated file is kept

[fast_http]
read_time_out = "500ms"
write_time_out = "500ms"
max_idle_conn_duration = "1h"
max_conns_per_host = 512
retry_times = 2

[[diff_configs]]
name = "task_1"
concurrency = 10
wait_time = "0s"                     # pause before each request pair
work_dir = "./data"
payload = "payload_task_1.txt"       # several files separated by commas
url_a = "https://example.com/url_a"
url_b = "https://example.com/url_b"
method = "GET"                       # GET or POST
content_type = "application/json"    # or application/x-www-form-urlencoded
ignore_fields = "traceId,data.timestamp"
output_show_no_diff_line = false
log_statistics = true
success_conditions = "code=0"
```

Durations accept Go-style strings such as `"500ms"`, `"1.5s"`, `"2m"` or
`"1h30m"` (units `ns`, `us`, `ms`, `s`, `m`, `h`); a bare number is taken as
nanoseconds.

Notes on `[fast_http]`:

* `read_time_out` is used as both the read and the write timeout of the
  client; `write_time_out` is read but not otherwise applied.
* `retry_times` is the number of attempts for GET, HEAD and PUT requests
  that fail with a transport error (5 when unset); POST is tried once.
* `max_conns_per_host` defaults to 512 and `max_idle_conn_duration` to 10
  seconds when unset.

Logging goes to a size-rotated file of JSON lines; on rotation, backups older
than `max_age` days are removed. With `console = true` a tab-separated text
form is written to standard output as well.

### Payload files

Each payload file lives in the task's `work_dir` and holds one JSON object
per line. All three fields are strings and any of them may be empty:

```json
{"params": "id=1&lang=en", "headers": "{\"X-Trace\": \"abc\"}", "body": "{\"name\": \"test\"}"}
```

* `params` is a URL-encoded query string merged into the query of both URLs
  (the resulting query is sorted by key).
* `headers` is a JSON object of request headers; the task's `content_type`
  is set as `Content-Type` on top of them.
* `body` is sent with POST requests: parsed as JSON and sent as JSON, or,
  for `application/x-www-form-urlencoded`, sent as a form body.

Empty or malformed lines are counted as failures and skipped. Lines longer
than 1 MiB end the reading of that file.

### Ignored fields and success conditions

`ignore_fields` lists dotted field paths (`data.timestamp`, `items[0].id`)
that are set to `null` in both responses before comparing them, so volatile
values do not show up as differences. In reported differences the original
values are put back. A path that does not resolve makes the request fail.

`success_conditions` is a comma-separated list of `field=value` pairs. A
response pair is only compared when, in both responses, the value at every
field has the given string form (`true`/`false` for booleans, plain digits
for numbers); otherwise the request is recorded as failed. This avoids
treating two identical error responses as a match.

A request fails as well when either endpoint cannot be reached, answers with
a status other than 200, or returns a body that is not JSON.

## Output

For every task two files are written to its `work_dir`:

* `<name>_output.txt` – one JSON line per compared request with the
  `payload`, both responses (`urlAResponse`, `urlBResponse`) and the `diff`
  text. Requests without differences are only written when
  `output_show_no_diff_line` is true, and then without the responses.
* `<name>_failed_payload.txt` – one JSON line per failed request with its
  `params`, `headers`, `body` and the error in `err`.

The `diff` text has one line per differing value, `- <path>: <value in A>`
followed by `+ <path>: <value in B>`, with paths such as `$.data.items[2]`.
A value present on one side only gets just its `-` or `+` line.

With `log_statistics` enabled, the total, same, diff and failed counts and
the progress percentage are logged every second and once at the end.

## Using it from Python

The pieces behind the command can be used directly:

```python
from httpdiff.config import load_config
from httpdiff.dispatcher import Dispatcher
from httpdiff.httpclient import init_client
from httpdiff.logsetup import init_logger

configs = load_config("config/config.toml")
init_logger("http-diff", configs.logger)
client = init_client(configs.http)

dispatcher = Dispatcher(configs.diff_configs, client)
dispatcher.start()          # blocks until every task has finished
```

A single task can be run or driven payload by payload:

```python
from httpdiff.models import Payload
from httpdiff.task import Task, TaskConfig

task = Task(TaskConfig(task_name="t", work_dir="./data", payload="p.txt",
                       url_a="http://localhost:8080/a", url_b="http://localhost:8080/b",
                       method="GET"), client)
result = task.process(Payload(params="id=1"))   # an Output or a FailedOutput
```

Other helpers:

* `httpdiff.task.json_diff(left, right)` – the diff text of two decoded JSON
  documents, empty when they are equal.
* `httpdiff.jsonfield` – `get_field_value`, `set_json_field_value` and
  `set_json_field_to_nil` for dotted paths; they raise `JsonFieldError`.
* `httpdiff.httpclient.HttpClient` – `get` and `post` returning decoded
  JSON, raising `HttpError`.
* `httpdiff.config.parse_duration` – Go-style duration strings to
  `timedelta`.
* `httpdiff.fileutil.file_line_count` – the number of lines in a file.

## What it does not do

Only GET and POST requests are supported, and only JSON responses can be
compared. Runs cannot be resumed: the output files of a task are rewritten
each time it starts.