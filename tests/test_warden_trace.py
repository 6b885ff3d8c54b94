"""Tests for warden_trace.py -- OTLP span building and delivery."""

import io
import json
import re
import urllib.error
from unittest import mock

import pytest

from conftest import make_config
import warden_trace
from warden_trace import (
    build_span,
    emit_span,
    new_span_id,
    post_span,
    root_span_id_for,
    trace_id_for,
)

HEX32 = re.compile(r"^[0-9a-f]{32}$")
HEX16 = re.compile(r"^[0-9a-f]{16}$")


def _span(body):
    return body["resourceSpans"][0]["scopeSpans"][0]["spans"][0]


def _attrs(attributes):
    return {a["key"]: a["value"] for a in attributes}


class TestIds:
    def test_trace_id_deterministic_per_session(self):
        assert trace_id_for("s1") == trace_id_for("s1")
        assert trace_id_for("s1") != trace_id_for("s2")
        assert HEX32.match(trace_id_for("s1"))

    def test_root_span_id(self):
        assert root_span_id_for("s1") == root_span_id_for("s1")
        assert HEX16.match(root_span_id_for("s1"))
        assert root_span_id_for("s1") != trace_id_for("s1")[:16]

    def test_new_span_id_random(self):
        ids = {new_span_id() for _ in range(20)}
        assert len(ids) == 20
        assert all(HEX16.match(i) for i in ids)


class TestBuildSpan:
    def test_shape(self):
        body = build_span("s1", "Bash", 1_000_000_000, 1_250_000_000,
                          command="ls -la", output_bytes=512, span_id="ab" * 8)
        resource = body["resourceSpans"][0]["resource"]
        assert _attrs(resource["attributes"])["service.name"] == {"stringValue": "claude-warden"}
        scope = body["resourceSpans"][0]["scopeSpans"][0]["scope"]
        assert scope == {"name": "warden-hooks", "version": "1.0.0"}

        span = _span(body)
        assert span["traceId"] == trace_id_for("s1")
        assert span["parentSpanId"] == root_span_id_for("s1")
        assert span["spanId"] == "ab" * 8
        assert span["name"] == "tool:Bash"
        assert span["kind"] == 3
        assert span["startTimeUnixNano"] == "1000000000"
        assert span["endTimeUnixNano"] == "1250000000"
        assert span["status"] == {"code": 1}

        attrs = _attrs(span["attributes"])
        assert attrs["tool.name"] == {"stringValue": "Bash"}
        assert attrs["tool.command"] == {"stringValue": "ls -la"}
        assert attrs["tool.output_bytes"] == {"intValue": "512"}
        assert attrs["tool.duration_ms"] == {"intValue": "250"}

    def test_command_flattened_and_capped(self):
        span = _span(build_span("s1", "Bash", 1, 2, command="a\nb\n" + "c" * 500))
        command = _attrs(span["attributes"])["tool.command"]["stringValue"]
        assert command.startswith("a b ")
        assert len(command) == 200

    def test_serializable(self):
        json.dumps(build_span("s1", "Read", 1, 2))


class TestEmitSpan:
    def test_disabled_without_endpoint(self, config):
        with mock.patch.object(warden_trace, "spawn_detached") as spawn:
            assert emit_span(config, "s1", "Bash", 1, 2) is False
        spawn.assert_not_called()

    @pytest.mark.parametrize("sid, tool, start, end", [
        ("", "Bash", 1, 2),
        ("s1", "", 1, 2),
        ("s1", "Bash", 0, 2),
        ("s1", "Bash", 5, 2),
    ])
    def test_invalid_arguments(self, state_dir, sid, tool, start, end):
        config = make_config(state_dir, trace_endpoint="http://collector/v1/traces")
        with mock.patch.object(warden_trace, "spawn_detached") as spawn:
            assert emit_span(config, sid, tool, start, end) is False
        spawn.assert_not_called()

    def test_spawns_sender(self, state_dir):
        config = make_config(state_dir, trace_endpoint="http://collector/v1/traces")
        with mock.patch.object(warden_trace, "spawn_detached", return_value=True) as spawn:
            assert emit_span(config, "s1", "Bash", 1_000, 2_000, command="ls") is True
        argv, body = spawn.call_args[0]
        assert argv[-2:] == ["http://collector/v1/traces", "2.0"]
        assert argv[1].endswith("warden_trace.py")
        assert _span(json.loads(body))["name"] == "tool:Bash"


class _Response:
    def __init__(self, status):
        self.status = status

    def read(self):
        return b"{}"

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class TestPostSpan:
    def test_success(self):
        with mock.patch.object(warden_trace.urllib.request, "urlopen",
                               return_value=_Response(200)) as urlopen:
            assert post_span("http://collector/v1/traces", b"{}", timeout=1.5) is True
        req = urlopen.call_args[0][0]
        assert req.get_method() == "POST"
        assert req.get_header("Content-type") == "application/json"
        assert urlopen.call_args[1]["timeout"] == 1.5

    def test_non_2xx(self):
        with mock.patch.object(warden_trace.urllib.request, "urlopen",
                               return_value=_Response(500)):
            assert post_span("http://collector/v1/traces", b"{}") is False

    @pytest.mark.parametrize("error", [
        urllib.error.URLError("refused"),
        TimeoutError("slow"),
        OSError("reset"),
    ])
    def test_failures_swallowed(self, error):
        with mock.patch.object(warden_trace.urllib.request, "urlopen", side_effect=error):
            assert post_span("http://collector/v1/traces", b"{}") is False

    def test_main_posts_stdin(self):
        stdin = mock.Mock()
        stdin.buffer = io.BytesIO(b'{"resourceSpans": []}')
        with mock.patch.object(warden_trace.sys, "stdin", stdin), \
                mock.patch.object(warden_trace, "post_span") as post:
            assert warden_trace.main(["http://collector/v1/traces", "0.5"]) == 0
        post.assert_called_once_with("http://collector/v1/traces",
                                     b'{"resourceSpans": []}', 0.5)

    def test_main_without_endpoint(self):
        assert warden_trace.main([]) == 0
