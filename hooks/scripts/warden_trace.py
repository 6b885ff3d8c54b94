#!/usr/bin/env python3
"""OTLP/HTTP trace span emitter for claude-warden hooks.

One span per tool call. Trace and parent span ids are derived from the
session id, so separate hook processes of one session land in the same
trace without sharing any state. md5 is used for speed, not security.

Emission is fire-and-forget: emit_span() hands the payload to a detached
copy of this script (``python3 warden_trace.py <endpoint> <timeout>``,
payload on stdin) and returns at once. The child POSTs with urllib and
swallows every failure, so the calling hook's decision and latency never
depend on the collector.

No external dependencies (stdlib only).
"""

from __future__ import annotations

import hashlib
import json
import os
import subprocess
import sys
import urllib.error
import urllib.request
from typing import Optional

SERVICE_NAME = "claude-warden"
SCOPE_NAME = "warden-hooks"
SCOPE_VERSION = "1.0.0"
SPAN_KIND_CLIENT = 3
STATUS_OK = 1


def trace_id_for(session_id: str) -> str:
    """Reproducible 128-bit trace id (32 hex chars) for a session."""
    return hashlib.md5(("warden-trace-" + session_id).encode("utf-8")).hexdigest()[:32]


def root_span_id_for(session_id: str) -> str:
    """Reproducible 64-bit parent span id (16 hex chars) for a session."""
    return hashlib.md5(("warden-root-" + session_id).encode("utf-8")).hexdigest()[:16]


def new_span_id() -> str:
    return os.urandom(8).hex()


def _string_attr(key, value):
    return {"key": key, "value": {"stringValue": str(value)}}


def _int_attr(key, value):
    # OTLP JSON encodes 64-bit ints as strings
    return {"key": key, "value": {"intValue": str(int(value))}}


def build_span(session_id: str, tool_name: str, start_ns: int, end_ns: int,
               command: str = "", output_bytes: int = 0,
               span_id: Optional[str] = None) -> dict:
    """ExportTraceServiceRequest body holding a single tool span."""
    duration_ms = max(end_ns - start_ns, 0) // 1_000_000
    command = " ".join(str(command).split())[:200]
    return {
        "resourceSpans": [{
            "resource": {
                "attributes": [
                    _string_attr("service.name", SERVICE_NAME),
                    _string_attr("session.id", session_id),
                ]
            },
            "scopeSpans": [{
                "scope": {"name": SCOPE_NAME, "version": SCOPE_VERSION},
                "spans": [{
                    "traceId": trace_id_for(session_id),
                    "spanId": span_id or new_span_id(),
                    "parentSpanId": root_span_id_for(session_id),
                    "name": "tool:" + tool_name,
                    "kind": SPAN_KIND_CLIENT,
                    "startTimeUnixNano": str(int(start_ns)),
                    "endTimeUnixNano": str(int(end_ns)),
                    "attributes": [
                        _string_attr("tool.name", tool_name),
                        _string_attr("tool.command", command),
                        _int_attr("tool.output_bytes", output_bytes),
                        _int_attr("tool.duration_ms", duration_ms),
                    ],
                    "status": {"code": STATUS_OK},
                }],
            }],
        }]
    }


# ---------------------------------------------------------------------------
# Background process
# ---------------------------------------------------------------------------

def spawn_detached(argv: list, payload: bytes = b"") -> bool:
    """Start *argv* in its own session with *payload* on stdin.

    The child is never waited on. Returns False if it could not start.
    """
    try:
        proc = subprocess.Popen(
            argv,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            close_fds=True,
            start_new_session=True,
        )
    except (OSError, ValueError):
        return False
    try:
        if payload:
            proc.stdin.write(payload)
        proc.stdin.close()
    except OSError:
        pass  # child exited early
    return True


def emit_span(config, session_id: str, tool_name: str, start_ns: int, end_ns: int,
              command: str = "", output_bytes: int = 0) -> bool:
    """Fire-and-forget one span. Returns whether a sender was started."""
    if not config.tracing_enabled or not session_id or not tool_name:
        return False
    if start_ns <= 0 or end_ns < start_ns:
        return False
    body = json.dumps(build_span(session_id, tool_name, start_ns, end_ns,
                                 command=command, output_bytes=output_bytes),
                      separators=(",", ":")).encode("utf-8")
    argv = [sys.executable, os.path.abspath(__file__),
            config.trace_endpoint, str(config.trace_timeout)]
    return spawn_detached(argv, body)


def post_span(endpoint: str, body: bytes, timeout: float = 2.0) -> bool:
    """POST an OTLP JSON body. Returns False on any failure."""
    req = urllib.request.Request(
        endpoint,
        data=body,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            resp.read()
            return 200 <= resp.status < 300
    except (urllib.error.URLError, urllib.error.HTTPError,
            TimeoutError, OSError, ValueError):
        return False


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        return 0
    try:
        timeout = float(argv[1]) if len(argv) > 1 else 2.0
    except ValueError:
        timeout = 2.0
    body = sys.stdin.buffer.read()
    if body:
        post_span(argv[0], body, timeout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
