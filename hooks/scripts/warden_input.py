#!/usr/bin/env python3
"""Hook event decoding for claude-warden.

Two tiers:
  * toplevel(): one regex over the raw text for flat top-level string
    fields (tool_name, session_id, transcript_path). Only correct for
    well-formed machine-generated JSON whose top-level strings contain no
    escaped quotes -- which is what the host emits. Not a JSON parser.
  * data / tool_input_fields(): a single cached json.loads for nested or
    typed fields. Request all nested fields in one call.

No external dependencies (stdlib only).
"""

from __future__ import annotations

import json
import os
import re
import select
import sys
from pathlib import Path
from typing import Any, Optional

_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_TOPLEVEL_TEMPLATE = r'"{}"\s*:\s*"([^"]+)"'


class EmptyInput(Exception):
    """Raised when stdin is empty or nothing arrived before the timeout."""


# ---------------------------------------------------------------------------
# stdin reading
# ---------------------------------------------------------------------------

def read_stdin(timeout_seconds: float = 5.0, fd: Optional[int] = None) -> str:
    """Read stdin with timeout.

    The host does not always send EOF after writing hook input, so a plain
    sys.stdin.read() could block forever. select() waits for the first
    chunk; after that a short follow-up timeout detects end-of-input.
    """
    if fd is None:
        fd = sys.stdin.fileno()
    chunks: list[bytes] = []
    remaining = timeout_seconds

    while remaining > 0:
        ready, _, _ = select.select([fd], [], [], remaining)
        if not ready:
            break

        chunk = os.read(fd, 65536)
        if not chunk:
            break
        chunks.append(chunk)

        # After a successful read, use a short timeout
        # to drain any remaining buffered data
        remaining = 0.1

    return b"".join(chunks).decode("utf-8", errors="replace")


def read_event(timeout_seconds: float = 5.0, fd: Optional[int] = None) -> "HookEvent":
    raw = read_stdin(timeout_seconds, fd=fd)
    if not raw.strip():
        raise EmptyInput("no hook input within {:.1f}s".format(timeout_seconds))
    return HookEvent(raw)


# ---------------------------------------------------------------------------
# Identifiers and transcript paths
# ---------------------------------------------------------------------------

def sanitize_id(value) -> str:
    """Return *value* if it is a safe id ([A-Za-z0-9_-]+), else ""."""
    if isinstance(value, str) and _SAFE_ID_RE.match(value):
        return value
    return ""


def is_subagent(transcript_path: str) -> bool:
    """Subagent transcripts live under /subagents/ or a temp directory."""
    if not transcript_path:
        return False
    return "/subagents/" in transcript_path or "/tmp/" in transcript_path


def agent_id(transcript_path: str) -> str:
    """Agent id from a subagent transcript path, "" for the main agent.

    Examples:
        "/p/subagents/agent-a1b2.jsonl" -> "a1b2"
        "/p/main.jsonl"                 -> ""
    """
    if not transcript_path or "/subagents/" not in transcript_path:
        return ""
    stem = Path(transcript_path).stem
    if stem.startswith("agent-"):
        stem = stem[len("agent-"):]
    return sanitize_id(stem)


# ---------------------------------------------------------------------------
# Event
# ---------------------------------------------------------------------------

class HookEvent:
    """One inbound hook event. Consumed by a single filter invocation."""

    def __init__(self, raw: str):
        self.raw = raw
        self._data: Optional[dict] = None

    # -- Tier 1: fast path ---------------------------------------------------

    def toplevel(self, field: str) -> str:
        m = re.search(_TOPLEVEL_TEMPLATE.format(re.escape(field)), self.raw)
        return m.group(1) if m else ""

    @property
    def tool_name(self) -> str:
        return self.toplevel("tool_name")

    @property
    def session_id(self) -> str:
        """Sanitized session id; "" disables session-scoped features."""
        return sanitize_id(self.toplevel("session_id"))

    @property
    def transcript_path(self) -> str:
        return self.toplevel("transcript_path")

    # -- Tier 2: full parse --------------------------------------------------

    @property
    def data(self) -> dict:
        if self._data is None:
            try:
                parsed = json.loads(self.raw)
            except (json.JSONDecodeError, ValueError):
                parsed = {}
            self._data = parsed if isinstance(parsed, dict) else {}
        return self._data

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)

    def tool_input_fields(self, *names: str) -> tuple:
        """Nested tool_input fields from one parse; non-strings become ""."""
        tool_input = self.data.get("tool_input")
        if not isinstance(tool_input, dict):
            tool_input = {}
        values = []
        for name in names:
            value = tool_input.get(name)
            values.append(value if isinstance(value, str) else "")
        return tuple(values)

    def tool_input_value(self, name: str, default: Any = None) -> Any:
        tool_input = self.data.get("tool_input")
        if not isinstance(tool_input, dict):
            return default
        return tool_input.get(name, default)

    def response_text(self) -> str:
        """Text of tool_response in whichever shape the tool produced."""
        response = self.data.get("tool_response")
        if response is None:
            return ""
        if isinstance(response, str):
            return response
        if isinstance(response, list):
            return _join_blocks(response)
        if not isinstance(response, dict):
            return ""

        content = response.get("content")
        if isinstance(content, list):
            return _join_blocks(content)
        if isinstance(content, str):
            return content

        file_info = response.get("file")
        if isinstance(file_info, dict) and isinstance(file_info.get("content"), str):
            return file_info["content"]

        parts = [response.get(k) for k in ("stdout", "stderr", "output")]
        return "\n".join(p for p in parts if isinstance(p, str) and p)


def _join_blocks(blocks: list) -> str:
    texts = []
    for block in blocks:
        if isinstance(block, dict) and isinstance(block.get("text"), str):
            texts.append(block["text"])
        elif isinstance(block, str):
            texts.append(block)
    return "\n".join(texts)
