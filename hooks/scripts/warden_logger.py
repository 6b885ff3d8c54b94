#!/usr/bin/env python3
"""Structured event log for claude-warden hooks.

Lightweight JSONL logger with fail-open semantics.
All errors are silently swallowed to never block hook execution.

One file ({state_dir}/events.jsonl unless WARDEN_EVENTS_FILE says
otherwise), one JSON object per line, newest at the end. Lines are only
ever appended; nothing here rewrites or prunes the log.

Timestamps are seconds since the session started (the .session_start
marker written by the SessionStart hook), not wall-clock time.

No external dependencies beyond the shared warden modules.
"""

from __future__ import annotations

import json
import math
import os
import re
import time
from typing import Optional

from warden_config import BYTES_PER_TOKEN_X10
from warden_state import StateStore

EVENT_TYPES = frozenset({
    "allowed",
    "blocked",
    "truncated",
    "tool_latency",
    "tool_output_size",
    "completed",
    "token_count",
    "secret_detected",
})

# Maximum length of the logged command
_CMD_LIMIT = 200

# Portable O_NOFOLLOW -- not available on all platforms
_O_NOFOLLOW = getattr(os, "O_NOFOLLOW", 0)

_REDACTED = "[REDACTED]"

# Applied in order. Each entry is (pattern, replacement).
_REDACTIONS = (
    # -H 'Authorization: ...', -H "X-Api-Key: ..."
    (re.compile(r"(?i)((?:-H|--header)\s*['\"]?\s*(?:authorization|proxy-authorization|"
                r"x-api-key|api-key|x-auth-token|cookie)\s*:\s*)[^'\"]*"),
     r"\1" + _REDACTED),
    (re.compile(r"(?i)\b(bearer|basic|token)\s+[A-Za-z0-9._~+/=-]{8,}"),
     r"\1 " + _REDACTED),
    # FOO_API_KEY=..., DB_PASSWORD="...", --token=...
    (re.compile(r"(?i)\b([A-Za-z0-9_-]*(?:key|secret|token|password|passwd)[A-Za-z0-9_]*)"
                r"(\s*=\s*)(\"[^\"]*\"|'[^']*'|\S+)"),
     r"\1\2" + _REDACTED),
    (re.compile(r"(?i)\b(client_secret|access_token|refresh_token|private_key|database_url)"
                r"([\"']?\s*[:=]\s*)(\"[^\"]*\"|'[^']*'|\S+)"),
     r"\1\2" + _REDACTED),
    # user:password@host in URLs
    (re.compile(r"(://[^/\s:@]+:)[^@\s/]+@"), r"\1" + _REDACTED + "@"),
    (re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}"), _REDACTED),
    (re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}"), _REDACTED),
    (re.compile(r"\bsk-[A-Za-z0-9_-]{16,}"), _REDACTED),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def redact_command(command, limit: int = _CMD_LIMIT) -> str:
    """Single-line, secret-redacted, length-capped copy of *command*.

    Examples:
        "curl -H 'Authorization: Bearer abc123def' x" -> "curl -H 'Authorization: [REDACTED]' x"
        "API_KEY=sk-... npm test"                     -> "API_KEY=[REDACTED] npm test"
    """
    if not command:
        return ""
    text = " ".join(str(command).split())
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text[:limit]


def estimate_tokens(byte_count: int) -> int:
    """Byte-based token estimate (3.5 bytes per token)."""
    if not byte_count or byte_count < 0:
        return 0
    return int(byte_count) * 10 // BYTES_PER_TOKEN_X10


def tokens_saved(original_bytes: int, final_bytes: int) -> int:
    return max(estimate_tokens(original_bytes) - estimate_tokens(final_bytes), 0)


def session_clock(config, now: Optional[float] = None) -> float:
    """Seconds since the session started, or 0.0 when unknown."""
    start = StateStore(config).session_start()
    if start is None:
        return 0.0
    now = time.time() if now is None else now
    return round(max(now - start, 0.0), 3)


def _json_default(obj):
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    return str(obj)


def _clean_data(data) -> dict:
    if not isinstance(data, dict):
        return {}
    cleaned = {}
    for key, value in data.items():
        # NaN/Infinity would make the line invalid JSON
        if isinstance(value, float) and not math.isfinite(value):
            value = None
        cleaned[str(key)] = value
    return cleaned


# ---------------------------------------------------------------------------
# Core emit
# ---------------------------------------------------------------------------

def emit_event(
    event_type: str,
    data: Optional[dict] = None,
    *,
    tool: str = "",
    session_id: str = "",
    command: str = "",
    config=None,
) -> None:
    """Append a single JSONL event to the event log.

    **Fail-open**: any exception is silently caught so hook execution is
    never blocked. Returns immediately with zero file I/O when logging is
    disabled, no config was given, or *event_type* is unknown.
    """
    try:
        if config is None or not config.logging_enabled or not config.events_file:
            return
        if event_type not in EVENT_TYPES:
            return

        entry = {
            "timestamp": session_clock(config),
            "event_type": event_type,
            "tool": str(tool),
            "session_id": str(session_id),
            "original_cmd": redact_command(command),
            "data": _clean_data(data),
        }

        line_bytes = (
            json.dumps(
                entry, ensure_ascii=False, separators=(",", ":"),
                default=_json_default, allow_nan=False,
            )
            + "\n"
        ).encode("utf-8")

        log_dir = os.path.dirname(config.events_file)
        if log_dir:
            os.makedirs(log_dir, mode=0o700, exist_ok=True)

        # -- Atomic append (single write syscall) ---------------------------
        fd = os.open(
            config.events_file,
            os.O_CREAT | os.O_WRONLY | os.O_APPEND | _O_NOFOLLOW,
            0o600,
        )
        try:
            os.write(fd, line_bytes)
        finally:
            os.close(fd)

    except Exception:
        pass  # Fail-open: never block hook execution


# ---------------------------------------------------------------------------
# Reading back
# ---------------------------------------------------------------------------

def session_tallies(config, session_id: str) -> dict:
    """Blocked / truncated counts and estimated savings for one session.

    Malformed lines are skipped; a missing log yields zeros.
    """
    tallies = {"blocked": 0, "truncated": 0, "tokens_saved": 0}
    if not session_id or config is None or not config.events_file:
        return tallies
    try:
        with open(config.events_file, "r", encoding="utf-8", errors="replace") as f:
            for line in f:
                try:
                    entry = json.loads(line)
                except (json.JSONDecodeError, ValueError):
                    continue
                if not isinstance(entry, dict) or entry.get("session_id") != session_id:
                    continue
                event_type = entry.get("event_type")
                if event_type not in ("blocked", "truncated"):
                    continue
                tallies[event_type] += 1
                data = entry.get("data")
                saved = data.get("tokens_saved") if isinstance(data, dict) else None
                if isinstance(saved, int) and not isinstance(saved, bool) and saved > 0:
                    tallies["tokens_saved"] += saved
    except OSError:
        pass
    return tallies
