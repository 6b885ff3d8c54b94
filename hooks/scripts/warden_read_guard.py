#!/usr/bin/env python3
"""PreToolUse guard for Read: keeps dependency, build output, minified,
lock and very large files out of the context.

Exit codes:
    0 -- allow
    2 -- block; "Blocked: ..." remediation message on stderr

Only the path and os.stat() are consulted, never file content.
"""

from __future__ import annotations

import os
import sys

from warden_config import load_config
from warden_decision import read_guard_block
from warden_input import EmptyInput, read_event
from warden_logger import emit_event, estimate_tokens
from warden_rules import READ_BLOCK_PATTERN, check_read_path


def _size_or_zero(file_path: str) -> int:
    try:
        return os.stat(file_path).st_size
    except (OSError, ValueError):
        return 0


def main() -> int:
    try:
        return _run()
    except Exception as e:
        print(f"[warden_read_guard] Error (fail-open): {e}", file=sys.stderr)
        return 0


def _run() -> int:
    config = load_config()
    try:
        event = read_event(config.stdin_timeout)
    except EmptyInput:
        return 0

    tool_name = event.tool_name
    if tool_name and tool_name != "Read":
        return 0

    (file_path,) = event.tool_input_fields("file_path")
    limit = event.tool_input_value("limit")
    if not isinstance(limit, int) or isinstance(limit, bool):
        limit = None

    message = check_read_path(file_path, config.read_max_bytes, limit=limit)
    if message is None:
        return 0

    rule = "read_pattern" if READ_BLOCK_PATTERN.search(file_path) else "read_size"
    emit_event(
        "blocked",
        {"rule": rule, "tokens_saved": estimate_tokens(_size_or_zero(file_path))},
        tool="Read", session_id=event.session_id, command=file_path, config=config,
    )
    return read_guard_block(message)


if __name__ == "__main__":
    sys.exit(main())
