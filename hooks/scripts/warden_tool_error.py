#!/usr/bin/env python3
"""PostToolUseFailure hook: prints a remediation hint for common errors.

The hint goes to stderr; the hook never changes the host's handling of
the failure.
"""

from __future__ import annotations

import re
import sys

from warden_config import load_config
from warden_input import EmptyInput, read_event

# (pattern, hint); first match wins
HINTS = (
    (re.compile(r"(?i)permission denied|operation not permitted|EACCES"),
     "Permission denied. Check the file mode or ownership; only use sudo "
     "if the change really needs root."),
    (re.compile(r"(?i)command not found|not recognized as an internal"),
     "Command not found. Check that the tool is installed and on PATH, "
     "or use the project's wrapper script."),
    (re.compile(r"(?i)read-only file system|EROFS"),
     "The target is on a read-only file system. Write to a writable "
     "location such as the project directory or $TMPDIR."),
    (re.compile(r"(?i)no such file or directory|ENOENT|does not exist"),
     "Path not found. List the parent directory or use Glob to locate "
     "the file before retrying."),
    (re.compile(r"(?i)timed? ?out|timeout"),
     "The command timed out. Narrow its scope, run it in the background, "
     "or raise the tool timeout."),
)


def hint_for(error_text: str):
    """Hint for the first matching pattern, or None."""
    if not error_text:
        return None
    for pattern, hint in HINTS:
        if pattern.search(error_text):
            return hint
    return None


def error_text(event) -> str:
    for field in ("tool_error", "error"):
        value = event.get(field)
        if isinstance(value, str) and value:
            return value
    return event.response_text()


def main() -> int:
    try:
        return _run()
    except Exception as e:
        print(f"[warden_tool_error] Error (fail-open): {e}", file=sys.stderr)
        return 0


def _run() -> int:
    config = load_config()
    try:
        event = read_event(config.stdin_timeout)
    except EmptyInput:
        return 0

    hint = hint_for(error_text(event))
    if hint:
        tool = event.tool_name or "tool"
        print(f"[warden] {tool} failed. Hint: {hint}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
