#!/usr/bin/env python3
"""Stop hook: records a ``completed`` event with the session's tallies.

Does nothing while ``stop_hook_active`` is set (the host is already
continuing because of a stop hook), so it can never cause a loop.
"""

from __future__ import annotations

import sys

from warden_config import load_config
from warden_input import EmptyInput, read_event
from warden_logger import emit_event, session_tallies
from warden_state import StateStore


def summary_line(tallies: dict, tool_calls: int) -> str:
    return "[warden] Stop: {} tool calls, {} blocked, {} truncated, ~{} tokens saved".format(
        tool_calls, tallies["blocked"], tallies["truncated"], tallies["tokens_saved"])


def main() -> int:
    try:
        return _run()
    except Exception as e:
        print(f"[warden_stop] Error (fail-open): {e}", file=sys.stderr)
        return 0


def _run() -> int:
    config = load_config()
    try:
        event = read_event(config.stdin_timeout)
    except EmptyInput:
        return 0

    if event.get("stop_hook_active") is True:
        return 0

    session_id = event.session_id
    if not session_id:
        return 0

    tallies = session_tallies(config, session_id)
    tool_calls = StateStore(config).read_output(session_id).count
    emit_event("completed", dict(tallies, tool_calls=tool_calls, trigger="stop"),
               session_id=session_id, config=config)
    print(summary_line(tallies, tool_calls), file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
