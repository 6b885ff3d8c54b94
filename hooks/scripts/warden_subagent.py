#!/usr/bin/env python3
"""SubagentStart / SubagentStop hook: tracks the active subagent count."""

from __future__ import annotations

import sys

from warden_config import load_config
from warden_input import EmptyInput, read_event
from warden_state import StateStore

_DELTAS = {"SubagentStart": 1, "SubagentStop": -1}


def main() -> int:
    try:
        return _run()
    except Exception as e:
        print(f"[warden_subagent] Error (fail-open): {e}", file=sys.stderr)
        return 0


def _run() -> int:
    config = load_config()
    try:
        event = read_event(config.stdin_timeout)
    except EmptyInput:
        return 0

    delta = _DELTAS.get(event.get("hook_event_name"))
    if delta is not None and event.session_id:
        StateStore(config).adjust_subagents(event.session_id, delta)
    return 0


if __name__ == "__main__":
    sys.exit(main())
