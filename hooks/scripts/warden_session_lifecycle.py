#!/usr/bin/env python3
"""SessionStart / SessionEnd hook.

SessionStart starts the session clock used for event-log timestamps,
zeroes the active subagent count, and drops the companion files of the
previously recorded session when the id changed. SessionEnd logs a
``completed`` event with the session's tallies.
"""

from __future__ import annotations

import sys

from warden_config import load_config
from warden_input import EmptyInput, read_event
from warden_logger import emit_event, session_tallies
from warden_state import StateStore


def start_session(store: StateStore, session_id: str) -> None:
    store.mark_session_start()
    if not session_id:
        return
    previous = store.read_session()
    if previous is not None and previous.session_id and previous.session_id != session_id:
        store.supersede(previous.session_id)
    store.reset_subagents(session_id)


def end_session(config, store: StateStore, session_id: str, reason) -> None:
    if not session_id:
        return
    tallies = session_tallies(config, session_id)
    data = dict(tallies, tool_calls=store.read_output(session_id).count, trigger="session_end")
    if isinstance(reason, str) and reason:
        data["reason"] = reason
    emit_event("completed", data, session_id=session_id, config=config)


def main() -> int:
    try:
        return _run()
    except Exception as e:
        print(f"[warden_session_lifecycle] Error (fail-open): {e}", file=sys.stderr)
        return 0


def _run() -> int:
    config = load_config()
    try:
        event = read_event(config.stdin_timeout)
    except EmptyInput:
        return 0

    store = StateStore(config)
    hook_event = event.get("hook_event_name")
    if hook_event == "SessionStart":
        start_session(store, event.session_id)
    elif hook_event == "SessionEnd":
        end_session(config, store, event.session_id, event.get("reason"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
