#!/usr/bin/env python3
"""PermissionRequest guard: allow / deny / ask before the user is prompted.

Destructive deletes, fork bombs, disk formatting and pipe-to-shell are
denied outright. A short list of read-only commands is allowed when the
command line is a constant literal. Everything else is "ask", signalled
with a plain suppressOutput payload so the host falls back to prompting.
"""

from __future__ import annotations

import sys

from warden_config import load_config
from warden_decision import emit, permission_payload, suppress_output
from warden_input import EmptyInput, read_event
from warden_logger import emit_event
from warden_rules import ALLOW, DENY, RuleContext, permission_verdict


def main() -> int:
    try:
        return _run()
    except Exception as e:
        # Fail open to "ask": the user still decides
        print(f"[warden_permission_request] Error (fail-open): {e}", file=sys.stderr)
        emit(suppress_output())
        return 0


def _run() -> int:
    config = load_config()
    try:
        event = read_event(config.stdin_timeout)
    except EmptyInput:
        emit(suppress_output())
        return 0

    (command,) = event.tool_input_fields("command")
    verdict = permission_verdict(RuleContext(tool_name=event.tool_name, command=command))

    if verdict.decision in (ALLOW, DENY):
        emit_event(
            "blocked" if verdict.decision == DENY else "allowed",
            {"rule": verdict.rule_id, "decision": "permission_" + verdict.decision},
            tool=event.tool_name, session_id=event.session_id,
            command=command, config=config,
        )
    emit(permission_payload(verdict))
    return 0


if __name__ == "__main__":
    sys.exit(main())
