#!/usr/bin/env python3
"""PreToolUse guard: blocks oversized writes and risky or verbose commands.

Rules (first match wins) live in warden_rules.PRE_TOOL_RULES. A deny is
reported through the JSON payload with exit code 0; everything else is a
quiet allow. Allowed calls also leave a tool-start marker so PostToolUse
can measure latency.
"""

from __future__ import annotations

import os
import sys

from warden_config import load_config
from warden_decision import emit, pre_tool_deny, suppress_output
from warden_input import EmptyInput, read_event, sanitize_id
from warden_logger import emit_event
from warden_rules import DENY, RuleContext, pre_tool_verdict
from warden_state import StateStore
from warden_transform import byte_len


def marker_key(event) -> str:
    """Per-call correlation key: tool_use_id, else the host's pid."""
    return sanitize_id(event.get("tool_use_id")) or str(os.getppid())


def edit_bytes(event) -> int:
    """Replacement size of an Edit, or the sum over a MultiEdit's edits."""
    edits = event.tool_input_value("edits")
    if isinstance(edits, list):
        return sum(
            byte_len(e["new_string"]) for e in edits
            if isinstance(e, dict) and isinstance(e.get("new_string"), str)
        )
    (new_string,) = event.tool_input_fields("new_string")
    return byte_len(new_string)


def build_context(event, config) -> RuleContext:
    command, file_path, content, new_source = event.tool_input_fields(
        "command", "file_path", "content", "new_source")
    agent_type = event.get("agent_type")
    return RuleContext(
        tool_name=event.tool_name,
        command=command,
        file_path=file_path or event.tool_input_value("notebook_path", "") or "",
        content_bytes=byte_len(content),
        new_source_bytes=byte_len(new_source),
        new_string_bytes=edit_bytes(event),
        write_max=config.write_max_bytes,
        notebook_max=config.notebook_max_bytes,
        edit_max=config.edit_max_bytes,
        agent_type=agent_type if isinstance(agent_type, str) else "",
    )


def main() -> int:
    try:
        return _run()
    except Exception as e:
        # Fail open: never trap the user on unexpected errors
        print(f"[warden_pre_tool_use] Error (fail-open): {e}", file=sys.stderr)
        emit(suppress_output())
        return 0


def _run() -> int:
    config = load_config()
    try:
        event = read_event(config.stdin_timeout)
    except EmptyInput:
        emit(suppress_output())
        return 0

    ctx = build_context(event, config)
    verdict = pre_tool_verdict(ctx)
    logged_cmd = ctx.command or ctx.file_path

    if verdict.decision == DENY:
        emit_event(
            "blocked",
            {"rule": verdict.rule_id, "tokens_saved": verdict.tokens_saved},
            tool=ctx.tool_name, session_id=event.session_id,
            command=logged_cmd, config=config,
        )
        emit(pre_tool_deny(verdict.reason))
        return 0

    emit_event("allowed", {}, tool=ctx.tool_name, session_id=event.session_id,
               command=logged_cmd, config=config)
    try:
        StateStore(config).record_tool_start(ctx.tool_name, marker_key(event))
    except OSError as e:
        print(f"[warden_pre_tool_use] tool-start marker not written: {e}", file=sys.stderr)
    emit(suppress_output())
    return 0


if __name__ == "__main__":
    sys.exit(main())
