#!/usr/bin/env python3
"""PostToolUse filter: latency, output accounting and output transforms.

For every tool call:
  1. pair with the PreToolUse start marker -> tool_latency event + trace span
  2. record the output size (tool_output_size event, per-session counter)
  3. warn on stderr (and log ``secret_detected``) when the output looks
     like it contains a credential; the output itself is left as is
  4. run the transform pipeline (reminder stripping, Read outline,
     Task/Agent compression, Bash truncation); log one ``truncated`` event
     per stage that fired and return the result as modifyOutput

Bookkeeping failures are reported on stderr and never stop the transform.
"""

from __future__ import annotations

import sys

from warden_config import load_config
from warden_decision import emit, modify_output, suppress_output
from warden_input import EmptyInput, is_subagent, read_event
from warden_logger import emit_event, estimate_tokens, redact_command, tokens_saved
from warden_pre_tool_use import marker_key
from warden_rules import find_secret
from warden_state import StateStore
from warden_token_count import request_count
from warden_trace import emit_span
from warden_transform import byte_len, run_pipeline


def record_call(event, config, store, label: str, output_bytes: int) -> None:
    """Latency, trace span and output size for one finished tool call."""
    tool = event.tool_name
    session_id = event.session_id

    latency = store.consume_tool_latency(tool, marker_key(event))
    if latency is not None:
        emit_event("tool_latency", {"duration_ms": latency.duration_ms},
                   tool=tool, session_id=session_id, command=label, config=config)
        emit_span(config, session_id, tool, latency.start_ns, latency.end_ns,
                  command=redact_command(label), output_bytes=output_bytes)

    emit_event(
        "tool_output_size",
        {"output_bytes": output_bytes, "estimated_tokens": estimate_tokens(output_bytes)},
        tool=tool, session_id=session_id, command=label, config=config,
    )
    store.bump_output(session_id, "{}: {}".format(tool, redact_command(label, 50)),
                      output_bytes)


def main() -> int:
    try:
        return _run()
    except Exception as e:
        # Fail open: leave the tool output untouched
        print(f"[warden_post_tool_use] Error (fail-open): {e}", file=sys.stderr)
        emit(suppress_output())
        return 0


def _run() -> int:
    config = load_config()
    try:
        event = read_event(config.stdin_timeout)
    except EmptyInput:
        emit(suppress_output())
        return 0

    tool = event.tool_name
    command, file_path = event.tool_input_fields("command", "file_path")
    label = command or file_path or tool
    text = event.response_text()
    output_bytes = byte_len(text)

    try:
        record_call(event, config, StateStore(config), label, output_bytes)
    except (OSError, ValueError) as e:
        print(f"[warden_post_tool_use] state not updated: {e}", file=sys.stderr)

    kind = find_secret(text)
    if kind:
        emit_event("secret_detected", {"kind": kind}, tool=tool,
                   session_id=event.session_id, command=label, config=config)
        print(f"[warden] Possible secret in {tool} output ({kind})", file=sys.stderr)

    result = run_pipeline(tool, text, config,
                          subagent=is_subagent(event.transcript_path),
                          file_path=file_path)
    if not result.changed:
        emit(suppress_output())
        return 0

    for stage, original, final in result.stages:
        emit_event(
            "truncated",
            {
                "stage": stage,
                "original_bytes": original,
                "final_bytes": final,
                "tokens_saved": tokens_saved(original, final),
            },
            tool=tool, session_id=event.session_id, command=label, config=config,
        )

    request_count(config, text, result.text, tool=tool, session_id=event.session_id,
                  stage="+".join(stage for stage, _, _ in result.stages))
    emit(modify_output(result.text))
    return 0


if __name__ == "__main__":
    sys.exit(main())
