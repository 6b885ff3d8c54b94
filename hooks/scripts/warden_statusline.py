#!/usr/bin/env python3
"""Statusline command: folds the host's status JSON into warden state.

Every refresh is one observation for StateStore.observe(): reset
detection, the clear ledger and the peak-cost record are all updated
here. Prints a single plain line, e.g.

    [Opus] Ctx 41.2% (82.4k/200k) | IO 1.2M/34k | $1.23 | Tools 57 | Sub 1 | Reset context
"""

from __future__ import annotations

import math
import sys
import time

from warden_config import load_config
from warden_input import EmptyInput, read_event
from warden_state import StateStore

# A reset stays visible on the statusline this long (seconds)
RESET_DISPLAY_WINDOW = 120


def _int(value) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        return max(int(value), 0)
    return 0


def _float(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return max(float(value), 0.0)


def format_tokens(value: int) -> str:
    """1234 -> "1.2k", 2000000 -> "2M"."""
    for divisor, suffix in ((1_000_000, "M"), (1_000, "k")):
        if value >= divisor:
            whole, rest = divmod(value, divisor)
            tenth = rest * 10 // divisor
            return "{}.{}{}".format(whole, tenth, suffix) if tenth else "{}{}".format(whole, suffix)
    return str(value)


def read_usage(data: dict) -> dict:
    """Token, context and cost figures from the status JSON."""
    window = data.get("context_window")
    window = window if isinstance(window, dict) else {}
    cost = data.get("cost")
    cost = cost if isinstance(cost, dict) else {}

    context_size = _int(window.get("context_window_size"))
    current = window.get("current_usage")
    if isinstance(current, dict):
        context_used = sum(_int(current.get(k)) for k in (
            "input_tokens", "output_tokens",
            "cache_creation_input_tokens", "cache_read_input_tokens"))
    else:
        context_used = int(context_size * _float(window.get("used_percentage")) / 100)

    return {
        "input_tokens": _int(window.get("total_input_tokens")),
        "output_tokens": _int(window.get("total_output_tokens")),
        "context_used": context_used,
        "context_size": context_size,
        "cost": _float(cost.get("total_cost_usd")),
    }


def render(model: str, usage: dict, observation, tool_calls: int, subagents: int,
           reset_label: str = "") -> str:
    ctx = "[{}] Ctx ".format(model)
    if usage["context_size"]:
        pct = usage["context_used"] * 100 / usage["context_size"]
        ctx += "{:.1f}% ({}/{})".format(pct, format_tokens(usage["context_used"]),
                                         format_tokens(usage["context_size"]))
    else:
        ctx += format_tokens(usage["context_used"])
    segments = [ctx, "IO {}/{}".format(format_tokens(usage["input_tokens"]),
                                        format_tokens(usage["output_tokens"]))]
    if usage["cost"]:
        segments.append("${:.2f}".format(usage["cost"]))
    if tool_calls:
        segments.append("Tools {}".format(tool_calls))
    if subagents:
        segments.append("Sub {}".format(subagents))
    if observation.ledger.clears:
        segments.append("Clears {}".format(observation.ledger.clears))
    if reset_label:
        segments.append("Reset {}".format(reset_label))
    return " | ".join(segments)


def main() -> int:
    try:
        return _run()
    except Exception as e:
        print(f"[warden_statusline] Error (fail-open): {e}", file=sys.stderr)
        print("[Claude] Ctx 0%")
        return 0


def _run() -> int:
    config = load_config()
    try:
        event = read_event(config.stdin_timeout)
    except EmptyInput:
        print("[Claude] Ctx 0%")
        return 0

    data = event.data
    model_info = data.get("model")
    model = "Unknown"
    if isinstance(model_info, dict):
        model = model_info.get("display_name") or model_info.get("id") or model
    usage = read_usage(data)
    session_id = event.session_id

    store = StateStore(config)
    now = int(time.time())
    observation = store.observe(session_id, now=now, **usage)

    note = store.read_reset_note()
    reset_label = ""
    if note is not None and note.session_id == session_id:
        if now - note.reset_ts <= RESET_DISPLAY_WINDOW:
            reset_label = note.reason

    tool_calls = store.read_output(session_id).count if session_id else 0
    print(render(str(model), usage, observation, tool_calls,
                 store.read_subagents(session_id), reset_label))
    return 0


if __name__ == "__main__":
    sys.exit(main())
