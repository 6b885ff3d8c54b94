#!/usr/bin/env python3
"""PreCompact hook: prints the session's warden state so it survives compaction.

Output (stdout):

    ## Warden Session State
    - Tool calls: 42
    - Largest output: 18,204 bytes (Bash: npm test)
    - Context clears: 1 (~35,000 tokens lost)
    - Budget: $1.2345 spent, peak turn $0.4100
    - Active subagents: 2
"""

from __future__ import annotations

import sys

from warden_config import load_config
from warden_input import EmptyInput, read_event
from warden_state import StateStore


def render_state(store: StateStore, session_id: str) -> str:
    output = store.read_output(session_id) if session_id else None
    ledger = store.read_ledger(session_id) if session_id else None
    peak = store.read_peak(session_id) if session_id else None
    record = store.read_session()
    cost = record.cost if record is not None and record.session_id == session_id else 0.0

    lines = ["## Warden Session State"]
    lines.append("- Tool calls: {}".format(output.count if output else 0))
    if output and output.top_bytes:
        lines.append("- Largest output: {:,} bytes ({})".format(output.top_bytes, output.top_label))
    if ledger and ledger.clears:
        lines.append("- Context clears: {} (~{:,} tokens lost)".format(
            ledger.clears, ledger.tokens_lost))
    lines.append("- Budget: ${:.4f} spent, peak turn ${:.4f}".format(
        cost, peak.peak if peak else 0.0))
    lines.append("- Active subagents: {}".format(store.read_subagents(session_id)))
    return "\n".join(lines)


def main() -> int:
    try:
        return _run()
    except Exception as e:
        print(f"[warden_pre_compact] Error (fail-open): {e}", file=sys.stderr)
        return 0


def _run() -> int:
    config = load_config()
    try:
        event = read_event(config.stdin_timeout)
    except EmptyInput:
        return 0
    print(render_state(StateStore(config), event.session_id))
    return 0


if __name__ == "__main__":
    sys.exit(main())
