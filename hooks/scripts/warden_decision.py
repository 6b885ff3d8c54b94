#!/usr/bin/env python3
"""Hook output payloads for claude-warden filters.

The host reads a decision from the JSON written to stdout (exit code 0),
except for the read guard, which blocks with exit code 2 and a message
on stderr.

No external dependencies (stdlib only).
"""

from __future__ import annotations

import json
import sys

from warden_rules import ALLOW, DENY

READ_GUARD_BLOCK_EXIT = 2


def suppress_output() -> dict:
    """Quiet allow for PreToolUse/PostToolUse; "ask" for PermissionRequest."""
    return {"suppressOutput": True}


def pre_tool_deny(reason: str) -> dict:
    return {
        "hookSpecificOutput": {
            "hookEventName": "PreToolUse",
            "permissionDecision": "deny",
            "permissionDecisionReason": reason,
        }
    }


def permission_allow() -> dict:
    return {
        "hookSpecificOutput": {
            "hookEventName": "PermissionRequest",
            "decision": {"behavior": "allow"},
        }
    }


def permission_deny(reason: str) -> dict:
    return {
        "hookSpecificOutput": {
            "hookEventName": "PermissionRequest",
            "decision": {"behavior": "deny", "message": reason},
        }
    }


def permission_payload(verdict) -> dict:
    """Map a PermissionRequest verdict to its payload; "ask" defers to the user."""
    if verdict.decision == ALLOW:
        return permission_allow()
    if verdict.decision == DENY:
        return permission_deny(verdict.reason)
    return suppress_output()


def modify_output(text: str) -> dict:
    return {"modifyOutput": text}


def emit(payload: dict, stream=None) -> None:
    json.dump(payload, stream if stream is not None else sys.stdout)


def read_guard_block(message: str, stream=None) -> int:
    """Write the block message to stderr; returns the exit code to use."""
    if not message.startswith("Blocked:"):
        message = "Blocked: " + message
    print(message, file=stream if stream is not None else sys.stderr)
    return READ_GUARD_BLOCK_EXIT
