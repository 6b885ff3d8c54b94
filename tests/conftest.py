"""Shared fixtures for claude-warden hook tests."""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

# Add scripts directory to path so we can import modules directly
SCRIPTS_DIR = Path(__file__).parent.parent / "hooks" / "scripts"
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

PYTHON = sys.executable

# Host environment variables that would leak into hook subprocesses
_WARDEN_ENV = (
    "WARDEN_STATE_DIR", "WARDEN_EVENTS_FILE", "WARDEN_TOKEN_MODE",
    "WARDEN_TOKEN_MODEL", "WARDEN_EVENTS_ENABLED", "WARDEN_STDIN_TIMEOUT",
    "OTEL_TRACE_ENDPOINT", "ANTHROPIC_API_KEY",
)


# ---------------------------------------------------------------------------
# Config / state helpers
# ---------------------------------------------------------------------------

def make_config(state_dir, **overrides):
    """WardenConfig rooted at *state_dir* with tracing disabled."""
    from warden_config import WardenConfig

    values = {
        "state_dir": str(state_dir),
        "events_file": str(Path(state_dir) / "events.jsonl"),
        "trace_endpoint": "",
    }
    values.update(overrides)
    return WardenConfig(**values)


def read_events(state_dir):
    """All event-log records under *state_dir*, oldest first."""
    path = Path(state_dir) / "events.jsonl"
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


@pytest.fixture
def state_dir(tmp_path):
    d = tmp_path / "statusline"
    d.mkdir()
    return d


@pytest.fixture
def config(state_dir):
    return make_config(state_dir)


# ---------------------------------------------------------------------------
# Subprocess runner
# ---------------------------------------------------------------------------

def hook_env(state_dir, extra=None):
    env = {k: v for k, v in os.environ.items() if k not in _WARDEN_ENV}
    env["WARDEN_STATE_DIR"] = str(state_dir)
    env["OTEL_TRACE_ENDPOINT"] = ""
    env["WARDEN_STDIN_TIMEOUT"] = "2"
    if extra:
        env.update(extra)
    return env


def run_hook(script, payload, state_dir, env=None):
    """Run hooks/scripts/<script> with *payload* on stdin.

    *payload* may be a dict (JSON-encoded) or a raw string. Returns the
    CompletedProcess (text mode).
    """
    stdin = payload if isinstance(payload, str) else json.dumps(payload)
    return subprocess.run(
        [PYTHON, str(SCRIPTS_DIR / script)],
        input=stdin,
        capture_output=True,
        text=True,
        timeout=20,
        env=hook_env(state_dir, env),
    )


def hook_json(result):
    """Parse a hook's stdout payload ({} when it printed nothing)."""
    out = result.stdout.strip()
    return json.loads(out) if out else {}
