#!/usr/bin/env python3
"""Per-invocation configuration for claude-warden hooks.

Every filter builds exactly one WardenConfig via load_config() and passes it
down to the state store, logger, transforms and trace emitter. Nothing else
in the hook scripts reads the environment.

Invalid values degrade to defaults: a bad setting must never block a hook.

Requires Pydantic v2.
"""

from __future__ import annotations

import math
import os
import sys
from typing import Literal, Mapping, Optional

try:
    from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
except ImportError:
    print("ERROR: pydantic>=2.0 is required. Install: pip install 'pydantic>=2.0,<3.0'", file=sys.stderr)
    sys.exit(0)  # fail open: the host must never be blocked by a missing dependency


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Tracing is opt-in: set OTEL_TRACE_ENDPOINT, e.g. http://localhost:4318/v1/traces
DEFAULT_TRACE_ENDPOINT = ""
DEFAULT_TOKEN_MODEL = "claude-haiku-4-5-20251001"
BYTES_PER_TOKEN_X10 = 35  # 3.5 bytes per token

_TRUE_STRINGS = ("1", "true", "yes", "on")


class WardenConfig(BaseModel):
    """Settings shared by all filters for one hook invocation."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    state_dir: str
    events_file: str = ""
    trace_endpoint: str = DEFAULT_TRACE_ENDPOINT
    token_mode: Literal["estimate", "exact"] = "estimate"
    token_model: str = DEFAULT_TOKEN_MODEL
    api_key: Optional[str] = None
    logging_enabled: bool = True
    stdin_timeout: float = 5.0

    # Pre-execution size limits (bytes, strictly-greater denies)
    write_max_bytes: int = 100_000
    notebook_max_bytes: int = 50_000
    edit_max_bytes: int = 50_000

    # Read guard
    read_max_bytes: int = 2 * 1024 * 1024

    # Output transforms
    bash_truncate_bytes: int = 20_000
    bash_head_bytes: int = 8192
    bash_tail_bytes: int = 2048
    bash_suppress_bytes: int = 500_000
    read_outline_lines: int = 500
    subagent_read_outline_lines: int = 100
    agent_compress_bytes: int = 4096

    # Session state
    context_shrink_delta: int = 2000
    max_latency_ms: int = 600_000

    trace_timeout: float = 2.0

    @field_validator("stdin_timeout", "trace_timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            raise ValueError("timeout must be a positive number")
        return v

    @property
    def tracing_enabled(self) -> bool:
        return bool(self.trace_endpoint)

    @property
    def exact_tokens(self) -> bool:
        return self.token_mode == "exact" and bool(self.api_key)


def _env_flag(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_STRINGS


def load_config(environ: Optional[Mapping[str, str]] = None) -> WardenConfig:
    """Build the WardenConfig for this invocation from environment variables.

    Unknown or malformed values fall back to the field defaults.
    """
    env = os.environ if environ is None else environ
    home = env.get("HOME") or os.path.expanduser("~")
    state_dir = env.get("WARDEN_STATE_DIR") or os.path.join(home, ".claude", ".statusline")

    values = {
        "state_dir": state_dir,
        "events_file": env.get("WARDEN_EVENTS_FILE") or os.path.join(state_dir, "events.jsonl"),
        "trace_endpoint": env.get("OTEL_TRACE_ENDPOINT", DEFAULT_TRACE_ENDPOINT),
        "token_model": env.get("WARDEN_TOKEN_MODEL") or DEFAULT_TOKEN_MODEL,
        "api_key": env.get("ANTHROPIC_API_KEY") or None,
        "logging_enabled": _env_flag(env.get("WARDEN_EVENTS_ENABLED"), True),
    }

    mode = (env.get("WARDEN_TOKEN_MODE") or "estimate").strip().lower()
    if mode in ("estimate", "exact"):
        values["token_mode"] = mode

    raw_timeout = env.get("WARDEN_STDIN_TIMEOUT")
    if raw_timeout:
        try:
            values["stdin_timeout"] = float(raw_timeout)
        except ValueError:
            pass

    try:
        return WardenConfig(**values)
    except ValidationError:
        values.pop("stdin_timeout", None)
        return WardenConfig(**values)
