#!/usr/bin/env python3
"""Exact token counting for claude-warden (WARDEN_TOKEN_MODE=exact).

The decision path only ever uses the byte estimate. When exact mode is on
and ANTHROPIC_API_KEY is set, the PostToolUse filter calls
request_count(), which parks the before/after text in a job file under the
state directory and starts this script detached:

    python3 warden_token_count.py <job-file>

The worker asks the count_tokens endpoint for both texts and appends a
``token_count`` correction event. Any failure leaves the estimate standing.

No external dependencies (stdlib only).
"""

from __future__ import annotations

import json
import os
import sys
import tempfile
import urllib.error
import urllib.request
from typing import Optional

from warden_config import load_config
from warden_logger import emit_event, estimate_tokens
from warden_trace import spawn_detached

_API_URL = "https://api.anthropic.com/v1/messages/count_tokens"
_API_VERSION = "2023-06-01"
_JOB_PREFIX = ".token-job-"


def count_tokens(text: str, model: str, api_key: Optional[str],
                 timeout: float = 3.0) -> Optional[int]:
    """Call the count_tokens API. Returns the input token count or None."""
    if not api_key or not text:
        return None

    payload = json.dumps({
        "model": model,
        "messages": [{"role": "user", "content": text}],
    }).encode("utf-8")

    req = urllib.request.Request(
        _API_URL,
        data=payload,
        headers={
            "x-api-key": api_key,
            "anthropic-version": _API_VERSION,
            "content-type": "application/json",
        },
    )

    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            data = json.loads(resp.read().decode("utf-8"))
            count = data.get("input_tokens")
            if isinstance(count, int) and not isinstance(count, bool) and count >= 0:
                return count
    except (urllib.error.URLError, urllib.error.HTTPError,
            json.JSONDecodeError, TimeoutError, OSError,
            AttributeError, ValueError):
        pass
    return None


def request_count(config, original: str, final: str, *, tool: str = "",
                  session_id: str = "", stage: str = "") -> bool:
    """Queue a background exact count of *original* vs *final*.

    Returns False when exact mode is off or the worker could not start.
    """
    if not config.exact_tokens:
        return False
    job = json.dumps({
        "original": original,
        "final": final,
        "tool": tool,
        "session_id": session_id,
        "stage": stage,
    })
    try:
        os.makedirs(config.state_dir, mode=0o700, exist_ok=True)
        fd, job_path = tempfile.mkstemp(dir=config.state_dir, prefix=_JOB_PREFIX,
                                        suffix=".json")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(job)
    except OSError:
        return False
    started = spawn_detached([sys.executable, os.path.abspath(__file__), job_path])
    if not started:
        try:
            os.unlink(job_path)
        except OSError:
            pass
    return started


def _load_job(job_path: str) -> Optional[dict]:
    try:
        with open(job_path, "r", encoding="utf-8") as f:
            job = json.load(f)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return None
    finally:
        try:
            os.unlink(job_path)
        except OSError:
            pass
    return job if isinstance(job, dict) else None


def run_job(config, job: dict) -> Optional[dict]:
    """Count both texts and log the correction. Returns the logged data."""
    original = job.get("original") if isinstance(job.get("original"), str) else ""
    final = job.get("final") if isinstance(job.get("final"), str) else ""
    original_tokens = count_tokens(original, config.token_model, config.api_key)
    if original_tokens is None:
        return None
    final_tokens = count_tokens(final, config.token_model, config.api_key) if final else 0
    if final_tokens is None:
        return None

    estimated = max(estimate_tokens(len(original.encode("utf-8")))
                    - estimate_tokens(len(final.encode("utf-8"))), 0)
    data = {
        "stage": str(job.get("stage", "")),
        "model": config.token_model,
        "original_tokens": original_tokens,
        "final_tokens": final_tokens,
        "tokens_saved": max(original_tokens - final_tokens, 0),
        "estimated_tokens_saved": estimated,
    }
    emit_event("token_count", data, tool=str(job.get("tool", "")),
               session_id=str(job.get("session_id", "")), config=config)
    return data


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        if not argv:
            return 0
        job = _load_job(argv[0])
        if job is None:
            return 0
        config = load_config()
        if config.exact_tokens:
            run_job(config, job)
    except Exception as e:
        print(f"[warden_token_count] Error (fail-open): {e}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
