#!/usr/bin/env python3
"""Flat-file session state for claude-warden hooks.

Layout under the state directory (one pipe-delimited line per file):

  state                  SessionRecord   v2|session|total|ctx|reset_ts|reason|in|out|cost|ctx_size|last_cost|updated
                                         (legacy: session|total|ctx|reset_ts|reason)
  session-<id>           OutputRecord    count|top_bytes|top_label|ts
  clears-<id>            ClearLedger     clears|tokens_lost|cost_at_last_clear
  peak-<id>              PeakCostRecord  peak|total
  subagent-count         SubagentCount   session|count|ts
  reset-reason           ResetNote       ts|reason|session
  .session_start         seconds.nanoseconds
  .tool-start-<tool>.<key>   nanosecond start timestamp

Concurrency: many short-lived hook processes share this directory. Every
write is a whole-file atomic replace (temp file + rename), so readers never
see a half-written record. There are no locks: concurrent read-modify-write
cycles are last-writer-wins. The data is advisory telemetry.

Reads never raise. A missing, truncated or malformed record is "no prior
state".

Requires Pydantic v2.
"""

from __future__ import annotations

import glob
import os
import tempfile
import time
from typing import ClassVar, Literal, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from warden_input import sanitize_id

RESET_REASONS = ("session", "reset", "context")

_STATE_FILE = "state"
_RESET_REASON_FILE = "reset-reason"
_SUBAGENT_FILE = "subagent-count"
_SESSION_START_FILE = ".session_start"
_MARKER_PREFIX = ".tool-start-"
_COMPANION_PREFIXES = ("session-", "clears-", "peak-")


# ---------------------------------------------------------------------------
# Atomic write primitive
# ---------------------------------------------------------------------------

def atomic_write_text(target: str, content: str) -> None:
    """Write text atomically via unique tmp + rename."""
    target_dir = os.path.dirname(target) or "."
    os.makedirs(target_dir, mode=0o700, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=target_dir, suffix=".tmp", prefix=".wd-")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, target)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _read_line(path: str) -> Optional[str]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.readline().strip()
    except (OSError, UnicodeDecodeError):
        return None


def _clean_label(value: str) -> str:
    return " ".join(str(value).replace("|", "/").split())[:60]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class _Record(BaseModel):
    model_config = ConfigDict(extra="forbid")

    FIELDS: ClassVar[tuple] = ()

    @classmethod
    def from_fields(cls, fields):
        if len(fields) != len(cls.FIELDS):
            return None
        try:
            return cls(**dict(zip(cls.FIELDS, fields)))
        except ValidationError:
            return None

    @classmethod
    def from_line(cls, line):
        if not line:
            return None
        return cls.from_fields(line.split("|"))

    def to_line(self) -> str:
        values = []
        for name in self.FIELDS:
            value = getattr(self, name)
            values.append("{:.6f}".format(value) if isinstance(value, float) else str(value))
        return "|".join(values) + "\n"


class SessionRecord(_Record):
    """Cumulative totals and reset state of the most recently seen session."""

    FIELDS: ClassVar[tuple] = (
        "session_id", "total_tokens", "context_used", "reset_ts", "reset_reason",
        "input_tokens", "output_tokens", "cost", "context_size", "last_cost", "updated_ts",
    )
    LEGACY_FIELDS: ClassVar[tuple] = FIELDS[:5]
    VERSION: ClassVar[str] = "v2"

    session_id: str = ""
    total_tokens: int = Field(default=0, ge=0)
    context_used: int = Field(default=0, ge=0)
    reset_ts: int = Field(default=0, ge=0)
    reset_reason: Literal["", "session", "reset", "context"] = ""
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0)
    context_size: int = Field(default=0, ge=0)
    last_cost: float = Field(default=0.0, ge=0)
    updated_ts: int = Field(default=0, ge=0)

    @classmethod
    def from_line(cls, line):
        if not line:
            return None
        fields = line.split("|")
        if fields[0] == cls.VERSION:
            return cls.from_fields(fields[1:])
        if len(fields) == len(cls.LEGACY_FIELDS):
            try:
                return cls(**dict(zip(cls.LEGACY_FIELDS, fields)))
            except ValidationError:
                return None
        return None

    def to_line(self) -> str:
        return self.VERSION + "|" + super().to_line()


class OutputRecord(_Record):
    FIELDS: ClassVar[tuple] = ("count", "top_bytes", "top_label", "updated_ts")

    count: int = Field(default=0, ge=0)
    top_bytes: int = Field(default=0, ge=0)
    top_label: str = ""
    updated_ts: int = Field(default=0, ge=0)


class ClearLedger(_Record):
    FIELDS: ClassVar[tuple] = ("clears", "tokens_lost", "cost_at_last_clear")

    clears: int = Field(default=0, ge=0)
    tokens_lost: int = Field(default=0, ge=0)
    cost_at_last_clear: float = Field(default=0.0, ge=0)


class PeakCostRecord(_Record):
    FIELDS: ClassVar[tuple] = ("peak", "total")

    peak: float = Field(default=0.0, ge=0)
    total: float = Field(default=0.0, ge=0)

    @classmethod
    def from_fields(cls, fields):
        record = super().from_fields(fields)
        if record is not None and record.peak > record.total:
            return None  # peak can never exceed the session total: corrupt
        return record


class SubagentCount(_Record):
    FIELDS: ClassVar[tuple] = ("session_id", "count", "updated_ts")

    session_id: str = ""
    count: int = Field(default=0, ge=0)
    updated_ts: int = Field(default=0, ge=0)


class ResetNote(_Record):
    FIELDS: ClassVar[tuple] = ("reset_ts", "reason", "session_id")

    reset_ts: int = Field(default=0, ge=0)
    reason: Literal["session", "reset", "context"] = "reset"
    session_id: str = ""


class Observation(NamedTuple):
    record: SessionRecord
    reset_reason: Optional[str]
    cost_delta: float
    ledger: ClearLedger
    peak: PeakCostRecord


class Latency(NamedTuple):
    start_ns: int
    end_ns: int
    duration_ms: int


# ---------------------------------------------------------------------------
# Reset detection
# ---------------------------------------------------------------------------

def detect_reset(prev: Optional[SessionRecord], session_id: str, total_tokens: int,
                 context_used: int, shrink_delta: int = 2000) -> Optional[str]:
    """Classify an observation against the previous record.

    Precedence, first match wins: a different session id is "session"; a
    cumulative token total below the previous one is "reset"; a context
    window that shrank by at least *shrink_delta* is "context".
    """
    if prev is None:
        return None
    if session_id and prev.session_id and session_id != prev.session_id:
        return "session"
    if prev.total_tokens > 0 and total_tokens < prev.total_tokens:
        return "reset"
    if prev.context_used > 0 and context_used < prev.context_used:
        if prev.context_used - context_used >= shrink_delta:
            return "context"
    return None


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class StateStore:
    """Access to the state directory for one hook invocation."""

    def __init__(self, config):
        self.config = config
        self.root = config.state_dir

    def path(self, name: str) -> str:
        return os.path.join(self.root, name)

    def _load(self, model, name):
        return model.from_line(_read_line(self.path(name)))

    def _save(self, record, name) -> None:
        atomic_write_text(self.path(name), record.to_line())

    # -- session record ------------------------------------------------------

    def read_session(self) -> Optional[SessionRecord]:
        return self._load(SessionRecord, _STATE_FILE)

    def write_session(self, record: SessionRecord) -> None:
        self._save(record, _STATE_FILE)

    def observe(self, session_id: str, input_tokens: int = 0, output_tokens: int = 0,
                context_used: int = 0, context_size: int = 0, cost: float = 0.0,
                now: Optional[int] = None) -> Observation:
        """Fold one statusline observation into the session state.

        Detects resets, advances the clear ledger and the peak-cost record,
        and drops the companion files of a superseded session.
        """
        now = int(time.time()) if now is None else now
        session_id = sanitize_id(session_id)
        prev = self.read_session()
        if not session_id:
            # nothing to attribute the observation to; the stored record stays
            return Observation(prev or SessionRecord(), None, 0.0,
                               ClearLedger(), PeakCostRecord())
        total = input_tokens + output_tokens
        reason = detect_reset(prev, session_id, total, context_used,
                              self.config.context_shrink_delta)
        same_session = prev is not None and prev.session_id == session_id

        if reason == "session":
            self.supersede(prev.session_id)

        reset_ts = prev.reset_ts if same_session else 0
        reset_reason = prev.reset_reason if same_session else ""
        if reason:
            reset_ts = max(reset_ts, now)
            reset_reason = reason

        ledger = self.read_ledger(session_id)
        peak = self.read_peak(session_id)
        cost_delta = 0.0

        if reason in ("reset", "context"):
            ledger = ClearLedger(
                clears=ledger.clears + 1,
                tokens_lost=ledger.tokens_lost + max(prev.context_used - context_used, 0),
                cost_at_last_clear=cost,
            )
            self._save(ledger, "clears-" + session_id)
        if reason:
            self._save(ResetNote(reset_ts=reset_ts, reason=reason, session_id=session_id),
                       _RESET_REASON_FILE)

        if same_session:
            cost_delta = max(cost - prev.last_cost, 0.0)
        peak = update_peak(peak, cost_delta, cost)
        self._save(peak, "peak-" + session_id)

        record = SessionRecord(
            session_id=session_id,
            total_tokens=total,
            context_used=context_used,
            reset_ts=reset_ts,
            reset_reason=reset_reason,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=cost,
            context_size=context_size,
            last_cost=cost,
            updated_ts=now,
        )
        self.write_session(record)
        return Observation(record, reason, cost_delta, ledger, peak)

    def supersede(self, old_session_id: str) -> None:
        """Delete the per-session companion files of a finished session."""
        old_session_id = sanitize_id(old_session_id)
        if not old_session_id:
            return
        for prefix in _COMPANION_PREFIXES:
            try:
                os.unlink(self.path(prefix + old_session_id))
            except OSError:
                pass

    # -- per-session companions ----------------------------------------------

    def read_ledger(self, session_id: str) -> ClearLedger:
        return self._load(ClearLedger, "clears-" + session_id) or ClearLedger()

    def read_peak(self, session_id: str) -> PeakCostRecord:
        return self._load(PeakCostRecord, "peak-" + session_id) or PeakCostRecord()

    def read_output(self, session_id: str) -> OutputRecord:
        return self._load(OutputRecord, "session-" + session_id) or OutputRecord()

    def read_reset_note(self) -> Optional[ResetNote]:
        return self._load(ResetNote, _RESET_REASON_FILE)

    def bump_output(self, session_id: str, label: str, size: int,
                    now: Optional[int] = None) -> Optional[OutputRecord]:
        """Count one tool call and remember the largest output seen."""
        session_id = sanitize_id(session_id)
        if not session_id:
            return None
        current = self.read_output(session_id)
        record = OutputRecord(
            count=current.count + 1,
            top_bytes=current.top_bytes,
            top_label=current.top_label,
            updated_ts=int(time.time()) if now is None else now,
        )
        if size > current.top_bytes:
            record.top_bytes = size
            record.top_label = _clean_label(label)
        self._save(record, "session-" + session_id)
        return record

    # -- subagents -----------------------------------------------------------

    def read_subagents(self, session_id: str) -> int:
        record = self._load(SubagentCount, _SUBAGENT_FILE)
        if record is None or record.session_id != session_id:
            return 0
        return record.count

    def adjust_subagents(self, session_id: str, delta: int) -> int:
        """Add *delta* to the active subagent count (never below zero)."""
        session_id = sanitize_id(session_id)
        if not session_id:
            return 0
        count = max(self.read_subagents(session_id) + delta, 0)
        self._save(SubagentCount(session_id=session_id, count=count,
                                 updated_ts=int(time.time())), _SUBAGENT_FILE)
        return count

    def reset_subagents(self, session_id: str) -> None:
        session_id = sanitize_id(session_id)
        if session_id:
            self._save(SubagentCount(session_id=session_id, count=0,
                                     updated_ts=int(time.time())), _SUBAGENT_FILE)

    # -- session start -------------------------------------------------------

    def session_start(self) -> Optional[float]:
        raw = _read_line(self.path(_SESSION_START_FILE))
        if not raw:
            return None
        try:
            return float(raw)
        except ValueError:
            return None

    def mark_session_start(self, now_ns: Optional[int] = None) -> None:
        now_ns = time.time_ns() if now_ns is None else now_ns
        atomic_write_text(self.path(_SESSION_START_FILE),
                          "{}.{:09d}\n".format(now_ns // 10**9, now_ns % 10**9))

    # -- tool latency markers ------------------------------------------------

    def _marker(self, tool: str, key: str) -> str:
        return self.path("{}{}.{}".format(_MARKER_PREFIX, tool, key))

    def record_tool_start(self, tool_name: str, key: str,
                          now_ns: Optional[int] = None) -> Optional[str]:
        tool = sanitize_id(tool_name)
        key = sanitize_id(key)
        if not tool or not key:
            return None
        marker = self._marker(tool, key)
        now_ns = time.time_ns() if now_ns is None else now_ns
        atomic_write_text(marker, "{}\n".format(now_ns))
        return marker

    def _marker_candidates(self, tool: str, key: str) -> list[str]:
        exact = self._marker(tool, key) if key else ""
        candidates = [exact] if exact and os.path.exists(exact) else []
        others = []
        for path in glob.glob(glob.escape(self.path(_MARKER_PREFIX + tool)) + ".*"):
            if path == exact or path.endswith(".claimed"):
                continue
            try:
                others.append((os.stat(path).st_mtime_ns, path))
            except OSError:
                continue
        others.sort(reverse=True)
        return candidates + [p for _, p in others]

    def consume_tool_latency(self, tool_name: str, key: str = "",
                             now_ns: Optional[int] = None) -> Optional[Latency]:
        """Pair this call with a start marker and delete it.

        The marker written under the same key wins; otherwise the most
        recently written marker for the tool is used. Markers are claimed by
        rename, so two concurrent consumers never share one. Returns None
        when no usable marker exists.
        """
        tool = sanitize_id(tool_name)
        if not tool:
            return None
        key = sanitize_id(key)
        for path in self._marker_candidates(tool, key):
            claimed = "{}.{}.claimed".format(path, os.getpid())
            try:
                os.rename(path, claimed)
            except OSError:
                continue  # consumed by a concurrent call
            raw = _read_line(claimed)
            try:
                os.unlink(claimed)
            except OSError:
                pass
            try:
                start_ns = int(raw or "")
            except ValueError:
                return None
            end_ns = time.time_ns() if now_ns is None else now_ns
            duration_ms = (end_ns - start_ns) // 1_000_000
            if duration_ms < 0 or duration_ms > self.config.max_latency_ms:
                return None
            return Latency(start_ns, end_ns, duration_ms)
        return None


def update_peak(peak: PeakCostRecord, cost_delta: float, total_cost: float) -> PeakCostRecord:
    """Advance the high-water mark; keeps peak <= total."""
    new_peak = max(peak.peak, cost_delta)
    return PeakCostRecord(peak=min(new_peak, total_cost), total=total_cost)
