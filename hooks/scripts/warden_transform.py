#!/usr/bin/env python3
"""PostToolUse output transforms for claude-warden.

Applied in a fixed order by run_pipeline():
  1. strip_reminders        -- every tool
  2. compress_structure     -- Read, above a line-count threshold
  3. compress_agent_output  -- Task / Agent, above a byte threshold
  4. truncate_bulk          -- Bash, above a byte threshold

Every stage is idempotent: applied to its own output it returns the text
unchanged, so re-running the pipeline (or chaining the read and post
filters) is safe.

No external dependencies (stdlib only).
"""

from __future__ import annotations

import os
import re
from typing import NamedTuple

# A block opens at the start of a line and closes at the end of a line;
# mentions of the tag inside ordinary lines are left alone.
_REMINDER_BLOCK_RE = re.compile(
    r"^[ \t]*<system-reminder>.*?</system-reminder>[ \t]*(?:\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
_BLANK_RUN_RE = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")

OUTLINE_MARKER = "[warden] Structural outline"
AGENT_MARKER = "[Agent output compressed:"
TRUNCATION_MARKER = "[warden] truncated"
SUPPRESSION_MARKER = "[warden] Output suppressed"

AGENT_TOOLS = ("Task", "Agent")


class TransformResult(NamedTuple):
    text: str
    stages: tuple  # ((stage, original_bytes, final_bytes), ...)

    @property
    def changed(self) -> bool:
        return bool(self.stages)


def byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


# ---------------------------------------------------------------------------
# 1. Reminder stripping
# ---------------------------------------------------------------------------

def strip_reminders(text: str) -> str:
    """Remove <system-reminder> blocks and collapse the blank runs they leave.

    Only line-anchored blocks are removed. Text without such a block is
    returned unchanged.
    """
    if "<system-reminder>" not in text:
        return text
    cleaned = text
    while True:
        stripped = _REMINDER_BLOCK_RE.sub("", cleaned)
        if stripped == cleaned:
            break
        cleaned = stripped
    if cleaned == text:
        return text
    cleaned = _BLANK_RUN_RE.sub("\n\n", cleaned)
    return cleaned.rstrip(" \t\n") + ("\n" if text.endswith("\n") and cleaned.strip() else "")


# ---------------------------------------------------------------------------
# 2. Structural compression (Read)
# ---------------------------------------------------------------------------

# Read output is "cat -n" style: optional spaces, line number, tab or arrow
_LINE_NUMBER_RE = re.compile(r"^\s*(\d+)(?:\t|→)(.*)$")

_OUTLINE_RE = re.compile(
    r"^(?:"
    r"import\s|from\s+\S+\s+import\s|#include\b|#import\b|require\(|use\s|using\s"
    r"|package\s|module\s|mod\s"
    r"|(?:export\s+)?(?:default\s+)?(?:async\s+)?(?:function\*?|class|interface|type|enum|const\s+\w+\s*=\s*(?:async\s*)?\()"
    r"|(?:async\s+)?def\s|class\s|@\w"
    r"|(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?(?:fn|struct|enum|trait|impl|type|const|static)\s"
    r"|func\s|type\s+\w+\s+(?:struct|interface)"
    r"|(?:public|private|protected|internal)\s"
    r")"
)


def _split_numbered(line: str, index: int) -> tuple[int, str]:
    m = _LINE_NUMBER_RE.match(line)
    if m:
        return int(m.group(1)), m.group(2)
    return index, line


def extract_outline(text: str) -> list[str]:
    """Import/include lines and top-level definitions, with line numbers."""
    outline = []
    for index, line in enumerate(text.splitlines(), start=1):
        number, body = _split_numbered(line, index)
        if not body or body[0] in " \t":
            # top-level only; indented methods are summarised by their class
            continue
        if _OUTLINE_RE.match(body):
            outline.append("{:>6}  {}".format(number, body.rstrip()[:200]))
    return outline


def compress_structure(text: str, file_path: str, threshold: int) -> str:
    """Replace a large file read with its structural outline."""
    if OUTLINE_MARKER in text:
        return text
    total_lines = text.count("\n") + (0 if text.endswith("\n") else 1)
    if total_lines <= threshold:
        return text
    outline = extract_outline(text)
    name = os.path.basename(file_path) if file_path else "file"
    header = (
        "{} of {} ({} lines, {} structural lines kept). Re-read with "
        "offset/limit for the sections you need.".format(
            OUTLINE_MARKER, name, total_lines, len(outline))
    )
    compressed = header + "\n" + "\n".join(outline) + "\n"
    if byte_len(compressed) >= byte_len(text):
        return text
    return compressed


# ---------------------------------------------------------------------------
# 3. Sub-task output compression (Task / Agent)
# ---------------------------------------------------------------------------

_KEEP_LINE_RE = re.compile(
    r"^\s*(?:#{1,6}\s|[-*+]\s|\d+[.)]\s|\||[A-Za-z][\w ./-]{0,40}:\s+\S)"
)
_SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s")


def _first_sentence(paragraph: str) -> str:
    flat = " ".join(paragraph.split())
    parts = _SENTENCE_END_RE.split(flat, maxsplit=1)
    sentence = parts[0]
    if len(sentence) > 240:
        sentence = sentence[:237].rstrip() + "..."
    return sentence


def densify(text: str) -> str:
    """Keep structured lines, collapse prose paragraphs to bullets, drop code bodies."""
    out: list[str] = []
    paragraph: list[str] = []
    in_fence = False
    fence_lines = 0

    def flush():
        if paragraph:
            out.append("- " + _first_sentence(" ".join(paragraph)))
            paragraph.clear()

    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith("```"):
            flush()
            if in_fence:
                out.append("  [code block: {} lines omitted]".format(fence_lines))
                in_fence = False
            else:
                in_fence = True
                fence_lines = 0
            continue
        if in_fence:
            fence_lines += 1
            continue
        if not stripped:
            flush()
            continue
        if _KEEP_LINE_RE.match(line):
            flush()
            out.append(line.rstrip())
            continue
        paragraph.append(stripped)

    flush()
    if in_fence:
        out.append("  [code block: {} lines omitted]".format(fence_lines))
    return "\n".join(out)


def compress_agent_output(text: str, threshold: int) -> str:
    """Densify a large sub-task result and mark the substitution."""
    if text.startswith(AGENT_MARKER) or byte_len(text) <= threshold:
        return text
    dense = densify(text)
    original = byte_len(text)
    body_bytes = byte_len(dense)
    if body_bytes >= original:
        return text
    return "{} {} -> {} bytes]\n{}".format(AGENT_MARKER, original, body_bytes, dense)


# ---------------------------------------------------------------------------
# 4. Bulk truncation (Bash)
# ---------------------------------------------------------------------------

def truncate_bulk(text: str, threshold: int, head: int, tail: int, ceiling: int) -> str:
    """Head/tail window for large output; suppress output above *ceiling*."""
    raw = text.encode("utf-8")
    size = len(raw)
    if size <= threshold:
        return text
    if size > ceiling:
        return (
            "{}: {} bytes exceeds the {} byte ceiling. Re-run the command with "
            "output redirected to a file and inspect it with head, tail or grep."
            .format(SUPPRESSION_MARKER, size, ceiling)
        )
    elided = size - head - tail
    head_text = raw[:head].decode("utf-8", errors="ignore")
    tail_text = raw[size - tail:].decode("utf-8", errors="ignore")
    return "{}\n\n... {} {} bytes (showing first {} and last {}) ...\n\n{}".format(
        head_text, TRUNCATION_MARKER, elided, head, tail, tail_text)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def run_pipeline(tool_name: str, text: str, config, subagent: bool = False,
                 file_path: str = "") -> TransformResult:
    """Apply the stages that apply to *tool_name*, in order."""
    stages = []

    def apply(stage, func, *args):
        nonlocal text
        before = byte_len(text)
        result = func(text, *args)
        if result != text:
            stages.append((stage, before, byte_len(result)))
            text = result

    apply("strip_reminders", strip_reminders)

    if tool_name == "Read":
        threshold = (config.subagent_read_outline_lines if subagent
                     else config.read_outline_lines)
        apply("read_outline", compress_structure, file_path, threshold)

    if tool_name in AGENT_TOOLS:
        apply("agent_compress", compress_agent_output, config.agent_compress_bytes)

    if tool_name == "Bash":
        apply("bash_truncate", truncate_bulk, config.bash_truncate_bytes,
              config.bash_head_bytes, config.bash_tail_bytes, config.bash_suppress_bytes)

    return TransformResult(text=text, stages=tuple(stages))
