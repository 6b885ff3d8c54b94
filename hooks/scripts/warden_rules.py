#!/usr/bin/env python3
"""Classification rules for claude-warden filters.

Three independent rule sets:
  PRE_TOOL_RULES    -- PreToolUse guard (deny / allow)
  PERMISSION_RULES  -- PermissionRequest guard (allow / deny / ask)
  READ_BLOCK_PATTERN + check_read_path() -- Read tool guard

find_secret() flags credential-looking strings in tool output.

Rule sets are ordered tuples of Rule; evaluate() returns the first match.
Precedence lives in the tuple order, so each set can be tested and
extended on its own.

These guards are heuristics, not a sandbox. They are trivially bypassable
and only exist to keep an agent from wasting context or doing something
obviously catastrophic by accident.

No external dependencies (stdlib only).
"""

from __future__ import annotations

import os
import re
import shlex
from typing import Callable, NamedTuple, Optional

ALLOW = "allow"
DENY = "deny"
ASK = "ask"


class RuleContext(NamedTuple):
    tool_name: str
    command: str = ""
    file_path: str = ""
    content_bytes: int = 0
    new_source_bytes: int = 0
    new_string_bytes: int = 0
    write_max: int = 100_000
    notebook_max: int = 50_000
    edit_max: int = 50_000
    agent_type: str = ""


class Verdict(NamedTuple):
    decision: str
    reason: str = ""
    rule_id: str = ""
    tokens_saved: int = 0


class Rule(NamedTuple):
    rule_id: str
    predicate: Callable[[RuleContext], Optional[str]]
    decision: str
    reason: str
    tokens_saved: int = 0


def evaluate(rules, ctx: RuleContext, default: str = ALLOW) -> Verdict:
    """Return the verdict of the first matching rule, else *default*.

    A predicate returns None when it does not match, or a string that is
    substituted into the rule's reason template as ``{detail}``.
    """
    for rule in rules:
        detail = rule.predicate(ctx)
        if detail is None:
            continue
        return Verdict(
            decision=rule.decision,
            reason=rule.reason.format(detail=detail),
            rule_id=rule.rule_id,
            tokens_saved=rule.tokens_saved,
        )
    return Verdict(decision=default)


# ---------------------------------------------------------------------------
# Command tokenizing
# ---------------------------------------------------------------------------

_SEGMENT_SPLIT_RE = re.compile(r"&&|\|\||[;|\n]")
_ENV_ASSIGN_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")
_PREFIX_WORDS = frozenset({"sudo", "env", "time", "command", "nice", "nohup", "exec"})


def split_segments(command: str) -> list[str]:
    """Split a shell command line on &&, ||, ;, | and newlines."""
    return [s.strip() for s in _SEGMENT_SPLIT_RE.split(command) if s.strip()]


def segment_words(segment: str) -> list[str]:
    """Tokenize one segment, dropping VAR=value and wrapper prefixes."""
    try:
        words = shlex.split(segment, comments=False)
    except ValueError:
        words = segment.split()
    while words and (_ENV_ASSIGN_RE.match(words[0]) or words[0] in _PREFIX_WORDS):
        words = words[1:]
    if words:
        words[0] = os.path.basename(words[0])
    return words


def has_flag(words: list[str], spellings) -> bool:
    """True if any spelling appears in *words*.

    Accepts ``--flag=value`` for long spellings and clustered short flags
    (``-sSL`` contains ``-s``) for single-letter spellings.
    """
    for word in words:
        for spelling in spellings:
            if word == spelling:
                return True
            if spelling.startswith("--") and word.startswith(spelling + "="):
                return True
            if (
                len(spelling) == 2
                and spelling[0] == "-"
                and len(word) > 2
                and word[0] == "-"
                and word[1] != "-"
                and word[1:].isalpha()
                and spelling[1] in word[1:]
            ):
                return True
    return False


# ---------------------------------------------------------------------------
# Oversized content
# ---------------------------------------------------------------------------

def _write_too_large(ctx: RuleContext) -> Optional[str]:
    if ctx.tool_name == "Write" and ctx.content_bytes > ctx.write_max:
        return "{} bytes > {} byte limit".format(ctx.content_bytes, ctx.write_max)
    return None


def _notebook_too_large(ctx: RuleContext) -> Optional[str]:
    if ctx.tool_name == "NotebookEdit" and ctx.new_source_bytes > ctx.notebook_max:
        return "{} bytes > {} byte limit".format(ctx.new_source_bytes, ctx.notebook_max)
    return None


def _edit_too_large(ctx: RuleContext) -> Optional[str]:
    if ctx.tool_name in ("Edit", "MultiEdit") and ctx.new_string_bytes > ctx.edit_max:
        return "{} bytes > {} byte limit".format(ctx.new_string_bytes, ctx.edit_max)
    return None


# ---------------------------------------------------------------------------
# Critical safety
# ---------------------------------------------------------------------------

_SYSTEM_DIRS = ("bin", "boot", "dev", "etc", "home", "lib", "lib64", "opt",
                "root", "sbin", "sys", "usr", "var", "System", "Users", "Library")
WIPE_TARGETS = frozenset(
    ["/", "/*", "~", "~/", "~/*", "$HOME", "$HOME/", "$HOME/*", "${HOME}", "${HOME}/"]
    + ["/" + d for d in _SYSTEM_DIRS]
    + ["/" + d + "/" for d in _SYSTEM_DIRS]
    + ["/" + d + "/*" for d in _SYSTEM_DIRS]
)
_PIPE_TO_SHELL_RE = re.compile(
    r"\b(?:curl|wget)\b[^\n;]*\|\s*(?:sudo\s+)?(?:ba|z|da|k|fi)?sh\b"
    r"|\b(?:curl|wget)\b[^\n;]*\|\s*(?:sudo\s+)?(?:python[0-9.]*|perl|ruby|node)"
    r"\s*(?:-\s*)?(?:$|[;&|)])"
)
_SHELL_PROCESS_SUB_RE = re.compile(
    r"\b(?:ba|z)?sh\s+(?:-c\s+)?[\"']?(?:<\(|\$\()\s*(?:curl|wget)\b"
)
_FORMAT_RE = re.compile(
    r"(?:^|[\s;&|(])(?:sudo\s+)?(?:mkfs(?:\.[a-z0-9]+)?|mkswap|wipefs|mke2fs)\b"
    r"|\bdd\b[^\n;|&]*\bof=/dev/(?:sd|hd|nvme|disk|vd|xvd|mmcblk)"
    r"|>\s*/dev/(?:sd[a-z]|nvme\d|disk\d|hd[a-z])"
)
_FORK_BOMB_RE = re.compile(
    r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:"
    r"|\b(\w+)\s*\(\s*\)\s*\{\s*\1\s*\|\s*\1\s*&\s*\}\s*;\s*\1\b"
)


def is_filesystem_wipe(words: list[str]) -> bool:
    """rm with a recursive flag aimed at /, ~ or a top-level system dir."""
    if not words or words[0] != "rm":
        return False
    if "--no-preserve-root" in words:
        return True
    if not has_flag(words, ("-r", "-R", "--recursive")):
        return False
    return any(w in WIPE_TARGETS for w in words[1:] if not w.startswith("-"))


def _destructive_delete(ctx: RuleContext) -> Optional[str]:
    if not ctx.command:
        return None
    for segment in split_segments(ctx.command):
        if is_filesystem_wipe(segment_words(segment)):
            return "recursive delete of a root, home or system directory"
    return None


def _remote_exec(ctx: RuleContext) -> Optional[str]:
    cmd = ctx.command
    if cmd and (_PIPE_TO_SHELL_RE.search(cmd) or _SHELL_PROCESS_SUB_RE.search(cmd)):
        return "downloaded script piped straight into an interpreter"
    return None


def _format_disk(ctx: RuleContext) -> Optional[str]:
    if ctx.command and _FORMAT_RE.search(ctx.command):
        return "filesystem format or raw disk write"
    return None


def _fork_bomb(ctx: RuleContext) -> Optional[str]:
    if ctx.command and _FORK_BOMB_RE.search(ctx.command):
        return "fork bomb"
    return None


# ---------------------------------------------------------------------------
# Git safety
# ---------------------------------------------------------------------------

_PROTECTED_REF_RE = re.compile(r"(?:^|[:/+])(?:main|master)$")
_GIT_CONFIG_READ_FLAGS = ("--get", "--get-all", "--get-regexp", "--list", "-l",
                          "--show-origin")
_GIT_CONFIG_WRITE_FLAGS = ("--unset", "--unset-all", "--add", "--replace-all")
_GIT_IDENTITY_KEY_RE = re.compile(r"^user\.|email|name|^credential", re.IGNORECASE)


def _targets_protected_ref(args: list[str]) -> Optional[str]:
    for word in args:
        if not word.startswith("-") and _PROTECTED_REF_RE.search(word):
            return word
    return None


def _git_segment_hazard(words: list[str], protected: Optional[str]) -> Optional[str]:
    index = _subcommand_index(words)
    if not index:
        return None
    sub = words[index]
    args = words[index + 1:]

    if sub == "push" and (has_flag(args, ("-f", "--force"))
                          or any(a.startswith(("--force-", "+")) for a in args)):
        ref = _targets_protected_ref(args)
        if ref:
            return "force push to {}".format(ref)
    if sub == "reset" and "--hard" in args:
        ref = _targets_protected_ref(args)
        if ref:
            return "hard reset to {}".format(ref)
    if sub == "clean" and has_flag(args, ("-f", "--force")) and protected:
        return "forced clean on {}".format(protected)

    if sub == "config" and not has_flag(args, _GIT_CONFIG_READ_FLAGS):
        keys = [a for a in args if not a.startswith("-")]
        writes = len(keys) > 1 or has_flag(args, _GIT_CONFIG_WRITE_FLAGS)
        if keys and writes and _GIT_IDENTITY_KEY_RE.search(keys[0]):
            return "git config write to {}".format(keys[0])
    return None


def find_git_hazard(command: str) -> Optional[str]:
    """Describe a history-rewriting or identity-changing git call, if any.

    Force pushes and hard resets count only when they name main or master;
    a forced clean counts when the command line names either branch
    anywhere (``git checkout main && git clean -fd``). ``git config`` is
    refused for user, email, name and credential keys unless the call only
    reads them.
    """
    segments = [segment_words(s) for s in split_segments(command)]
    git_calls = [words for words in segments if words and words[0] == "git"]
    if not git_calls:
        return None
    protected = None
    for words in segments:
        protected = protected or _targets_protected_ref(words[1:])
    for words in git_calls:
        hazard = _git_segment_hazard(words, protected)
        if hazard:
            return hazard
    return None


def _git_hazard(ctx: RuleContext) -> Optional[str]:
    if ctx.tool_name not in _BASH_TOOLS or not ctx.command:
        return None
    return find_git_hazard(ctx.command)


# ---------------------------------------------------------------------------
# Read-only agents
# ---------------------------------------------------------------------------

READ_ONLY_AGENTS = frozenset({"code-reviewer"})

# File-mutating commands and redirects; 2>&1 and >/dev/null are not writes
_WRITE_COMMAND_RE = re.compile(
    r"\b(?:rm|rmdir|mv|cp|tee|chmod|chown|truncate|dd|install|patch|unlink"
    r"|shred|touch|ln|mkdir)\b"
    r"|\bsed\b[^|;&\n]*\s(?:-[a-zA-Z]*i[a-zA-Z]*|--in-place)\b"
    r"|\brsync\b[^|;&\n]*--delete"
    r"|\bgit\s+(?:checkout\s+--\s|restore\b)"
    r"|(?<![-&])\d?>(?!&|\s*/dev/null\b)"
)


def _read_only_agent_write(ctx: RuleContext) -> Optional[str]:
    if ctx.tool_name not in _BASH_TOOLS or ctx.agent_type not in READ_ONLY_AGENTS:
        return None
    m = _WRITE_COMMAND_RE.search(ctx.command)
    if m is None:
        return None
    return "{} may not run '{}'".format(ctx.agent_type, m.group(0).strip())


# ---------------------------------------------------------------------------
# Verbosity table
# ---------------------------------------------------------------------------

class QuietFlag(NamedTuple):
    binary: str
    subcommands: tuple  # empty = any invocation
    spellings: tuple
    remediation: str
    tokens_saved: int


VERBOSE_COMMANDS = (
    QuietFlag("npm", ("install", "i", "ci", "update", "add"),
              ("--silent", "-s", "--quiet", "-q", "--loglevel=silent", "--loglevel=error"),
              "add --silent (npm install --silent ...)", 2000),
    QuietFlag("yarn", ("install", "add", ""),
              ("--silent", "-s"),
              "add --silent", 2000),
    QuietFlag("pnpm", ("install", "i", "add"),
              ("--silent", "--reporter=silent"),
              "add --reporter=silent", 2000),
    QuietFlag("pip", ("install",),
              ("-q", "--quiet"),
              "add -q (pip install -q ...)", 1500),
    QuietFlag("pip3", ("install",),
              ("-q", "--quiet"),
              "add -q (pip3 install -q ...)", 1500),
    QuietFlag("cargo", ("build", "test", "install", "check", "run"),
              ("-q", "--quiet"),
              "add -q (cargo build -q ...)", 3000),
    QuietFlag("docker", ("build", "pull", "push"),
              ("-q", "--quiet", "--progress=quiet"),
              "add -q (docker build -q ...)", 2500),
    QuietFlag("apt-get", ("install", "upgrade", "update"),
              ("-q", "-qq", "--quiet"),
              "add -qq (apt-get -qq install ...)", 2000),
    QuietFlag("apt", ("install", "upgrade", "update"),
              ("-q", "-qq", "--quiet"),
              "add -qq (apt -qq install ...)", 2000),
    QuietFlag("git", ("clone", "commit", "pull"),
              ("-q", "--quiet"),
              "add -q (git commit -q ...)", 200),
    QuietFlag("curl", (),
              ("-s", "--silent"),
              "add -s (curl -sS ...)", 500),
    QuietFlag("wget", (),
              ("-q", "--quiet", "-nv", "--no-verbose"),
              "add -q (wget -q ...)", 800),
    QuietFlag("ffmpeg", (),
              ("-nostats",),
              "add -nostats -loglevel error", 1500),
)

_BASH_TOOLS = ("Bash",)


# Global options whose value is the next word, e.g. git -C repo commit
_VALUE_OPTIONS = frozenset({
    "-C", "-c", "--git-dir", "--work-tree", "--namespace",
    "--prefix", "--cwd", "--dir", "--filter",
    "-H", "--host", "--context", "--config", "--log-level",
    "--manifest-path", "--color", "-Z",
})


def _subcommand_index(words: list[str]) -> int:
    """Index of the first non-flag word after the binary, 0 if none."""
    skip = False
    for index, word in enumerate(words[1:], start=1):
        if skip:
            skip = False
            continue
        if word in _VALUE_OPTIONS:
            skip = True
            continue
        if not word.startswith("-"):
            return index
    return 0


def _subcommand(words: list[str]) -> str:
    """First non-flag word after the binary ('' if none)."""
    index = _subcommand_index(words)
    return words[index] if index else ""


def _missing_quiet_flag(words: list[str]) -> Optional[QuietFlag]:
    if not words:
        return None
    for entry in VERBOSE_COMMANDS:
        if words[0] != entry.binary:
            continue
        if entry.subcommands and _subcommand(words) not in entry.subcommands:
            continue
        if has_flag(words, entry.spellings):
            return None
        return entry
    return None


def find_verbose_command(command: str) -> Optional[QuietFlag]:
    """The first verbosity-table entry the command violates, if any."""
    for segment in split_segments(command):
        entry = _missing_quiet_flag(segment_words(segment))
        if entry is not None:
            return entry
    return None


def _verbose_without_quiet(ctx: RuleContext) -> Optional[str]:
    if ctx.tool_name not in _BASH_TOOLS or not ctx.command:
        return None
    entry = find_verbose_command(ctx.command)
    if entry is None:
        return None
    return "{}: {}".format(entry.binary, entry.remediation)


# ---------------------------------------------------------------------------
# Unbounded recursive scans
# ---------------------------------------------------------------------------

_BROAD_PATHS = frozenset({".", "./", "/", "~", "~/", "$HOME", "$HOME/", "*"})
_LIMIT_PIPE_RE = re.compile(r"\|\s*(?:head|tail|wc|less|more)\b")
_GREP_BOUND_FLAGS = (
    "--include", "--exclude", "--exclude-dir", "-m", "--max-count",
    "-l", "--files-with-matches", "-c", "--count", "-q", "--quiet",
)
_GREP_ARG_FLAGS = frozenset({"-e", "-f", "-m", "-A", "-B", "-C", "--regexp", "--file"})
_FIND_BOUND_FLAGS = (
    "-maxdepth", "-name", "-iname", "-path", "-ipath", "-regex", "-type",
    "-newer", "-mtime", "-mmin", "-size", "-quit", "-prune",
)
_RG_BOUND_FLAGS = ("-t", "--type", "-g", "--glob", "-m", "--max-count",
                   "-l", "--files-with-matches", "-c", "--count", "--max-depth", "-d")


def _grep_recursive(words: list[str]) -> bool:
    return has_flag(words, ("-r", "-R", "--recursive", "--dereference-recursive"))


def _positionals(words: list[str], arg_flags=frozenset()) -> list[str]:
    result = []
    skip = False
    for word in words[1:]:
        if skip:
            skip = False
            continue
        if word in arg_flags:
            skip = True
            continue
        if word.startswith("-"):
            continue
        result.append(word)
    return result


def _unbounded_grep(words: list[str]) -> bool:
    if not _grep_recursive(words) or has_flag(words, _GREP_BOUND_FLAGS):
        return False
    positionals = _positionals(words, _GREP_ARG_FLAGS)
    uses_e = any(w in ("-e", "--regexp") or w.startswith("--regexp=") for w in words)
    paths = positionals if uses_e else positionals[1:]
    if not paths:
        return True
    return all(p in _BROAD_PATHS for p in paths)


def _unbounded_find(words: list[str]) -> bool:
    if any(w in _FIND_BOUND_FLAGS for w in words):
        return False
    roots = []
    for word in words[1:]:
        if word.startswith("-") or word in ("(", "!", ")"):
            break
        roots.append(word)
    if not roots:
        return True
    return all(r in _BROAD_PATHS for r in roots)


def _unbounded_rg(words: list[str]) -> bool:
    if has_flag(words, _RG_BOUND_FLAGS):
        return False
    paths = _positionals(words, frozenset({"-e", "-f", "--regexp", "--file"}))[1:]
    return any(p in ("/", "~", "~/", "$HOME") for p in paths)


def find_unbounded_scan(command: str) -> Optional[str]:
    """Name of the unbounded recursive scanner in *command*, if any."""
    if _LIMIT_PIPE_RE.search(command):
        return None
    for segment in split_segments(command):
        words = segment_words(segment)
        if not words:
            continue
        binary = words[0]
        if binary in ("grep", "egrep", "fgrep") and _unbounded_grep(words):
            return "grep -r"
        if binary == "find" and _unbounded_find(words):
            return "find"
        if binary in ("rg", "ag") and _unbounded_rg(words):
            return binary
    return None


def _unbounded_scan(ctx: RuleContext) -> Optional[str]:
    if ctx.tool_name not in _BASH_TOOLS or not ctx.command:
        return None
    return find_unbounded_scan(ctx.command)


# ---------------------------------------------------------------------------
# PreToolUse rule set
# ---------------------------------------------------------------------------

PRE_TOOL_RULES = (
    Rule("write_size", _write_too_large, DENY,
         "Write content too large ({detail}). Split the file into smaller "
         "writes or generate it with a script.", 25000),
    Rule("notebook_size", _notebook_too_large, DENY,
         "NotebookEdit source too large ({detail}). Split the cell into "
         "smaller cells.", 12000),
    Rule("edit_size", _edit_too_large, DENY,
         "Edit replacement too large ({detail}). Use several smaller edits.", 12000),
    Rule("destructive_rm", _destructive_delete, DENY,
         "Blocked destructive command: {detail}. This would wipe the filesystem.", 0),
    Rule("remote_exec", _remote_exec, DENY,
         "Blocked remote code execution: {detail}. Download the script, "
         "inspect it, then run it explicitly.", 0),
    Rule("disk_format", _format_disk, DENY,
         "Blocked destructive command: {detail}.", 0),
    Rule("git_protected", _git_hazard, DENY,
         "Blocked git command: {detail}. This needs explicit user approval; "
         "ask the user to run it themselves.", 0),
    Rule("read_only_agent", _read_only_agent_write, DENY,
         "Blocked write in a read-only agent: {detail}. Report the change "
         "instead of making it.", 0),
    Rule("verbose_output", _verbose_without_quiet, DENY,
         "Verbose output wastes context. {detail}, then retry.", 1500),
    Rule("unbounded_scan", _unbounded_scan, DENY,
         "Unbounded recursive search ({detail}). Narrow the path, add a file "
         "type filter (--include / -name / -t) or limit results (| head -50).", 5000),
)

# Per-rule savings for the verbosity rule depend on the matched binary
def pre_tool_verdict(ctx: RuleContext) -> Verdict:
    verdict = evaluate(PRE_TOOL_RULES, ctx, default=ALLOW)
    if verdict.rule_id == "verbose_output":
        entry = find_verbose_command(ctx.command)
        if entry is not None:
            verdict = verdict._replace(
                rule_id="verbose_{}".format(entry.binary.replace("-", "_")),
                tokens_saved=entry.tokens_saved,
            )
    return verdict


# ---------------------------------------------------------------------------
# PermissionRequest rule set
# ---------------------------------------------------------------------------

READ_ONLY_COMMANDS = frozenset({
    "whoami", "pwd", "date", "uname", "hostname", "id", "uptime",
    "nproc", "arch", "echo", "true",
})

# Anything that could expand, redirect or chain: $VAR, $(..), `..`,
# globs, redirects, pipes, separators, backgrounding, newlines.
_UNSAFE_LITERAL_RE = re.compile(r"[$`*?\[\]{}<>|;&\n\\~!]")


def _read_only_literal(ctx: RuleContext) -> Optional[str]:
    if ctx.tool_name not in _BASH_TOOLS:
        return None
    command = ctx.command.strip()
    if not command or _UNSAFE_LITERAL_RE.search(command):
        return None
    words = segment_words(command)
    if not words or words[0] not in READ_ONLY_COMMANDS:
        return None
    if command.split()[0] != words[0]:
        # prefixed (sudo, env, VAR=..) or a path to a binary
        return None
    return words[0]


PERMISSION_RULES = (
    Rule("destructive_rm", _destructive_delete, DENY,
         "Auto-denied: {detail}."),
    Rule("fork_bomb", _fork_bomb, DENY,
         "Auto-denied: {detail}."),
    Rule("disk_format", _format_disk, DENY,
         "Auto-denied: {detail}."),
    Rule("remote_exec", _remote_exec, DENY,
         "Auto-denied: {detail}."),
    Rule("read_only", _read_only_literal, ALLOW,
         "Read-only command: {detail}"),
)


def permission_verdict(ctx: RuleContext) -> Verdict:
    return evaluate(PERMISSION_RULES, ctx, default=ASK)


# ---------------------------------------------------------------------------
# Secrets in tool output
# ---------------------------------------------------------------------------

SECRET_PATTERNS = (
    ("aws_access_key", re.compile(r"\bAKIA[0-9A-Z]{16}\b")),
    ("jwt", re.compile(r"\beyJ[A-Za-z0-9_-]+\.eyJ")),
    ("private_key", re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----")),
    ("api_key", re.compile(r"api[_-]?key[^\n=]{0,40}=[^\n]{0,20}?[A-Za-z0-9]{20,}",
                           re.IGNORECASE)),
)


def find_secret(text: str) -> Optional[str]:
    """Kind of the first credential-looking string in *text*, if any."""
    if not text:
        return None
    for kind, pattern in SECRET_PATTERNS:
        if pattern.search(text):
            return kind
    return None


# ---------------------------------------------------------------------------
# Read guard
# ---------------------------------------------------------------------------

READ_BLOCK_PATTERN = re.compile(
    r"node_modules/|/dist/|/build/|/vendor/|/\.next/|/target/|/__pycache__/"
    r"|\.min\.js|\.min\.css|\.bundle\.js|\.js\.map"
    r"|package-lock\.json|yarn\.lock|pnpm-lock\.yaml|Cargo\.lock"
    r"|poetry\.lock|Gemfile\.lock|composer\.lock"
)


def check_read_path(file_path: str, max_bytes: int, limit=None) -> Optional[str]:
    """Return a 'Blocked: ...' message for *file_path*, or None to allow.

    Only the path and os.stat() are consulted; file content is never read.
    A Read that already pages with ``limit`` skips the size ceiling.
    """
    if not file_path:
        return None
    m = READ_BLOCK_PATTERN.search(file_path)
    if m:
        return (
            "Blocked: {} looks like a dependency, build output, bundled/minified "
            "or lock file (matched '{}'). Read the original source instead, or "
            "use Grep to find the specific lines you need.".format(file_path, m.group(0))
        )
    if limit:
        return None
    try:
        size = os.stat(file_path).st_size
    except (OSError, ValueError):
        return None
    if size > max_bytes:
        return (
            "Blocked: {} is {:.1f}MB, above the {:.0f}MB read ceiling. Use Read "
            "with offset/limit, or Grep for the section you need.".format(
                file_path, size / (1024 * 1024), max_bytes / (1024 * 1024))
        )
    return None
