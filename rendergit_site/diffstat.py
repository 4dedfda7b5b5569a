"""
Per-commit change statistics.

A commit is diffed against its first parent (or against nothing for a root
commit) with exact-match rename and copy detection, and the unified patch is
parsed into one ChangeStat per changed path. Line counts come from the hunk
bodies; binary entries count as files only.
"""

from __future__ import annotations
import logging
import re
from typing import List, Optional, Tuple

from .errors import DiffUnavailable, GitCommandError, ObjectNotFound
from .gitrepo import GitRepository, ObjectReader
from .models import ChangeStat, CommitDiff, CommitRecord, Hunk

logger = logging.getLogger(__name__)

HUNK_RE = re.compile(r"^@@ -\d+(?:,(\d+))? \+\d+(?:,(\d+))? @@")

_C_ESCAPES = {"a": 7, "b": 8, "t": 9, "n": 10, "v": 11, "f": 12, "r": 13, '"': 34, "\\": 92}


# ---- path helpers ------------------------------------------------------------

def unquote_path(s: str) -> str:
    """Undo git's C-style quoting of a path ("a\\tb", "\\303\\251")."""
    if len(s) < 2 or s[0] != '"' or s[-1] != '"':
        return s
    out = bytearray()
    i, end = 1, len(s) - 1
    while i < end:
        c = s[i]
        if c == "\\" and i + 1 < end:
            nxt = s[i + 1]
            if nxt in _C_ESCAPES:
                out.append(_C_ESCAPES[nxt])
                i += 2
                continue
            digits = s[i + 1:i + 4]
            if len(digits) == 3 and all(d in "01234567" for d in digits):
                out.append(int(digits, 8) & 0xFF)
                i += 4
                continue
        out += c.encode("utf-8")
        i += 1
    return out.decode("utf-8", errors="replace")


def _strip_prefix(path: str, prefix: str) -> str:
    path = unquote_path(path)
    return path[len(prefix):] if path.startswith(prefix) else path


def header_paths(rest: str) -> Tuple[str, str]:
    """Old and new path from the part of a ``diff --git`` line after the command."""
    # unchanged names give a symmetric "a/P b/P", quoted or not
    if len(rest) % 2 == 1:
        mid = len(rest) // 2
        if rest[mid] == " ":
            old = _strip_prefix(rest[:mid], "a/")
            new = _strip_prefix(rest[mid + 1:], "b/")
            if old == new:
                return old, new
    if rest.startswith('"'):
        i = 1
        while i < len(rest) and not (rest[i] == '"' and rest[i - 1] != "\\"):
            i += 1
        return _strip_prefix(rest[:i + 1], "a/"), _strip_prefix(rest[i + 1:].lstrip(), "b/")
    old, sep, new = rest.partition(" b/")
    if not sep:
        return _strip_prefix(rest, "a/"), _strip_prefix(rest, "a/")
    return _strip_prefix(old, "a/"), new


# ---- patch parsing -----------------------------------------------------------

def _read_hunk(lines: List[str], i: int) -> Tuple[Hunk, int]:
    header = lines[i]
    hunk = Hunk(header=header)
    m = HUNK_RE.match(header)
    if not m:
        return hunk, i + 1
    old_left = int(m.group(1)) if m.group(1) is not None else 1
    new_left = int(m.group(2)) if m.group(2) is not None else 1

    i += 1
    # the header counts say where the hunk ends, so content lines that look
    # like "--- a/x" or "diff --git" are never taken for headers
    while i < len(lines) and (old_left > 0 or new_left > 0):
        line = lines[i]
        origin, text = line[:1], line[1:]
        if origin == "+":
            new_left -= 1
        elif origin == "-":
            old_left -= 1
        elif origin in (" ", ""):
            origin = " "
            old_left -= 1
            new_left -= 1
        elif origin != "\\":
            break
        hunk.lines.append((origin, text))
        i += 1
    while i < len(lines) and lines[i].startswith("\\"):
        hunk.lines.append(("\\", lines[i][1:]))
        i += 1
    return hunk, i


def _apply_header(change: ChangeStat, line: str) -> None:
    if line.startswith("new file mode "):
        change.status = "added"
    elif line.startswith("deleted file mode "):
        change.status = "deleted"
    elif line.startswith("rename from "):
        change.status = "renamed"
        change.old_path = unquote_path(line[len("rename from "):])
    elif line.startswith("rename to "):
        change.new_path = unquote_path(line[len("rename to "):])
    elif line.startswith("copy from "):
        change.status = "copied"
        change.old_path = unquote_path(line[len("copy from "):])
    elif line.startswith("copy to "):
        change.new_path = unquote_path(line[len("copy to "):])
    elif line.startswith("Binary files ") and line.endswith(" differ"):
        change.binary = True
    elif line == "GIT binary patch":
        change.binary = True


def _count(change: ChangeStat) -> None:
    change.additions = change.deletions = 0
    if change.binary:
        return
    for hunk in change.hunks:
        for origin, _ in hunk.lines:
            if origin == "+":
                change.additions += 1
            elif origin == "-":
                change.deletions += 1


def _merge_typechanges(changes: List[ChangeStat]) -> List[ChangeStat]:
    # git prints a file <-> symlink change as a deletion followed by a creation
    merged: List[ChangeStat] = []
    for change in changes:
        prev = merged[-1] if merged else None
        if (
            prev is not None
            and prev.status == "deleted"
            and change.status == "added"
            and prev.old_path == change.new_path
        ):
            prev.status = "typechanged"
            prev.new_path = change.new_path
            prev.binary = prev.binary or change.binary
            prev.hunks.extend(change.hunks)
            continue
        merged.append(change)
    return merged


def parse_patch(text: str) -> List[ChangeStat]:
    """Split a unified patch into ChangeStat entries, in patch order."""
    changes: List[ChangeStat] = []
    current: Optional[ChangeStat] = None
    lines = text.split("\n")
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("diff --git "):
            old, new = header_paths(line[len("diff --git "):])
            current = ChangeStat(old_path=old, new_path=new, status="modified")
            changes.append(current)
            i += 1
        elif current is None:
            i += 1
        elif line.startswith("@@"):
            hunk, i = _read_hunk(lines, i)
            current.hunks.append(hunk)
        else:
            _apply_header(current, line)
            i += 1

    changes = _merge_typechanges(changes)
    for change in changes:
        _count(change)
    return changes


# ---- engine ------------------------------------------------------------------

def compute_diff(repo: GitRepository, objects: ObjectReader, record: CommitRecord) -> CommitDiff:
    """
    Diff ``record`` against its first parent.

    Any lookup failure aborts the whole diff with DiffUnavailable; partial
    results are never returned.
    """
    parent = record.parent
    try:
        if parent and not objects.exists(parent):
            logger.debug("parent %s of %s is not available, diffing as a root commit", parent, record.sha)
            parent = None
        patch = repo.diff_tree(record.sha, parent)
    except (GitCommandError, ObjectNotFound) as e:
        raise DiffUnavailable(record.sha, e) from e

    diff = CommitDiff(changes=parse_patch(patch))
    logger.debug(
        "%s: %d files, +%d -%d%s",
        record.sha[:8], diff.files, diff.additions, diff.deletions,
        " (too large)" if diff.too_large else "",
    )
    return diff
