"""
Commit metadata: raw commit objects turned into CommitRecord.
"""

from __future__ import annotations
import codecs
import re
from typing import List, Optional

from .errors import CorruptObject
from .gitrepo import ObjectReader
from .models import CommitRecord, Signature

SIGNATURE_RE = re.compile(r"^(?P<name>.*?)\s*<(?P<email>[^<>]*)>\s*(?P<time>-?\d+)(?:\s+(?P<tz>[+-]\d{4}))?\s*$")

# datetime covers years 1 to 9999; one day of margin leaves room for the offset
MIN_TIME = -62135596800 + 86400
MAX_TIME = 253402300799 - 86400
MAX_OFFSET = 24 * 60 - 1


def parse_signature(value: str) -> Optional[Signature]:
    m = SIGNATURE_RE.match(value)
    if not m:
        return None
    offset = 0
    tz = m.group("tz")
    if tz:
        offset = int(tz[1:3]) * 60 + int(tz[3:5])
        if tz[0] == "-":
            offset = -offset
    # git accepts any four digits, "+9999" included
    if abs(offset) > MAX_OFFSET:
        offset = 0
    return Signature(
        name=m.group("name"),
        email=m.group("email"),
        time=min(max(int(m.group("time")), MIN_TIME), MAX_TIME),
        offset=offset,
    )


def summarize(message: str) -> str:
    """First paragraph of a message, folded onto one line."""
    lines: List[str] = []
    for line in message.lstrip().split("\n"):
        if not line.strip():
            break
        lines.append(line.strip())
    return " ".join(lines)


def _codec(name: bytes) -> str:
    try:
        return codecs.lookup(name.decode("ascii", errors="replace").strip()).name
    except LookupError:
        return "utf-8"


def parse_commit(sha: str, raw: bytes) -> CommitRecord:
    """Parse the bytes of a commit object. Only the first parent is kept."""
    head, _, body = raw.partition(b"\n\n")

    tree: Optional[str] = None
    parents: List[str] = []
    author_raw: Optional[bytes] = None
    committer_raw: Optional[bytes] = None
    encoding = "utf-8"

    for line in head.split(b"\n"):
        # continuation lines of multi-line headers (gpgsig, mergetag)
        if line.startswith(b" "):
            continue
        key, _, value = line.partition(b" ")
        if key == b"tree":
            tree = value.decode("ascii", errors="replace").strip()
        elif key == b"parent":
            parents.append(value.decode("ascii", errors="replace").strip())
        elif key == b"author" and author_raw is None:
            author_raw = value
        elif key == b"committer" and committer_raw is None:
            committer_raw = value
        elif key == b"encoding":
            encoding = _codec(value)

    if not tree:
        raise CorruptObject(sha, "missing tree")
    if author_raw is None:
        raise CorruptObject(sha, "missing author")
    author = parse_signature(author_raw.decode(encoding, errors="replace"))
    if author is None:
        raise CorruptObject(sha, "unreadable author")
    committer = None
    if committer_raw is not None:
        committer = parse_signature(committer_raw.decode(encoding, errors="replace"))

    message = body.decode(encoding, errors="replace").lstrip("\n")
    return CommitRecord(
        sha=sha,
        tree=tree,
        parent=parents[0] if parents else None,
        author=author,
        committer=committer,
        summary=summarize(message),
        message=message,
    )


def load_commit(objects: ObjectReader, rev: str) -> CommitRecord:
    """
    Look up ``rev`` and return its CommitRecord.

    Raises ObjectNotFound when nothing resolves and CorruptObject when the
    object is not a readable commit.
    """
    obj = objects.read(rev)
    if obj.kind != "commit":
        raise CorruptObject(obj.sha, f"expected a commit, found a {obj.kind}")
    return parse_commit(obj.sha, obj.data)
