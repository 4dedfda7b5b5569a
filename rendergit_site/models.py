"""
Plain data records passed between the walker, the diff engine and the renderers.
"""

from __future__ import annotations
import dataclasses
import datetime as dt
from typing import List, Optional, Tuple

from .config import (
    MAX_DIFF_ADDITIONS,
    MAX_DIFF_DELETIONS,
    MAX_DIFF_DELTAS,
    MAX_DIFF_FILES,
    STATUS_LETTERS,
)


@dataclasses.dataclass(frozen=True)
class Signature:
    name: str
    email: str
    time: int    # seconds since the epoch
    offset: int  # minutes east of UTC

    @property
    def when(self) -> dt.datetime:
        tz = dt.timezone(dt.timedelta(minutes=self.offset))
        return dt.datetime.fromtimestamp(self.time, tz)


@dataclasses.dataclass(frozen=True)
class CommitRecord:
    sha: str
    tree: str
    parent: Optional[str]  # first parent only
    author: Signature
    committer: Optional[Signature]
    summary: str
    message: str


@dataclasses.dataclass
class Hunk:
    header: str
    lines: List[Tuple[str, str]] = dataclasses.field(default_factory=list)  # (origin, text)


@dataclasses.dataclass
class ChangeStat:
    old_path: str
    new_path: str
    status: str
    additions: int = 0
    deletions: int = 0
    binary: bool = False
    hunks: List[Hunk] = dataclasses.field(default_factory=list)

    @property
    def letter(self) -> str:
        return STATUS_LETTERS.get(self.status, " ")

    @property
    def changed(self) -> int:
        return self.additions + self.deletions


@dataclasses.dataclass
class CommitDiff:
    changes: List[ChangeStat]

    @property
    def files(self) -> int:
        return len(self.changes)

    @property
    def deltas(self) -> int:
        return len(self.changes)

    @property
    def additions(self) -> int:
        return sum(c.additions for c in self.changes if not c.binary)

    @property
    def deletions(self) -> int:
        return sum(c.deletions for c in self.changes if not c.binary)

    @property
    def too_large(self) -> bool:
        return (
            self.files > MAX_DIFF_FILES
            or self.deltas > MAX_DIFF_DELTAS
            or self.additions > MAX_DIFF_ADDITIONS
            or self.deletions > MAX_DIFF_DELETIONS
        )


@dataclasses.dataclass(frozen=True)
class ReferenceEntry:
    refname: str
    shorthand: str
    is_tag: bool
    commit: CommitRecord


@dataclasses.dataclass(frozen=True)
class TreeEntry:
    mode: int
    kind: str  # blob, tree or commit (submodule)
    sha: str
    size: Optional[int]
    path: str

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclasses.dataclass
class SiteInfo:
    name: str
    stripped_name: str
    description: str = ""
    clone_url: str = ""
    readme: Optional[str] = None
    license: Optional[str] = None
    submodules: Optional[str] = None
