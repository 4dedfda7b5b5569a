"""
History walk: log rows for every new commit and a page for every commit
that does not have one yet.

Commits come newest first. The walk stops at the cached cursor (everything
older was rendered by an earlier run) and skips the page of any commit whose
``commit/<hash>.html`` already exists, so re-running never rewrites a page.
"""

from __future__ import annotations
import dataclasses
import logging
import pathlib
from contextlib import closing
from typing import List, Optional

from . import render
from .cache import write_text
from .commits import load_commit
from .diffstat import compute_diff
from .errors import CorruptObject, DiffUnavailable, GitCommandError, ObjectNotFound, RenderGitError
from .gitrepo import GitRepository, ObjectReader
from .models import SiteInfo

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class WalkResult:
    rows: List[str] = dataclasses.field(default_factory=list)        # visible log rows
    cache_rows: List[str] = dataclasses.field(default_factory=list)  # rows for the new cache
    pages: List[str] = dataclasses.field(default_factory=list)       # hashes whose page was written
    skipped: List[str] = dataclasses.field(default_factory=list)     # hashes without diff stats
    visited: int = 0
    remaining: int = 0
    reached_cursor: bool = False
    error: Optional[RenderGitError] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


def walk_history(
    repo: GitRepository,
    objects: ObjectReader,
    head: str,
    out_dir: pathlib.Path,
    site: SiteInfo,
    cursor: Optional[str] = None,
    log_limit: Optional[int] = None,
    caching: bool = False,
) -> WalkResult:
    """
    Walk from ``head`` down to ``cursor`` (exclusive) or the root.

    ``log_limit`` bounds the rows of the visible log only; commits past it are
    counted in ``remaining`` and still get a page when they have none. A
    commit whose diff cannot be computed is skipped. A failure to read the
    history itself ends the walk and is kept in ``error``.
    """
    result = WalkResult()
    budget = log_limit
    (out_dir / "commit").mkdir(exist_ok=True)

    try:
        with closing(repo.walk(head)) as revs:
            for sha in revs:
                if cursor is not None and sha == cursor:
                    result.reached_cursor = True
                    break
                result.visited += 1

                page = out_dir / render.commit_page_path(sha)
                exists = page.exists()
                if budget == 0:
                    result.remaining += 1
                    # nothing left to show for this commit
                    if exists and not caching:
                        continue

                record = load_commit(objects, sha)
                try:
                    diff = compute_diff(repo, objects, record)
                except DiffUnavailable as e:
                    logger.warning("skipping commit %s: %s", sha, e)
                    result.skipped.append(sha)
                    continue

                row = render.log_row(record, diff)
                if budget != 0:
                    result.rows.append(row)
                    if budget is not None:
                        budget -= 1
                if caching:
                    result.cache_rows.append(row)

                if not exists:
                    write_text(page, render.commit_page(site, record, diff, relpath="../"))
                    result.pages.append(sha)
                    logger.debug("wrote %s", page)
    except (ObjectNotFound, CorruptObject, GitCommandError) as e:
        logger.warning("history walk stopped after %d commits: %s", result.visited, e)
        result.error = e

    logger.info(
        "walked %d commits: %d new pages, %d skipped%s",
        result.visited,
        len(result.pages),
        len(result.skipped),
        ", stopped at cached commit" if result.reached_cursor else "",
    )
    return result
