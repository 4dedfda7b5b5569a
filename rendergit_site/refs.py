"""
Branches and tags resolved to the commits they point at.
"""

from __future__ import annotations
import logging
from typing import List

from .commits import load_commit
from .errors import CorruptObject, GitCommandError, ObjectNotFound
from .gitrepo import GitRepository, ObjectReader
from .models import ReferenceEntry

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "refs/heads/"
TAG_PREFIX = "refs/tags/"


def shorthand(refname: str) -> str:
    for prefix in (BRANCH_PREFIX, TAG_PREFIX):
        if refname.startswith(prefix):
            return refname[len(prefix):]
    return refname


def sort_key(ref: ReferenceEntry):
    """Branches before tags, then newest author time, then name."""
    return (ref.is_tag, -ref.commit.author.time, ref.shorthand)


def sort_references(refs: List[ReferenceEntry]) -> List[ReferenceEntry]:
    return sorted(refs, key=sort_key)


def collect_references(repo: GitRepository, objects: ObjectReader) -> List[ReferenceEntry]:
    """
    All branches and tags, peeled to commits and sorted by ``sort_key``.

    A reference that does not lead to a readable commit is left out.
    """
    entries: List[ReferenceEntry] = []
    for refname in repo.references():
        if not refname.startswith((BRANCH_PREFIX, TAG_PREFIX)):
            continue
        try:
            commit = load_commit(objects, f"{refname}^{{commit}}")
        except (ObjectNotFound, CorruptObject, GitCommandError) as e:
            logger.warning("skipping reference %s: %s", refname, e)
            continue
        entries.append(
            ReferenceEntry(
                refname=refname,
                shorthand=shorthand(refname),
                is_tag=refname.startswith(TAG_PREFIX),
                commit=commit,
            )
        )
    return sort_references(entries)
