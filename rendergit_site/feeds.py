"""
Atom feeds: the newest commits on HEAD, and the tagged commits.
"""

from __future__ import annotations
import logging
from contextlib import closing
from typing import Iterable, List, Optional, Tuple

from .commits import load_commit
from .config import ATOM_FEED_COMMITS
from .errors import CorruptObject, GitCommandError, ObjectNotFound
from .gitrepo import GitRepository, ObjectReader
from .models import CommitRecord, ReferenceEntry, SiteInfo
from .render import commit_page_path, format_time, format_time_z, xml

logger = logging.getLogger(__name__)


def atom_entry(record: CommitRecord, base_url: str, tag: str = "") -> str:
    out = ["<entry>\n", f"<id>{record.sha}</id>\n"]
    out.append(f"<published>{format_time_z(record.author.time)}</published>\n")
    if record.committer is not None:
        out.append(f"<updated>{format_time_z(record.committer.time)}</updated>\n")
    if record.summary:
        prefix = f"[{xml(tag)}] " if tag else ""
        out.append(f"<title>{prefix}{xml(record.summary)}</title>\n")
    out.append(
        f'<link rel="alternate" type="text/html" href="{xml(base_url)}{commit_page_path(record.sha)}" />\n'
    )
    author = record.author
    out.append(f"<author>\n<name>{xml(author.name)}</name>\n<email>{xml(author.email)}</email>\n</author>\n")

    out.append(f"<content>commit {record.sha}\n")
    if record.parent:
        out.append(f"parent {record.parent}\n")
    out.append(f"Author: {xml(author.name)} &lt;{xml(author.email)}&gt;\n")
    out.append(f"Date:   {format_time(author)}\n")
    if record.message:
        out.append(f"\n{xml(record.message)}")
    out.append("\n</content>\n</entry>\n")
    return "".join(out)


def atom_feed(site: SiteInfo, entries: Iterable[Tuple[CommitRecord, str]], base_url: str = "") -> str:
    out = [
        '<?xml version="1.0" encoding="UTF-8"?>\n',
        '<feed xmlns="http://www.w3.org/2005/Atom">\n',
        f"<title>{xml(site.stripped_name)}, branch HEAD</title>\n",
        f"<subtitle>{xml(site.description)}</subtitle>\n",
    ]
    for record, tag in entries:
        out.append(atom_entry(record, base_url, tag))
    out.append("</feed>\n")
    return "".join(out)


def head_entries(repo: GitRepository, objects: ObjectReader, head: Optional[str],
                 limit: int = ATOM_FEED_COMMITS) -> List[Tuple[CommitRecord, str]]:
    """The newest ``limit`` commits reachable from HEAD."""
    entries: List[Tuple[CommitRecord, str]] = []
    if head is None:
        return entries
    try:
        with closing(repo.walk(head, max_count=limit)) as revs:
            for sha in revs:
                entries.append((load_commit(objects, sha), ""))
    except (ObjectNotFound, CorruptObject, GitCommandError) as e:
        logger.warning("atom feed stops after %d commits: %s", len(entries), e)
    return entries


def tag_entries(refs: List[ReferenceEntry]) -> List[Tuple[CommitRecord, str]]:
    return [(ref.commit, ref.shorthand) for ref in refs if ref.is_tag]
