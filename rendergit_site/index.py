"""
An index page listing several repositories, each linking to its own site.
"""

from __future__ import annotations
import dataclasses
import logging
from typing import List, Optional, Union

from .commits import load_commit
from .errors import CorruptObject, GitCommandError, ObjectNotFound
from .gitrepo import GitRepository
from .render import format_date, percent_encode, xml

logger = logging.getLogger(__name__)

DEFAULT_INDEX_TITLE = "Repositories"


@dataclasses.dataclass(frozen=True)
class IndexEntry:
    name: str
    description: str
    last_commit: int  # author time of HEAD


@dataclasses.dataclass(frozen=True)
class Category:
    name: str


def index_entry(repo: GitRepository) -> Optional[IndexEntry]:
    """Name, description and last commit time of ``repo``; None without a HEAD commit."""
    name = repo.path.name
    if name.endswith(".git"):
        name = name[:-len(".git")]
    head = repo.head()
    if head is None:
        return None
    try:
        with repo.objects() as objects:
            record = load_commit(objects, head)
    except (ObjectNotFound, CorruptObject, GitCommandError) as e:
        logger.warning("%s: cannot read the last commit: %s", repo.path, e)
        return None
    return IndexEntry(name=name, description=repo.read_info_file("description"), last_commit=record.author.time)


def render_index(items: List[Union[IndexEntry, Category]], title: str = DEFAULT_INDEX_TITLE) -> str:
    rows = []
    for item in items:
        if isinstance(item, Category):
            rows.append(f'<tr class="category"><td colspan="3">{xml(item.name)}</td></tr>\n')
            continue
        rows.append(
            f'<tr class="item-repo"><td><a href="{percent_encode(item.name)}/log.html">{xml(item.name)}</a></td>'
            f"<td>{xml(item.description)}</td><td>{format_date(item.last_commit)}</td></tr>\n"
        )
    body = "".join(rows)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width, initial-scale=1" />
<title>{xml(title)}</title>
<link rel="stylesheet" type="text/css" href="style.css" />
</head>
<body>
<h1>{xml(title)}</h1>
<hr/>
<div id="content">
<table id="index"><thead>
<tr><td><b>Name</b></td><td><b>Description</b></td><td><b>Last commit</b></td></tr>
</thead><tbody>
{body}</tbody></table>
</div>
</body>
</html>
"""
