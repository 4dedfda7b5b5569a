"""
HTML fragments for every page of the site.

Nothing here touches the repository or the filesystem: callers pass records in
and get strings back. ``relpath`` is the prefix leading from the page being
rendered back to the output root ("" for top-level pages, "../" for commit
pages, one "../" per directory level for file pages).
"""

from __future__ import annotations
import datetime as dt
import html
import stat
from typing import List, Optional, Tuple
from urllib.parse import quote

import markdown
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.util import ClassNotFound

from .config import DIFFSTAT_BAR_WIDTH
from .models import ChangeStat, CommitDiff, CommitRecord, ReferenceEntry, Signature, SiteInfo, TreeEntry

DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "sane_lists"]


# ---- encoding & formatting ---------------------------------------------------

def xml(s: str) -> str:
    return html.escape(s, quote=True)


def percent_encode(path: str) -> str:
    return quote(path, safe="/,")


def bytes_human(n: int) -> str:
    units = ["B", "KiB", "MiB", "GiB", "TiB"]
    f = float(n)
    i = 0
    while f >= 1024.0 and i < len(units) - 1:
        f /= 1024.0
        i += 1
    return f"{int(f)} {units[i]}" if i == 0 else f"{f:.1f} {units[i]}"


def format_time(sig: Signature) -> str:
    """RFC 2822 style date in the signer's own offset."""
    when = sig.when
    sign = "-" if sig.offset < 0 else "+"
    hours, minutes = divmod(abs(sig.offset), 60)
    return (
        f"{DAYS[when.weekday()]}, {when.day:2d} {MONTHS[when.month - 1]} {when.year} "
        f"{when:%H:%M:%S} {sign}{hours:02d}{minutes:02d}"
    )


def format_time_z(ts: int) -> str:
    return dt.datetime.fromtimestamp(ts, dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_date(ts: int) -> str:
    return dt.datetime.fromtimestamp(ts, dt.timezone.utc).strftime("%Y-%m-%d")


def is_binary(data: bytes) -> bool:
    return b"\0" in data[:8000]


def line_count(data: bytes) -> int:
    n = data.count(b"\n")
    if data and not data.endswith(b"\n"):
        n += 1
    return n


def file_page_path(path: str) -> str:
    return f"file/{path}.html"


def commit_page_path(sha: str) -> str:
    return f"commit/{sha}.html"


def depth_relpath(path: str) -> str:
    """Prefix leading from ``path`` (relative to the output root) back to the root."""
    return "../" * path.count("/")


# ---- page chrome -------------------------------------------------------------

def page_header(site: SiteInfo, title: str, relpath: str) -> str:
    full_title = " - ".join(p for p in (title, site.stripped_name, site.description) if p)
    name = xml(site.name)
    nav = [
        f'<a href="{relpath}log.html">Log</a>',
        f'<a href="{relpath}files.html">Files</a>',
        f'<a href="{relpath}refs.html">Refs</a>',
    ]
    if site.submodules:
        nav.append(f'<a href="{relpath}{percent_encode(file_page_path(site.submodules))}">Submodules</a>')
    if site.readme:
        nav.append(f'<a href="{relpath}README.html">README</a>')
    if site.license:
        nav.append(f'<a href="{relpath}{percent_encode(file_page_path(site.license))}">LICENSE</a>')

    nav_html = " | ".join(nav)
    clone = ""
    if site.clone_url:
        url = xml(site.clone_url)
        clone = f'<tr><td></td><td class="url">git clone <a href="{url}">{url}</a></td></tr>\n'

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width, initial-scale=1" />
<title>{xml(full_title)}</title>
<link rel="stylesheet" type="text/css" href="{relpath}style.css" />
<link rel="alternate" type="application/atom+xml" title="{name} Atom Feed" href="{relpath}atom.xml" />
<link rel="alternate" type="application/atom+xml" title="{name} Atom Feed (tags)" href="{relpath}tags.xml" />
</head>
<body>
<table id="header">
<tr><td></td><td><h1>{xml(site.stripped_name)}</h1><span class="desc">{xml(site.description)}</span></td></tr>
{clone}<tr><td></td><td class="nav">{nav_html}</td></tr>
</table>
<hr/>
<div id="content">
"""


def page_footer() -> str:
    return "</div>\n</body>\n</html>\n"


# ---- log ---------------------------------------------------------------------

LOG_TABLE_OPEN = (
    '<table id="log"><thead>\n<tr><td><b>Date</b></td><td><b>Commit message</b></td>'
    '<td class="num"><b>Files</b></td><td class="num"><b>+</b></td>'
    '<td class="num"><b>-</b></td></tr>\n</thead><tbody>\n'
)
LOG_TABLE_CLOSE = "</tbody></table>"


def log_row(record: CommitRecord, diff: CommitDiff, relpath: str = "") -> str:
    summary = ""
    if record.summary:
        summary = f'<a href="{relpath}{commit_page_path(record.sha)}">{xml(record.summary)}</a>'
    return (
        f"<tr><td>{format_date(record.author.time)}</td>"
        f"<td>{summary}</td>"
        f'<td class="num">{diff.files}</td>'
        f'<td class="num">+{diff.additions}</td>'
        f'<td class="num">-{diff.deletions}</td></tr>\n'
    )


def remaining_row(count: int) -> str:
    return f'<tr><td></td><td colspan="4">{count} more commits remaining, fetch the repository</td></tr>\n'


# ---- commit page -------------------------------------------------------------

def commit_info(record: CommitRecord, relpath: str) -> str:
    out = [f'<b>commit</b> <a href="{relpath}{commit_page_path(record.sha)}">{record.sha}</a>\n']
    if record.parent:
        out.append(f'<b>parent</b> <a href="{relpath}{commit_page_path(record.parent)}">{record.parent}</a>\n')
    author = record.author
    email = xml(author.email)
    out.append(f'<b>Author:</b> {xml(author.name)} &lt;<a href="mailto:{email}">{email}</a>&gt;\n')
    out.append(f"<b>Date:</b>   {format_time(author)}\n")
    if record.message:
        out.append(f"\n{xml(record.message)}\n")
    return "".join(out)


def _bar(change: ChangeStat) -> Tuple[int, int]:
    add, dels = change.additions, change.deletions
    changed = add + dels
    if changed > DIFFSTAT_BAR_WIDTH:
        if add:
            add = int(DIFFSTAT_BAR_WIDTH / changed * add) + 1
        if dels:
            dels = int(DIFFSTAT_BAR_WIDTH / changed * dels) + 1
    return add, dels


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def _change_label(change: ChangeStat) -> str:
    label = xml(change.old_path)
    if change.old_path != change.new_path:
        label += f" -&gt; {xml(change.new_path)}"
    return label


def diffstat(diff: CommitDiff) -> str:
    rows = []
    for i, change in enumerate(diff.changes):
        letter = change.letter
        cls = f' class="{letter}"' if letter != " " else ""
        add, dels = _bar(change)
        rows.append(
            f"<tr><td{cls}>{letter}</td>"
            f'<td><a href="#h{i}">{_change_label(change)}</a></td>'
            f'<td> | </td><td class="num">{change.changed}</td>'
            f'<td><span class="i">{"+" * add}</span><span class="d">{"-" * dels}</span></td></tr>\n'
        )
    summary = (
        f"{_plural(diff.files, 'file')} changed, "
        f"{_plural(diff.additions, 'insertion')}(+), "
        f"{_plural(diff.deletions, 'deletion')}(-)"
    )
    return f'<b>Diffstat:</b>\n<table id="diffstat">\n{"".join(rows)}</table>\n<p>{summary}</p>\n'


def diff_body(diff: CommitDiff, relpath: str) -> str:
    out = ["<pre>"]
    for i, change in enumerate(diff.changes):
        old_href = relpath + percent_encode(file_page_path(change.old_path))
        new_href = relpath + percent_encode(file_page_path(change.new_path))
        out.append(
            f'<b>diff --git a/<a id="h{i}" href="{old_href}">{xml(change.old_path)}</a> '
            f'b/<a href="{new_href}">{xml(change.new_path)}</a></b>\n'
        )
        if change.binary:
            out.append("Binary files differ.\n")
            continue
        for j, hunk in enumerate(change.hunks):
            out.append(f'<a href="#h{i}-{j}" id="h{i}-{j}" class="h">{xml(hunk.header)}</a>\n')
            for k, (origin, text) in enumerate(hunk.lines):
                if origin == "+":
                    out.append(f'<a href="#h{i}-{j}-{k}" id="h{i}-{j}-{k}" class="i">+{xml(text)}\n</a>')
                elif origin == "-":
                    out.append(f'<a href="#h{i}-{j}-{k}" id="h{i}-{j}-{k}" class="d">-{xml(text)}\n</a>')
                else:
                    out.append(f"{origin}{xml(text)}\n")
    out.append("</pre>\n")
    return "".join(out)


def commit_page(site: SiteInfo, record: CommitRecord, diff: CommitDiff, relpath: str = "../") -> str:
    out = [page_header(site, record.summary, relpath), "<pre>", commit_info(record, relpath), "</pre>\n"]
    if diff.changes:
        if diff.too_large:
            out.append('<p class="warn">Diff is too large, output suppressed.</p>\n')
        else:
            out.append(diffstat(diff))
            out.append("<hr/>\n")
            out.append(diff_body(diff, relpath))
    out.append(page_footer())
    return "".join(out)


# ---- files -------------------------------------------------------------------

FILES_TABLE_OPEN = (
    '<table id="files"><thead>\n<tr><td><b>Mode</b></td><td><b>Name</b></td>'
    '<td class="num"><b>Size</b></td></tr>\n</thead><tbody>\n'
)
FILES_TABLE_CLOSE = "</tbody></table>\n"


def file_row(entry: TreeEntry, lines: int, size: int, relpath: str = "") -> str:
    href = relpath + percent_encode(file_page_path(entry.path))
    amount = f"{lines}L" if lines > 0 else f"{size}B"
    return (
        f"<tr><td>{stat.filemode(entry.mode)}</td>"
        f'<td><a href="{href}">{xml(entry.path)}</a></td>'
        f'<td class="num">{amount}</td></tr>\n'
    )


def submodule_row(entry: TreeEntry, submodules: Optional[str], relpath: str = "") -> str:
    name = xml(entry.path)
    if submodules:
        name = f'<a href="{relpath}{percent_encode(file_page_path(submodules))}">{name}</a>'
    return f'<tr><td>m---------</td><td>{name} @ {entry.sha[:7]}</td><td class="num"></td></tr>\n'


def highlight_blob(filename: str, text: str, max_bytes: int) -> str:
    lexer = None
    if not max_bytes or len(text) <= max_bytes:
        try:
            lexer = get_lexer_for_filename(filename, stripnl=False)
        except ClassNotFound:
            lexer = None
    if lexer is None:
        lexer = TextLexer(stripnl=False)
    formatter = HtmlFormatter(linenos="inline", lineanchors="l", anchorlinenos=True, cssclass="highlight")
    return highlight(text, lexer, formatter)


def blob_page(site: SiteInfo, path: str, data: bytes, max_bytes: int) -> Tuple[str, int]:
    """Return the page for one file and its line count (0 for binary files)."""
    relpath = depth_relpath(file_page_path(path))
    name = path.rsplit("/", 1)[-1]
    out = [
        page_header(site, name, relpath),
        f'<p>{xml(name)} <span class="desc">({bytes_human(len(data))})</span></p>\n',
    ]
    lines = 0
    if is_binary(data):
        out.append("<p>Binary file.</p>\n")
    else:
        lines = line_count(data)
        if data:
            out.append(highlight_blob(name, data.decode("utf-8", errors="replace"), max_bytes))
    out.append(page_footer())
    return "".join(out), lines


# ---- refs --------------------------------------------------------------------

def refs_tables(refs: List[ReferenceEntry]) -> str:
    out: List[str] = []
    for is_tag, title, table_id in ((False, "Branches", "branches"), (True, "Tags", "tags")):
        group = [r for r in refs if r.is_tag == is_tag]
        if not group:
            continue
        out.append(
            f'<h2>{title}</h2><table id="{table_id}"><thead>\n<tr><td><b>Name</b></td>'
            "<td><b>Last commit date</b></td><td><b>Author</b></td>\n</tr>\n</thead><tbody>\n"
        )
        for ref in group:
            author = ref.commit.author
            out.append(
                f"<tr><td>{xml(ref.shorthand)}</td><td>{format_date(author.time)}</td>"
                f"<td>{xml(author.name)}</td></tr>\n"
            )
        out.append("</tbody></table><br/>\n")
    return "".join(out)


# ---- readme ------------------------------------------------------------------

def readme_body(filename: str, data: bytes) -> str:
    text = data.decode("utf-8", errors="replace")
    if filename.lower().endswith(".md"):
        return f'<div class="md">{markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)}</div>\n'
    return f'<pre id="readme">{xml(text)}</pre>\n'


# ---- stylesheet --------------------------------------------------------------

BASE_CSS = """\
:root {
  --muted:#666; --line:#eee; --brand:#0366d6;
  --plus:#0a7b34; --minus:#a01515; --warn:#8a6d3b;
}
body { margin: 1rem; font-family: -apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Helvetica,Arial; line-height:1.45; }
code, pre { font-family: ui-monospace,SFMono-Regular,Menlo,Monaco,Consolas,'Liberation Mono','Courier New', monospace; }
a { color: var(--brand); text-decoration: none; }
a:hover { text-decoration: underline; }
h1 { margin: 0; font-size: 1.3rem; }
.desc { color: var(--muted); }
hr { border: 0; border-top: 1px solid var(--line); }
table td { padding: 0 .4em; }
#log tr:hover td, #files tr:hover td, #branches tr:hover td, #tags tr:hover td { background: #f6f8fa; }
td.num { text-align: right; }
#diffstat td.A, #diffstat td.M, #diffstat td.D, #diffstat td.R, #diffstat td.C, #diffstat td.T { font-weight: bold; }
.i, #diffstat td.A { color: var(--plus); }
.d, #diffstat td.D { color: var(--minus); }
#diffstat td.R, #diffstat td.C { color: var(--brand); }
.h { color: var(--muted); }
.warn { color: var(--warn); }
pre a.i, pre a.d, pre a.h { text-decoration: none; }
.highlight { overflow-x: auto; }
"""


def stylesheet() -> str:
    formatter = HtmlFormatter()
    return BASE_CSS + "\n/* Pygments */\n" + formatter.get_style_defs(".highlight") + "\n"
