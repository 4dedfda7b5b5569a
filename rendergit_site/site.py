"""
One run over one repository: every page, both feeds and the cache.

The repository is opened and the output directory checked before anything is
written. The new cache is staged after the history walk and only replaces the
old one once every other output has been written.
"""

from __future__ import annotations
import dataclasses
import logging
import os
import pathlib
from contextlib import ExitStack
from typing import Iterable, List, Optional

from . import render
from .cache import CacheState, CacheWriter, read_cache, write_text
from .config import LICENSE_FILES, README_FILES, SUBMODULES_FILE, SiteConfig
from .errors import GitCommandError, ObjectNotFound, OutputError
from .feeds import atom_feed, head_entries, tag_entries
from .gitrepo import GitRepository, ObjectReader
from .models import SiteInfo
from .refs import collect_references
from .walker import WalkResult, walk_history

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class BuildReport:
    head: Optional[str]
    pages_written: List[str]
    skipped: List[str]
    remaining: int = 0
    files: int = 0
    refs: int = 0
    degraded: bool = False
    cache_updated: bool = False


# ---- repository metadata -----------------------------------------------------

def _first_blob(objects: ObjectReader, names: Iterable[str]) -> Optional[str]:
    for name in names:
        try:
            obj = objects.read(f"HEAD:{name}")
        except ObjectNotFound:
            continue
        if obj.kind == "blob":
            return name
    return None


def load_site_info(repo: GitRepository, objects: ObjectReader) -> SiteInfo:
    name = repo.path.name
    stripped = name[:-len(".git")] if name.endswith(".git") else name
    return SiteInfo(
        name=name,
        stripped_name=stripped,
        description=repo.read_info_file("description"),
        clone_url=repo.read_info_file("url"),
        readme=_first_blob(objects, README_FILES),
        license=_first_blob(objects, LICENSE_FILES),
        submodules=_first_blob(objects, (SUBMODULES_FILE,)),
    )


def prepare_output(out_dir: pathlib.Path) -> pathlib.Path:
    out_dir = pathlib.Path(out_dir)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(f"{out_dir}: cannot create output directory: {e.strerror}") from e
    if not os.access(out_dir, os.W_OK | os.X_OK):
        raise OutputError(f"{out_dir}: output directory is not writable")
    return out_dir


# ---- pages -------------------------------------------------------------------

def write_readme(objects: ObjectReader, site: SiteInfo, out_dir: pathlib.Path) -> None:
    if not site.readme:
        return
    obj = objects.read(f"HEAD:{site.readme}")
    page = render.page_header(site, "README", "") + render.readme_body(site.readme, obj.data) + render.page_footer()
    write_text(out_dir / "README.html", page)


def write_log(
    repo: GitRepository,
    objects: ObjectReader,
    site: SiteInfo,
    out_dir: pathlib.Path,
    head: Optional[str],
    config: SiteConfig,
    state: CacheState,
    cache: Optional[CacheWriter],
) -> WalkResult:
    result = WalkResult()
    if head is not None:
        result = walk_history(
            repo,
            objects,
            head,
            out_dir,
            site,
            cursor=state.cursor,
            log_limit=config.log_limit,
            caching=cache is not None,
        )

    # rows from earlier runs follow the new ones, unless the cached commit
    # was never met: then the history changed and everything was re-rendered
    previous = b""
    if state.cursor is not None:
        if result.reached_cursor or result.degraded:
            previous = state.body
        else:
            logger.warning("cached commit %s is not reachable from HEAD, rebuilding the log", state.cursor)

    parts = [render.page_header(site, "Log", ""), render.LOG_TABLE_OPEN]
    parts.extend(result.rows)
    if previous:
        parts.append(previous.decode("utf-8", errors="replace"))
    if config.log_limit is not None and result.remaining:
        parts.append(render.remaining_row(result.remaining))
    parts.append(render.LOG_TABLE_CLOSE)
    parts.append(render.page_footer())
    write_text(out_dir / "log.html", "".join(parts))

    if cache is not None and head is not None:
        if result.degraded:
            logger.warning("history walk incomplete, keeping the previous cache")
        else:
            cache.stage(head, result.cache_rows, previous)
    return result


def write_files(
    repo: GitRepository,
    objects: ObjectReader,
    site: SiteInfo,
    out_dir: pathlib.Path,
    head: Optional[str],
    max_bytes: int,
) -> int:
    """files.html plus one page per blob of HEAD. Returns the number of blobs."""
    parts = [render.page_header(site, "Files", ""), render.FILES_TABLE_OPEN]
    count = 0
    entries = []
    if head is not None:
        try:
            entries = repo.tree_entries(head)
        except GitCommandError as e:
            logger.warning("cannot list the files of %s: %s", head, e)

    for entry in entries:
        if entry.kind == "commit":
            parts.append(render.submodule_row(entry, site.submodules))
            continue
        if entry.kind != "blob":
            continue
        try:
            obj = objects.read(entry.sha)
        except ObjectNotFound as e:
            logger.warning("skipping %s: %s", entry.path, e)
            continue
        page, lines = render.blob_page(site, entry.path, obj.data, max_bytes)
        target = out_dir / render.file_page_path(entry.path)
        target.parent.mkdir(parents=True, exist_ok=True)
        write_text(target, page)
        parts.append(render.file_row(entry, lines, len(obj.data)))
        count += 1

    parts.append(render.FILES_TABLE_CLOSE)
    parts.append(render.page_footer())
    write_text(out_dir / "files.html", "".join(parts))
    return count


# ---- entry point -------------------------------------------------------------

def build_site(config: SiteConfig) -> BuildReport:
    """
    Render the repository in ``config.repo_path`` into ``config.out_dir``.

    Raises RepositoryOpenError or OutputError before writing anything when the
    repository cannot be opened or the output directory cannot be written.
    """
    repo = GitRepository(config.repo_path)
    out_dir = prepare_output(config.out_dir)
    head = repo.head()
    if head is None:
        logger.warning("%s has no HEAD commit, rendering an empty history", repo.path)

    caching = config.cache_path is not None and head is not None
    state = read_cache(config.cache_path) if caching else CacheState(cursor=None)

    try:
        with ExitStack() as stack:
            objects = stack.enter_context(repo.objects())
            cache = stack.enter_context(CacheWriter(config.cache_path)) if caching else None

            site = load_site_info(repo, objects)
            write_readme(objects, site, out_dir)
            walk = write_log(repo, objects, site, out_dir, head, config, state, cache)
            files = write_files(repo, objects, site, out_dir, head, config.highlight_max_bytes)

            refs = collect_references(repo, objects)
            write_text(
                out_dir / "refs.html",
                render.page_header(site, "Refs", "") + render.refs_tables(refs) + render.page_footer(),
            )
            write_text(out_dir / "atom.xml", atom_feed(site, head_entries(repo, objects, head), config.base_url))
            write_text(out_dir / "tags.xml", atom_feed(site, tag_entries(refs), config.base_url))
            write_text(out_dir / "style.css", render.stylesheet())

            cache_updated = False
            if cache is not None and cache.staged:
                cache.commit()
                cache_updated = True
    except OSError as e:
        raise OutputError(f"write error: {e}") from e

    return BuildReport(
        head=head,
        pages_written=walk.pages,
        skipped=walk.skipped,
        remaining=walk.remaining,
        files=files,
        refs=len(refs),
        degraded=walk.degraded,
        cache_updated=cache_updated,
    )
