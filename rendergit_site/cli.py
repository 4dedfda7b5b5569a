"""
Command line entry points.

    rendergit-site [-c cachefile | -l commits] [-u baseurl] [-o outdir] repodir
    rendergit-site-index [-t title] [-c category] repodir...
"""

from __future__ import annotations
import argparse
import logging
import sys
from typing import List, Optional, Union

from .config import DEFAULT_MAX_HIGHLIGHT_BYTES, SiteConfig
from .errors import ConfigError, RenderGitError, RepositoryOpenError
from .gitrepo import GitRepository
from .index import DEFAULT_INDEX_TITLE, Category, IndexEntry, index_entry, render_index
from .render import bytes_human
from .site import build_site


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value!r}")
    return n


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="rendergit-site",
        description="Render a repository's log, files and refs as static HTML pages and Atom feeds",
    )
    ap.add_argument("repodir", help="Path to the repository (bare or with a work tree)")
    group = ap.add_mutually_exclusive_group()
    group.add_argument("-c", "--cache", metavar="CACHEFILE",
                       help="Cache file: only commits newer than the cached one are rendered")
    group.add_argument("-l", "--log-limit", type=positive_int, metavar="COMMITS",
                       help="Show only the newest COMMITS in log.html (commit pages are still written)")
    ap.add_argument("-u", "--base-url", default="", help="Base URL for absolute links in the Atom feeds")
    ap.add_argument("-o", "--out", default=".", help="Output directory (default: current directory)")
    ap.add_argument("--max-highlight-bytes", type=int, default=DEFAULT_MAX_HIGHLIGHT_BYTES,
                    help="Show larger files without syntax highlighting (0 to disable the limit)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log every commit")
    ap.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    try:
        config = SiteConfig(
            repo_path=args.repodir,
            out_dir=args.out,
            cache_path=args.cache,
            log_limit=args.log_limit,
            base_url=args.base_url,
            highlight_max_bytes=args.max_highlight_bytes,
        )
    except ConfigError as e:
        ap.error(str(e))

    print(f"📜 Rendering {config.repo_path} → {config.out_dir.resolve()}", file=sys.stderr)
    try:
        report = build_site(config)
    except RenderGitError as e:
        print(f"{ap.prog}: {e}", file=sys.stderr)
        return 1

    print(
        f"✓ {len(report.pages_written)} new commit pages, {report.files} files, {report.refs} refs"
        f" (highlight cap: {bytes_human(config.highlight_max_bytes) if config.highlight_max_bytes else 'unlimited'})",
        file=sys.stderr,
    )
    if report.skipped:
        print(f"⚠️  {len(report.skipped)} commits without diff statistics were skipped", file=sys.stderr)
    if report.degraded:
        print("⚠️  history walk stopped early, the cache was left unchanged", file=sys.stderr)
    return 0


# ---- index -------------------------------------------------------------------

INDEX_USAGE = "usage: rendergit-site-index [-t title] [-c category] repodir..."


def index_main(argv: Optional[List[str]] = None) -> int:
    """Print an index of the given repositories to stdout."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] in ("-h", "--help"):
        print(INDEX_USAGE, file=sys.stderr)
        return 1 if not argv else 0
    setup_logging(quiet=True)

    title = DEFAULT_INDEX_TITLE
    items: List[Union[IndexEntry, Category]] = []
    ret = 0
    i = 0
    # categories apply in command line order, so arguments are read by hand
    while i < len(argv):
        arg = argv[i]
        if arg in ("-c", "-t"):
            if i + 1 >= len(argv):
                print(f"rendergit-site-index: missing argument for {arg}", file=sys.stderr)
                return 1
            if arg == "-c":
                items.append(Category(argv[i + 1]))
            else:
                title = argv[i + 1]
            i += 2
            continue
        i += 1
        try:
            entry = index_entry(GitRepository(arg))
        except RepositoryOpenError as e:
            print(f"rendergit-site-index: {e}", file=sys.stderr)
            ret = 1
            continue
        if entry is not None:
            items.append(entry)

    sys.stdout.write(render_index(items, title))
    return ret
