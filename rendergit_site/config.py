"""
Run configuration and fixed rendering policy.
"""

from __future__ import annotations
import dataclasses
import pathlib
from typing import Optional

from .errors import ConfigError

# ---- constants ---------------------------------------------------------------

# a commit diff above any of these limits is summarized, never rendered in full
MAX_DIFF_FILES = 1000
MAX_DIFF_DELTAS = 1000
MAX_DIFF_ADDITIONS = 100000
MAX_DIFF_DELETIONS = 100000

ATOM_FEED_COMMITS = 100
DIFFSTAT_BAR_WIDTH = 78
DEFAULT_MAX_HIGHLIGHT_BYTES = 512 * 1024  # 512 KiB per file

LICENSE_FILES = ("LICENSE", "LICENSE.md", "COPYING")
README_FILES = ("README", "README.md")
SUBMODULES_FILE = ".gitmodules"

STATUS_LETTERS = {
    "added": "A",
    "copied": "C",
    "deleted": "D",
    "modified": "M",
    "renamed": "R",
    "typechanged": "T",
}


@dataclasses.dataclass
class SiteConfig:
    repo_path: pathlib.Path
    out_dir: pathlib.Path = pathlib.Path(".")
    cache_path: Optional[pathlib.Path] = None
    log_limit: Optional[int] = None
    base_url: str = ""
    highlight_max_bytes: int = DEFAULT_MAX_HIGHLIGHT_BYTES

    def __post_init__(self) -> None:
        self.repo_path = pathlib.Path(self.repo_path)
        self.out_dir = pathlib.Path(self.out_dir)
        if self.cache_path is not None:
            self.cache_path = pathlib.Path(self.cache_path)
        self.validate()

    def validate(self) -> None:
        if self.cache_path is not None and self.log_limit is not None:
            raise ConfigError("a cache file and a log limit cannot be combined")
        if self.log_limit is not None and self.log_limit <= 0:
            raise ConfigError(f"log limit must be a positive number, got {self.log_limit}")
        if self.highlight_max_bytes < 0:
            raise ConfigError("highlight limit cannot be negative")
