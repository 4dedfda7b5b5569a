"""
Exceptions raised while reading a repository and rendering its site.

Fatal errors (``RepositoryOpenError``, ``OutputError``) stop a run before any
output is touched. The others concern a single object, commit or reference and
are handled by whoever asked for it.
"""

from __future__ import annotations
from typing import List, Optional


class RenderGitError(Exception):
    """Base class for every error raised by rendergit_site."""


class ConfigError(RenderGitError):
    pass


class RepositoryOpenError(RenderGitError):
    pass


class OutputError(RenderGitError):
    pass


class GitCommandError(RenderGitError):
    def __init__(self, args: List[str], returncode: int, stderr: str = "") -> None:
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        msg = f"git {' '.join(self.command)} exited with {returncode}"
        if self.stderr:
            msg += f": {self.stderr}"
        super().__init__(msg)


class ObjectNotFound(RenderGitError):
    def __init__(self, rev: str) -> None:
        self.rev = rev
        super().__init__(f"object not found: {rev}")


class CorruptObject(RenderGitError):
    def __init__(self, sha: str, reason: str) -> None:
        self.sha = sha
        self.reason = reason
        super().__init__(f"corrupt object {sha}: {reason}")


class DiffUnavailable(RenderGitError):
    def __init__(self, sha: str, cause: Optional[BaseException] = None) -> None:
        self.sha = sha
        self.cause = cause
        msg = f"cannot compute diff for {sha}"
        if cause is not None:
            msg += f" ({cause})"
        super().__init__(msg)
