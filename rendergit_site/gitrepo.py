"""
Repository access through the ``git`` command line.

Everything that reads the object store or the revision graph goes through
``GitRepository`` and ``ObjectReader``; the rest of the package only sees
hashes, raw object bytes and patch text.
"""

from __future__ import annotations
import dataclasses
import logging
import os
import pathlib
import subprocess
from typing import Dict, Iterator, List, Optional

from .errors import GitCommandError, ObjectNotFound, RenderGitError, RepositoryOpenError
from .models import TreeEntry

logger = logging.getLogger(__name__)

# do not quote non-ASCII paths, do not require the repository to be ours
GIT_CONFIG_ARGS = ["-c", "safe.directory=*", "-c", "core.quotePath=false"]

DIFF_ARGS = [
    "diff-tree",
    "-r",
    "-p",
    "--no-color",
    "--no-ext-diff",
    "--no-commit-id",
    "--src-prefix=a/",
    "--dst-prefix=b/",
    # gitlink changes are neither files nor lines
    "--ignore-submodules=all",
    # exact content matches only, no similarity heuristic
    "--find-renames=100%",
    "--find-copies=100%",
]

_INHERITED_GIT_VARS = ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE", "GIT_OBJECT_DIRECTORY", "GIT_NAMESPACE")


# ---- process helpers ---------------------------------------------------------

def run(cmd: List[str], cwd: str | None = None, env: Optional[Dict[str, str]] = None,
        input: bytes | None = None) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, cwd=cwd, env=env, input=input, capture_output=True, check=False)


def git_env(ceiling: Optional[pathlib.Path] = None) -> Dict[str, str]:
    """Environment that keeps user and system git configuration out of the output."""
    env = dict(os.environ)
    for var in _INHERITED_GIT_VARS:
        env.pop(var, None)
    env["GIT_CONFIG_NOSYSTEM"] = "1"
    env["GIT_CONFIG_GLOBAL"] = os.devnull
    if ceiling is not None:
        env["GIT_CEILING_DIRECTORIES"] = str(ceiling)
    return env


def decode(b: bytes) -> str:
    return b.decode("utf-8", errors="replace")


# ---- repository --------------------------------------------------------------

class GitRepository:
    """An opened repository. Opening never searches parent directories."""

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = pathlib.Path(path).resolve()
        if not self.path.is_dir():
            raise RepositoryOpenError(f"{path}: cannot open repository")
        self._env = git_env(self.path.parent)
        try:
            cp = self.git(["rev-parse", "--absolute-git-dir"])
        except (GitCommandError, OSError) as e:
            raise RepositoryOpenError(f"{path}: cannot open repository") from e
        git_dir = pathlib.Path(decode(cp.stdout).strip()).resolve()
        if git_dir != self.path and not (self.path / ".git").exists():
            raise RepositoryOpenError(f"{path}: cannot open repository")
        self.git_dir = git_dir
        logger.debug("opened repository %s (git dir %s)", self.path, self.git_dir)

    def __repr__(self) -> str:
        return f"GitRepository({str(self.path)!r})"

    def _command(self, args: List[str]) -> List[str]:
        return ["git", *GIT_CONFIG_ARGS, *args]

    def git(self, args: List[str], check: bool = True, input: bytes | None = None) -> subprocess.CompletedProcess:
        cp = run(self._command(args), cwd=str(self.path), env=self._env, input=input)
        if check and cp.returncode != 0:
            raise GitCommandError(args, cp.returncode, decode(cp.stderr))
        return cp

    def resolve(self, rev: str) -> Optional[str]:
        """Return the commit hash ``rev`` names, or None."""
        cp = self.git(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"], check=False)
        if cp.returncode != 0:
            return None
        return decode(cp.stdout).strip() or None

    def head(self) -> Optional[str]:
        return self.resolve("HEAD")

    def walk(self, start: str, max_count: Optional[int] = None) -> Iterator[str]:
        """
        Yield commit hashes reachable from ``start``, newest first.

        The revision list is streamed; a failure of the underlying walk is
        raised as GitCommandError after the hashes produced so far.
        """
        args = ["rev-list"]
        if max_count is not None:
            args.append(f"--max-count={max_count}")
        args += [start, "--"]
        proc = subprocess.Popen(
            self._command(args),
            cwd=str(self.path),
            env=self._env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        try:
            for line in proc.stdout:
                sha = line.strip().decode("ascii")
                if sha:
                    yield sha
            stderr = proc.stderr.read()
            if proc.wait() != 0:
                raise GitCommandError(args, proc.returncode, decode(stderr))
        finally:
            if proc.poll() is None:
                proc.kill()
            proc.wait()
            proc.stdout.close()
            proc.stderr.close()

    def objects(self) -> "ObjectReader":
        return ObjectReader(self)

    def diff_tree(self, sha: str, parent: Optional[str] = None) -> str:
        """Unified patch between ``parent`` (or nothing) and ``sha``."""
        args = list(DIFF_ARGS)
        if parent:
            args += [parent, sha]
        else:
            args += ["--root", sha]
        return decode(self.git(args).stdout)

    def tree_entries(self, rev: str) -> List[TreeEntry]:
        """Recursive listing of the tree of ``rev`` in tree order."""
        out = self.git(["ls-tree", "-r", "-l", "-z", "--full-tree", rev]).stdout
        entries: List[TreeEntry] = []
        for rec in out.split(b"\0"):
            if not rec:
                continue
            meta, _, path = rec.partition(b"\t")
            mode, kind, sha, size = meta.decode("ascii").split()
            entries.append(
                TreeEntry(
                    mode=int(mode, 8),
                    kind=kind,
                    sha=sha,
                    size=int(size) if size.isdigit() else None,
                    path=decode(path),
                )
            )
        return entries

    def references(self) -> List[str]:
        """Full names of all branches and tags."""
        out = self.git(["for-each-ref", "--format=%(refname)", "refs/heads", "refs/tags"]).stdout
        return [line for line in decode(out).splitlines() if line]

    def read_info_file(self, name: str) -> str:
        """First line of ``name`` in the repository directory, or in ``.git``."""
        for candidate in (self.path / name, self.path / ".git" / name):
            try:
                with open(candidate, "r", encoding="utf-8", errors="replace") as f:
                    return f.readline().rstrip("\r\n")
            except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
                continue
        return ""


# ---- object lookup -----------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class GitObject:
    sha: str
    kind: str
    data: bytes


class ObjectReader:
    """
    Object lookups served by one ``git cat-file --batch`` process.

    Use it as a context manager so the process is gone when the work it was
    opened for is done.
    """

    def __init__(self, repo: GitRepository) -> None:
        self._args = ["cat-file", "--batch"]
        self._proc: Optional[subprocess.Popen] = subprocess.Popen(
            repo._command(self._args),
            cwd=str(repo.path),
            env=repo._env,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )

    def __enter__(self) -> "ObjectReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _broken(self, why: str) -> GitCommandError:
        rc = self._proc.poll() if self._proc is not None else None
        return GitCommandError(self._args, -1 if rc is None else rc, why)

    def read(self, rev: str) -> GitObject:
        """Look up ``rev`` (a hash or any revision expression)."""
        if self._proc is None:
            raise RenderGitError("object reader is closed")
        if not rev or "\n" in rev:
            raise ObjectNotFound(rev)
        try:
            self._proc.stdin.write(rev.encode("utf-8") + b"\n")
            self._proc.stdin.flush()
            header = self._proc.stdout.readline()
        except OSError as e:
            raise self._broken(str(e)) from e
        if not header:
            raise self._broken("unexpected end of output")

        fields = header.decode("utf-8", errors="replace").split()
        if not fields or fields[-1] in ("missing", "ambiguous"):
            raise ObjectNotFound(rev)
        if len(fields) != 3 or not fields[2].isdigit():
            raise self._broken(f"malformed header {header!r}")

        sha, kind, size = fields[0], fields[1], int(fields[2])
        data = self._proc.stdout.read(size)
        self._proc.stdout.read(1)  # trailing LF
        if len(data) != size:
            raise self._broken(f"short read for {sha}")
        return GitObject(sha=sha, kind=kind, data=data)

    def exists(self, rev: str) -> bool:
        try:
            self.read(rev)
        except ObjectNotFound:
            return False
        return True

    def close(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None:
            return
        try:
            proc.stdin.close()
        except OSError:
            pass
        try:
            proc.wait(timeout=10)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
        proc.stdout.close()
