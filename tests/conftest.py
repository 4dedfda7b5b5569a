import os
import subprocess
from pathlib import Path

import pytest

from rendergit_site.models import CommitRecord, Signature, SiteInfo

BASE_TIME = 1700000000


def git_test_env():
    env = dict(os.environ)
    for var in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE"):
        env.pop(var, None)
    env["GIT_CONFIG_NOSYSTEM"] = "1"
    env["GIT_CONFIG_GLOBAL"] = os.devnull
    return env


class RepoBuilder:
    """A throwaway repository with a work tree and a predictable clock."""

    def __init__(self, path: Path):
        self.path = path
        self.path.mkdir(parents=True, exist_ok=True)
        self.clock = BASE_TIME
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")
        self.git("config", "user.name", "Test User")
        self.git("config", "user.email", "test@example.com")

    def git(self, *args, env=None, input=None):
        cp = subprocess.run(
            ["git", *args],
            cwd=self.path,
            env=env or git_test_env(),
            input=input,
            capture_output=True,
            check=True,
        )
        return cp.stdout.decode("utf-8").strip()

    def raw_commit(self, author, message="raw commit\n"):
        """Write a commit object by hand on top of HEAD and move the branch to it."""
        raw = (
            f"tree {self.rev('HEAD^{tree}')}\n"
            f"parent {self.rev('HEAD')}\n"
            f"author {author}\n"
            f"committer {author}\n"
            f"\n{message}"
        ).encode("utf-8")
        sha = self.git("hash-object", "-t", "commit", "--literally", "-w", "--stdin", input=raw)
        self.git("update-ref", "refs/heads/main", sha)
        return sha

    def gitlink(self, path, sha, message):
        """Commit a submodule entry pointing at ``sha`` without a checkout."""
        self.git("update-index", "--add", "--cacheinfo", f"160000,{sha},{path}")
        self.git("commit", "-q", "-m", message)
        return self.rev("HEAD")

    def write(self, name, content):
        target = self.path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content)

    def remove(self, name):
        (self.path / name).unlink()

    def commit(self, message, files=None, author="Test User", when=None):
        for name, content in (files or {}).items():
            self.write(name, content)
        self.git("add", "-A")
        self.clock += 60
        ts = self.clock if when is None else when
        env = git_test_env()
        env["GIT_AUTHOR_DATE"] = f"{ts} +0000"
        env["GIT_COMMITTER_DATE"] = f"{ts} +0000"
        env["GIT_AUTHOR_NAME"] = author
        self.git("commit", "-q", "--allow-empty", "-m", message, env=env)
        return self.rev("HEAD")

    def tag(self, name, rev="HEAD", message=None):
        if message is None:
            self.git("tag", name, rev)
        else:
            self.git("tag", "-a", name, "-m", message, rev)

    def branch(self, name, rev="HEAD"):
        self.git("branch", name, rev)

    def rev(self, rev):
        return self.git("rev-parse", rev)


@pytest.fixture
def repo(tmp_path):
    return RepoBuilder(tmp_path / "repo")


@pytest.fixture
def out_dir(tmp_path):
    return tmp_path / "site"


@pytest.fixture
def site_info():
    return SiteInfo(name="demo.git", stripped_name="demo", description="A demo repository")


def make_record(sha="a" * 40, parent=None, summary="Add feature", message=None, name="Ann", time=BASE_TIME):
    author = Signature(name=name, email="ann@example.com", time=time, offset=0)
    return CommitRecord(
        sha=sha,
        tree="b" * 40,
        parent=parent,
        author=author,
        committer=author,
        summary=summary,
        message=summary + "\n" if message is None else message,
    )
