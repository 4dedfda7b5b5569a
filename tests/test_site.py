import re

import pytest

from rendergit_site import SiteConfig, build_site
from rendergit_site.errors import ConfigError, DiffUnavailable, GitCommandError, OutputError, RepositoryOpenError
from rendergit_site.gitrepo import GitRepository


def _commits(repo, n, start=0):
    return [repo.commit(f"Change {i}", {"file.txt": f"version {i}\n"}) for i in range(start, start + n)]


def _log_shas(out_dir):
    html = (out_dir / "log.html").read_text()
    return re.findall(r'href="commit/([0-9a-f]{40})\.html"', html)


def _pages(out_dir):
    return sorted(p.stem for p in (out_dir / "commit").glob("*.html"))


class TestFullBuild:
    def test_every_output_is_written(self, repo, out_dir):
        shas = _commits(repo, 3)
        report = build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir))

        for name in ("log.html", "files.html", "refs.html", "atom.xml", "tags.xml", "style.css"):
            assert (out_dir / name).is_file(), name
        assert (out_dir / "file" / "file.txt.html").is_file()
        assert _log_shas(out_dir) == shas[::-1]
        assert _pages(out_dir) == sorted(shas)
        assert sorted(report.pages_written) == sorted(shas)
        assert report.head == shas[-1]
        assert report.files == 1
        assert not report.degraded

    def test_readme_and_license(self, repo, out_dir):
        repo.commit("Docs", {"README.md": "# Demo\n\nHello.\n", "LICENSE": "MIT\n"})
        build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir))
        assert "<h1>Demo</h1>" in (out_dir / "README.html").read_text()
        log = (out_dir / "log.html").read_text()
        assert 'href="README.html"' in log
        assert 'href="file/LICENSE.html"' in log

    def test_description_and_url(self, repo, out_dir):
        repo.commit("First", {"a.txt": "a\n"})
        (repo.path / ".git" / "description").write_text("Tiny demo\n")
        (repo.path / ".git" / "url").write_text("https://example.com/demo.git\n")
        build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir))
        log = (out_dir / "log.html").read_text()
        assert "Tiny demo" in log
        assert "git clone" in log

    def test_feeds(self, repo, out_dir):
        _commits(repo, 2)
        repo.tag("v1.0", message="Release")
        build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir, base_url="https://example.com/demo/"))
        atom = (out_dir / "atom.xml").read_text()
        assert atom.count("<entry>") == 2
        assert 'href="https://example.com/demo/commit/' in atom
        tags = (out_dir / "tags.xml").read_text()
        assert tags.count("<entry>") == 1
        assert "[v1.0] Change 1" in tags

    def test_refs_page(self, repo, out_dir):
        _commits(repo, 1)
        repo.branch("topic")
        build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir))
        refs = (out_dir / "refs.html").read_text()
        assert refs.index("<td>main</td>") < refs.index("<td>topic</td>")

    def test_bare_repository(self, repo, out_dir, tmp_path):
        shas = _commits(repo, 2)
        bare = tmp_path / "demo.git"
        repo.git("clone", "-q", "--bare", str(repo.path), str(bare))
        build_site(SiteConfig(repo_path=bare, out_dir=out_dir))
        assert _log_shas(out_dir) == shas[::-1]
        assert "<h1>demo</h1>" in (out_dir / "log.html").read_text()

    def test_empty_repository(self, repo, out_dir, tmp_path):
        cache = tmp_path / "cache"
        report = build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir, cache_path=cache))
        assert report.head is None
        assert _log_shas(out_dir) == []
        assert (out_dir / "files.html").is_file()
        assert not cache.exists()

    def test_impossible_dates(self, repo, out_dir):
        first = repo.commit("First", {"a.txt": "a\n"})
        odd = repo.raw_commit("Odd <odd@example.com> 1700000000 +9999", "Odd zone\n")
        huge = repo.raw_commit("Far <far@example.com> 99999999999999 -9959", "Far future\n")
        report = build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir))
        assert sorted(report.pages_written) == sorted([first, odd, huge])
        assert "+0000" in (out_dir / "commit" / f"{odd}.html").read_text()
        assert "9999-" in (out_dir / "log.html").read_text()

    def test_many_files_are_summarized(self, repo, out_dir):
        repo.commit("Bulk import", {f"data/{i:04d}.txt": f"{i}\n" for i in range(1500)})
        build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir))
        [page] = (out_dir / "commit").glob("*.html")
        html = page.read_text()
        assert "Diff is too large, output suppressed." in html
        assert '<td class="num">1500</td>' in (out_dir / "log.html").read_text()


class TestIncremental:
    def test_second_run_changes_nothing(self, repo, out_dir, tmp_path):
        _commits(repo, 3)
        cache = tmp_path / "cache"
        config = SiteConfig(repo_path=repo.path, out_dir=out_dir, cache_path=cache)
        build_site(config)
        log_before = (out_dir / "log.html").read_bytes()
        cache_before = cache.read_bytes()

        report = build_site(config)
        assert report.pages_written == []
        assert (out_dir / "log.html").read_bytes() == log_before
        assert cache.read_bytes() == cache_before

    def test_new_commits_are_prepended(self, repo, out_dir, tmp_path):
        old = _commits(repo, 3)
        cache = tmp_path / "cache"
        config = SiteConfig(repo_path=repo.path, out_dir=out_dir, cache_path=cache)
        build_site(config)

        new = _commits(repo, 2, start=3)
        report = build_site(config)
        assert sorted(report.pages_written) == sorted(new)
        assert _log_shas(out_dir) == new[::-1] + old[::-1]
        assert _pages(out_dir) == sorted(old + new)
        assert cache.read_text().splitlines()[0] == new[-1]

    def test_existing_pages_are_not_rewritten(self, repo, out_dir):
        [sha] = _commits(repo, 1)
        config = SiteConfig(repo_path=repo.path, out_dir=out_dir)
        build_site(config)
        page = out_dir / "commit" / f"{sha}.html"
        page.write_text("kept")
        build_site(config)
        assert page.read_text() == "kept"

    def test_malformed_cache_walks_everything(self, repo, out_dir, tmp_path):
        shas = _commits(repo, 3)
        cache = tmp_path / "cache"
        cache.write_text("garbage\n<tr>stale</tr>\n")
        build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir, cache_path=cache))
        assert _log_shas(out_dir) == shas[::-1]
        assert "stale" not in (out_dir / "log.html").read_text()
        assert cache.read_text().splitlines()[0] == shas[-1]

    def test_unreachable_cursor_rebuilds_log(self, repo, out_dir, tmp_path):
        shas = _commits(repo, 2)
        cache = tmp_path / "cache"
        cache.write_text("f" * 40 + "\n<tr>stale</tr>\n")
        build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir, cache_path=cache))
        assert _log_shas(out_dir) == shas[::-1]
        assert "stale" not in (out_dir / "log.html").read_text()
        assert "stale" not in cache.read_text()


class TestLogLimit:
    def test_rows_are_limited_but_pages_written(self, repo, out_dir):
        shas = _commits(repo, 5)
        report = build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir, log_limit=2))
        assert _log_shas(out_dir) == shas[:2:-1]
        assert "3 more commits remaining" in (out_dir / "log.html").read_text()
        assert _pages(out_dir) == sorted(shas)
        assert report.remaining == 3

    def test_second_run_skips_existing_pages(self, repo, out_dir):
        _commits(repo, 5)
        config = SiteConfig(repo_path=repo.path, out_dir=out_dir, log_limit=2)
        build_site(config)
        report = build_site(config)
        assert report.pages_written == []
        assert len(_log_shas(out_dir)) == 2

    def test_cache_and_limit_conflict(self, repo, tmp_path):
        with pytest.raises(ConfigError):
            SiteConfig(repo_path=repo.path, cache_path=tmp_path / "cache", log_limit=3)


class TestFailures:
    def test_not_a_repository(self, tmp_path, out_dir):
        plain = tmp_path / "plain"
        plain.mkdir()
        with pytest.raises(RepositoryOpenError):
            build_site(SiteConfig(repo_path=plain, out_dir=out_dir))
        assert not out_dir.exists()

    def test_missing_repository(self, tmp_path, out_dir):
        with pytest.raises(RepositoryOpenError):
            build_site(SiteConfig(repo_path=tmp_path / "nope", out_dir=out_dir))

    def test_output_is_a_file(self, repo, tmp_path):
        _commits(repo, 1)
        target = tmp_path / "taken"
        target.write_text("")
        with pytest.raises(OutputError):
            build_site(SiteConfig(repo_path=repo.path, out_dir=target))

    def test_commit_without_diff_is_skipped(self, repo, out_dir, monkeypatch):
        shas = _commits(repo, 3)
        import rendergit_site.walker as walker

        real = walker.compute_diff

        def flaky(git, objects, record):
            if record.sha == shas[1]:
                raise DiffUnavailable(record.sha)
            return real(git, objects, record)

        monkeypatch.setattr(walker, "compute_diff", flaky)
        report = build_site(SiteConfig(repo_path=repo.path, out_dir=out_dir))
        assert report.skipped == [shas[1]]
        assert _log_shas(out_dir) == [shas[2], shas[0]]
        assert _pages(out_dir) == sorted([shas[0], shas[2]])
        assert not report.degraded

    def test_broken_walk_keeps_previous_cache(self, repo, out_dir, tmp_path, monkeypatch):
        old = _commits(repo, 2)
        cache = tmp_path / "cache"
        config = SiteConfig(repo_path=repo.path, out_dir=out_dir, cache_path=cache)
        build_site(config)
        cache_before = cache.read_bytes()
        new = _commits(repo, 2, start=2)

        def broken_walk(self, start, max_count=None):
            yield new[-1]
            raise GitCommandError(["rev-list", start], 128, "fatal: bad object")

        monkeypatch.setattr(GitRepository, "walk", broken_walk)
        report = build_site(config)
        assert report.degraded
        assert not report.cache_updated
        assert cache.read_bytes() == cache_before
        assert _log_shas(out_dir) == [new[-1]] + old[::-1]
