import os
import stat

from rendergit_site.cache import CacheWriter, is_hash, read_cache, write_atomic

HEAD = "0123456789abcdef0123456789abcdef01234567"


class TestReadCache:
    def test_no_path(self):
        assert read_cache(None).empty

    def test_missing_file(self, tmp_path):
        state = read_cache(tmp_path / "absent")
        assert state.cursor is None
        assert state.body == b""

    def test_valid(self, tmp_path):
        path = tmp_path / "cache"
        path.write_bytes(HEAD.encode() + b"\n<tr><td>row</td></tr>\n\xff")
        state = read_cache(path)
        assert state.cursor == HEAD
        assert state.body == b"<tr><td>row</td></tr>\n\xff"

    def test_sha256_cursor(self, tmp_path):
        path = tmp_path / "cache"
        path.write_bytes(b"a" * 64 + b"\n")
        assert read_cache(path).cursor == "a" * 64

    def test_malformed_first_line(self, tmp_path):
        path = tmp_path / "cache"
        path.write_bytes(b"not a hash\n<tr></tr>\n")
        state = read_cache(path)
        assert state.empty
        assert state.body == b""

    def test_empty_file(self, tmp_path):
        path = tmp_path / "cache"
        path.write_bytes(b"")
        assert read_cache(path).empty


def test_is_hash():
    assert is_hash(HEAD)
    assert not is_hash(HEAD.upper())
    assert not is_hash(HEAD[:39])


class TestCacheWriter:
    def test_commit_replaces_file(self, tmp_path):
        path = tmp_path / "cache"
        path.write_bytes(b"old")
        with CacheWriter(path) as writer:
            writer.stage(HEAD, ["<tr>new</tr>\n"], previous=b"<tr>old</tr>\n")
            assert path.read_bytes() == b"old"
            writer.commit()
        assert path.read_bytes() == HEAD.encode() + b"\n<tr>new</tr>\n<tr>old</tr>\n"
        assert os.listdir(tmp_path) == ["cache"]

    def test_uncommitted_stage_is_discarded(self, tmp_path):
        path = tmp_path / "cache"
        path.write_bytes(b"old")
        with CacheWriter(path) as writer:
            writer.stage(HEAD, ["<tr>new</tr>\n"])
            assert writer.staged
        assert path.read_bytes() == b"old"
        assert os.listdir(tmp_path) == ["cache"]

    def test_commit_without_stage(self, tmp_path):
        path = tmp_path / "cache"
        with CacheWriter(path) as writer:
            writer.commit()
        assert not path.exists()

    def test_permissions_follow_umask(self, tmp_path):
        path = tmp_path / "cache"
        old = os.umask(0o022)
        try:
            with CacheWriter(path) as writer:
                writer.stage(HEAD, [])
                writer.commit()
        finally:
            os.umask(old)
        assert stat.S_IMODE(path.stat().st_mode) == 0o644


def test_write_atomic(tmp_path):
    target = tmp_path / "page.html"
    write_atomic(target, b"first")
    write_atomic(target, b"second")
    assert target.read_bytes() == b"second"
    assert os.listdir(tmp_path) == ["page.html"]
