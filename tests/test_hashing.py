"""Tests for battle_themes.utils.hashing module."""

import tempfile
from pathlib import Path

import pytest

from battle_themes.utils.hashing import cache_key, sha256_bytes, sha256_file


class TestSha256Bytes:
    """Tests for sha256_bytes function."""

    def test_empty_bytes(self):
        """Empty bytes should produce known SHA256 hash."""
        expected = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        assert sha256_bytes(b"") == expected

    def test_known_input(self):
        expected = "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"
        assert sha256_bytes(b"hello") == expected

    def test_returns_hex_only(self):
        """Hash should be hex digest only, no prefix."""
        result = sha256_bytes(b"test")
        assert len(result) == 64
        assert all(c in "0123456789abcdef" for c in result)


class TestSha256File:
    """Tests for sha256_file function."""

    def test_file_hash_matches_bytes_hash(self):
        """File hash should match hash of file contents."""
        content = b"RIFF....WAVEfmt " * 10000
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "song.wav"
            path.write_bytes(content)

            assert sha256_file(path) == sha256_bytes(content)
            assert sha256_file(str(path)) == sha256_bytes(content)

    def test_nonexistent_file_raises(self):
        with pytest.raises(FileNotFoundError):
            sha256_file("/nonexistent/path/file.wav")


class TestCacheKey:
    """Tests for cache_key function."""

    CONTENT = sha256_bytes(b"audio")

    def test_key_length_is_32(self):
        assert len(cache_key(self.CONTENT, "hca:key=None")) == 32

    def test_key_is_deterministic(self):
        assert cache_key(self.CONTENT, "sig") == cache_key(self.CONTENT, "sig")

    def test_signature_changes_key(self):
        """Same audio encoded with a different key code gets its own entry."""
        assert cache_key(self.CONTENT, "hca:key=1") != cache_key(self.CONTENT, "hca:key=2")

    def test_content_changes_key(self):
        other = sha256_bytes(b"other audio")
        assert cache_key(self.CONTENT, "sig") != cache_key(other, "sig")

    def test_key_is_prefix_of_combined_hash(self):
        expected = sha256_bytes(f"{self.CONTENT}:sig".encode("utf-8"))[:32]
        assert cache_key(self.CONTENT, "sig") == expected
