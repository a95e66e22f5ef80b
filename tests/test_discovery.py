"""Tests for package and song discovery."""

import pytest

from battle_themes.discovery import (
    discover_enabled_packages,
    find_package_songs,
    is_supported_audio,
    normalize_extensions,
    read_mod_config,
)

from conftest import add_song, make_package

EXTS = frozenset({".wav", ".ogg", ".mp3"})


class TestExtensions:
    def test_normalize(self):
        assert normalize_extensions(["WAV", ".Ogg", "mp3"]) == {".wav", ".ogg", ".mp3"}

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("song.wav", True),
            ("SONG.WAV", True),
            ("song.Ogg", True),
            ("song.txt", False),
            ("song", False),
            ("wav", False),
        ],
    )
    def test_is_supported_audio(self, name, expected):
        assert is_supported_audio(name, EXTS) is expected


class TestFindPackageSongs:
    """Files are listed in sorted relative-path order."""

    def test_sorted_by_relative_path(self, mods_dir):
        package = make_package(mods_dir, "ModA", ["town.wav", "battle.wav", "b/x.ogg", "a/z.mp3"])

        files = find_package_songs(package, EXTS)

        music = package / "battle-themes" / "music"
        assert [f.relative_to(music).as_posix() for f in files] == [
            "a/z.mp3",
            "b/x.ogg",
            "battle.wav",
            "town.wav",
        ]
        assert all(f.is_absolute() for f in files)

    def test_filters_unsupported(self, mods_dir):
        package = make_package(mods_dir, "ModA", ["a.wav", "notes.txt", "b.flac"])

        files = find_package_songs(package, EXTS)

        assert [f.name for f in files] == ["a.wav"]

    def test_ignores_directories_named_like_audio(self, mods_dir):
        package = make_package(mods_dir, "ModA", ["a.wav"])
        (package / "battle-themes" / "music" / "folder.wav").mkdir()

        assert [f.name for f in find_package_songs(package, EXTS)] == ["a.wav"]

    def test_missing_music_folder(self, mods_dir):
        package = make_package(mods_dir, "ModA")
        assert find_package_songs(package, EXTS) == []

    def test_stable_between_calls(self, mods_dir):
        package = make_package(mods_dir, "ModA", [f"{i}.wav" for i in range(20)])
        assert find_package_songs(package, EXTS) == find_package_songs(package, EXTS)


class TestReadModConfig:
    def test_reads_mod_id(self, mods_dir):
        package = make_package(mods_dir, "ModA")
        config = read_mod_config(package)
        assert config.mod_id == "ModA"
        assert config.mod_name == "ModA"

    def test_extra_fields_ignored(self, mods_dir):
        package = mods_dir / "Mod"
        package.mkdir()
        (package / "ModConfig.json").write_text(
            '{"ModId": "p5rpc.example", "ModAuthor": "someone", "ModDependencies": []}',
            encoding="utf-8",
        )

        assert read_mod_config(package).mod_id == "p5rpc.example"

    @pytest.mark.parametrize("content", ["{broken", "{}", '{"ModId": ""}'])
    def test_malformed_returns_none(self, mods_dir, content):
        package = mods_dir / "Broken"
        package.mkdir()
        (package / "ModConfig.json").write_text(content, encoding="utf-8")

        assert read_mod_config(package) is None

    def test_missing_returns_none(self, mods_dir):
        package = mods_dir / "Empty"
        package.mkdir()
        assert read_mod_config(package) is None


class TestDiscoverEnabledPackages:
    """Enabled IDs resolve to install folders, in enabled order."""

    def test_enabled_order(self, mods_dir):
        make_package(mods_dir, "ModA", folder="zzz")
        make_package(mods_dir, "ModB", folder="aaa")

        packages = discover_enabled_packages(mods_dir, ["ModB", "ModA"])

        assert packages == [("ModB", mods_dir / "aaa"), ("ModA", mods_dir / "zzz")]

    def test_disabled_and_missing_are_skipped(self, mods_dir):
        make_package(mods_dir, "ModA")
        make_package(mods_dir, "ModB")

        packages = discover_enabled_packages(mods_dir, ["ModB", "NotInstalled"])

        assert [mod_id for mod_id, _ in packages] == ["ModB"]

    def test_duplicate_enabled_ids(self, mods_dir):
        make_package(mods_dir, "ModA")
        assert len(discover_enabled_packages(mods_dir, ["ModA", "ModA"])) == 1

    def test_duplicate_installed_ids_keep_first(self, mods_dir):
        make_package(mods_dir, "ModA", folder="first")
        make_package(mods_dir, "ModA", folder="second")

        assert discover_enabled_packages(mods_dir, ["ModA"]) == [("ModA", mods_dir / "first")]

    def test_folders_without_manifest_skipped(self, mods_dir):
        (mods_dir / "loose").mkdir()
        add_song(mods_dir / "loose", "x.wav")

        assert discover_enabled_packages(mods_dir, ["loose"]) == []

    def test_missing_mods_dir(self, tmp_path):
        assert discover_enabled_packages(tmp_path / "nope", ["ModA"]) == []
