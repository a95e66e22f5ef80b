"""BGME Battle Themes - Utility modules."""

from battle_themes.utils.atomic_io import (
    atomic_copy_file,
    atomic_publish,
    atomic_write_bytes,
    atomic_write_text,
    cleanup_orphan_temp_files,
)
from battle_themes.utils.hashing import cache_key, sha256_bytes, sha256_file
from battle_themes.utils.paths import (
    build_file_path,
    cache_dir_path,
    context_build_dir,
    music_state_path,
    package_music_dir,
    version_path,
)

__all__ = [
    # atomic_io
    "atomic_write_bytes",
    "atomic_write_text",
    "atomic_copy_file",
    "atomic_publish",
    "cleanup_orphan_temp_files",
    # hashing
    "sha256_file",
    "sha256_bytes",
    "cache_key",
    # paths
    "context_build_dir",
    "build_file_path",
    "music_state_path",
    "version_path",
    "cache_dir_path",
    "package_music_dir",
]
