"""BGME Battle Themes - Canonical path utilities.

Returns canonical Paths for build outputs and registry state.
Does NOT create directories. Directory creation is the responsibility
of the calling code.
"""

from pathlib import Path

from battle_themes.config import PACKAGE_MUSIC_SUBDIR
from battle_themes.contexts import ContextDescriptor, GameContext

# Encoded file extension used for build outputs
BUILD_FILE_EXT = ".hca"

MUSIC_STATE_FILENAME = "music.json"
VERSION_FILENAME = "version.txt"
CACHE_DIRNAME = "cached"


def context_build_dir(mod_dir: str | Path, context: GameContext) -> Path:
    """Get the build directory for a context.

    Args:
        mod_dir: This mod's install directory.
        context: Target game.

    Returns:
        Path: {mod_dir}/{context}
    """
    return Path(mod_dir) / context.value


def build_output_dir(build_dir: Path, descriptor: ContextDescriptor) -> Path:
    """Path: {build_dir}/BGME/{segment}"""
    return build_dir / "BGME" / descriptor.base_path_segment


def build_file_path(build_dir: Path, descriptor: ContextDescriptor, bgm_id: int) -> Path:
    """Get the build output path for a BGM ID.

    Args:
        build_dir: Context build directory.
        descriptor: Context descriptor.
        bgm_id: Assigned BGM ID.

    Returns:
        Path: {build_dir}/BGME/{segment}/{bgm_id}.hca
    """
    return build_output_dir(build_dir, descriptor) / f"{bgm_id}{BUILD_FILE_EXT}"


def music_state_path(build_dir: Path) -> Path:
    """Path: {build_dir}/music.json"""
    return build_dir / MUSIC_STATE_FILENAME


def version_path(build_dir: Path) -> Path:
    """Path: {build_dir}/version.txt"""
    return build_dir / VERSION_FILENAME


def cache_dir_path(mod_dir: str | Path, build_dir: Path, descriptor: ContextDescriptor) -> Path:
    """Get the transcode cache directory for a context.

    Games sharing an encoder configuration share one cache under the mod dir.

    Returns:
        Path: {mod_dir}/{shared_cache_dir} or {build_dir}/cached
    """
    if descriptor.shared_cache_dir:
        return Path(mod_dir) / descriptor.shared_cache_dir
    return build_dir / CACHE_DIRNAME


def package_music_dir(package_dir: str | Path) -> Path:
    """Path: {package_dir}/battle-themes/music"""
    return Path(package_dir).joinpath(*PACKAGE_MUSIC_SUBDIR)
