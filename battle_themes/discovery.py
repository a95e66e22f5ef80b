"""BGME Battle Themes - Song and package discovery.

Finds enabled packages and the audio files they contribute.

Ordering is deterministic so that BGM IDs are stable between runs:
- packages follow the enabled-package order supplied by the host
- files within a package are sorted by their POSIX path relative to the
  package's music folder (plain string comparison, case-sensitive)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from battle_themes.config import MOD_CONFIG_FILENAME
from battle_themes.schemas import ModConfig
from battle_themes.utils.paths import package_music_dir

logger = logging.getLogger(__name__)


def normalize_extensions(exts: Iterable[str]) -> frozenset[str]:
    """Lowercase extensions and ensure a leading dot."""
    return frozenset("." + ext.lower().lstrip(".") for ext in exts)


def is_supported_audio(path: str | Path, supported_exts: Iterable[str]) -> bool:
    """Case-insensitive extension check against the encoder's input types."""
    suffix = Path(path).suffix.lower()
    return bool(suffix) and suffix in normalize_extensions(supported_exts)


def find_package_songs(package_dir: str | Path, supported_exts: Iterable[str]) -> list[Path]:
    """List a package's supported audio files in registration order.

    A package without a battle-themes/music folder contributes nothing.

    Args:
        package_dir: Package install directory.
        supported_exts: Extensions the encoder accepts.

    Returns:
        Absolute file paths, sorted by relative POSIX path.
    """
    music_dir = package_music_dir(package_dir)
    if not music_dir.is_dir():
        return []

    exts = normalize_extensions(supported_exts)
    files = [
        path
        for path in music_dir.rglob("*")
        if is_supported_audio(path, exts) and path.is_file()
    ]
    files.sort(key=lambda p: p.relative_to(music_dir).as_posix())
    return [path.absolute() for path in files]


def read_mod_config(mod_dir: Path) -> ModConfig | None:
    """Parse a package's ModConfig.json.

    Returns:
        The parsed manifest, or None if missing or malformed.
    """
    config_path = mod_dir / MOD_CONFIG_FILENAME
    if not config_path.is_file():
        return None

    try:
        return ModConfig.model_validate_json(config_path.read_bytes())
    except (OSError, ValidationError) as e:
        logger.warning("Skipping %s: failed to parse %s: %s", mod_dir, MOD_CONFIG_FILENAME, e)
        return None


def discover_enabled_packages(
    mods_dir: str | Path,
    enabled_mod_ids: Iterable[str],
) -> list[tuple[str, Path]]:
    """Resolve enabled mod IDs to their install directories.

    Scans each folder of mods_dir for a ModConfig.json. Folders without a
    manifest, or with a malformed one, are skipped.

    Args:
        mods_dir: Directory containing every installed mod.
        enabled_mod_ids: Enabled mod IDs in load order.

    Returns:
        (mod_id, mod_dir) pairs in enabled_mod_ids order. Enabled IDs with
        no installed folder are left out.
    """
    mods_dir = Path(mods_dir)
    installed: dict[str, Path] = {}

    if mods_dir.is_dir():
        for mod_dir in sorted(p for p in mods_dir.iterdir() if p.is_dir()):
            mod_config = read_mod_config(mod_dir)
            if mod_config is None:
                continue
            if mod_config.mod_id in installed:
                logger.warning(
                    "Duplicate mod ID %s in %s, keeping %s",
                    mod_config.mod_id,
                    mod_dir,
                    installed[mod_config.mod_id],
                )
                continue
            installed[mod_config.mod_id] = mod_dir

    packages = []
    seen = set()
    for mod_id in enabled_mod_ids:
        if mod_id in seen:
            continue
        seen.add(mod_id)
        mod_dir = installed.get(mod_id)
        if mod_dir is None:
            logger.debug("Enabled mod %s is not installed in %s", mod_id, mods_dir)
            continue
        packages.append((mod_id, mod_dir))

    return packages


__all__ = [
    "normalize_extensions",
    "is_supported_audio",
    "find_package_songs",
    "read_mod_config",
    "discover_enabled_packages",
]
