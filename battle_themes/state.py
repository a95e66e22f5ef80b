"""BGME Battle Themes - Persisted registry state.

One registry state exists per context, stored in the context build dir:
- version.txt: plain integer schema version
- music.json: indented JSON array of Song records

A corrupt or unreadable state is treated as "no previous state", which
makes the next pass re-encode everything rather than fail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from battle_themes.schemas import Song
from battle_themes.utils.atomic_io import atomic_write_bytes, atomic_write_text
from battle_themes.utils.paths import music_state_path, version_path

logger = logging.getLogger(__name__)

_SONG_LIST = TypeAdapter(list[Song])

__all__ = [
    "RegistryState",
    "dumps_songs",
    "loads_songs",
    "read_saved_version",
    "is_new_version",
    "load_previous_songs",
    "load_registry_state",
    "save_state",
    "clear_state",
]


@dataclass
class RegistryState:
    """Songs registered by a pass plus the schema version they were built with."""

    version: int | None = None
    songs: list[Song] = field(default_factory=list)

    def songs_for_package(self, package_id: str) -> list[Song]:
        """Songs belonging to a package, in registration order."""
        return [song for song in self.songs if song.package_id == package_id]


def dumps_songs(songs: list[Song]) -> bytes:
    """Serialize songs to indented JSON using the music.json keys."""
    return _SONG_LIST.dump_json(list(songs), by_alias=True, indent=2)


def loads_songs(data: str | bytes) -> list[Song]:
    """Parse music.json content.

    Raises:
        pydantic.ValidationError: If the content is not a valid song list.
    """
    return _SONG_LIST.validate_json(data)


def read_saved_version(build_dir: Path) -> int | None:
    """Read version.txt.

    Returns:
        The saved version, or None if missing or unparseable.
    """
    path = version_path(build_dir)
    if not path.exists():
        logger.debug("No version file at %s", path)
        return None

    try:
        return int(path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError) as e:
        logger.error("Failed to get saved version from %s: %s", path, e)
        return None


def is_new_version(build_dir: Path, current_version: int) -> bool:
    """True unless version.txt holds exactly current_version."""
    return read_saved_version(build_dir) != current_version


def load_previous_songs(build_dir: Path) -> list[Song]:
    """Load the songs registered by the previous pass.

    Never raises for bad data: a missing, unreadable or corrupt music.json
    yields an empty list.

    Args:
        build_dir: Context build directory.

    Returns:
        Previously registered songs, in their saved order.
    """
    path = music_state_path(build_dir)
    if not path.exists():
        return []

    try:
        return loads_songs(path.read_bytes())
    except (OSError, ValidationError) as e:
        logger.error("Failed to parse previous music at %s: %s", path, e)
        return []


def load_registry_state(build_dir: Path) -> RegistryState:
    """Load version and songs together (read-only consumers)."""
    return RegistryState(
        version=read_saved_version(build_dir),
        songs=load_previous_songs(build_dir),
    )


def save_state(build_dir: Path, songs: list[Song], version: int) -> None:
    """Persist a completed pass.

    music.json is published first, then version.txt; each is an atomic
    temp+rename, so a crash leaves either the old or the new file.

    Raises:
        OSError: If either file cannot be written.
    """
    atomic_write_bytes(music_state_path(build_dir), dumps_songs(songs))
    atomic_write_text(version_path(build_dir), str(version))
    logger.debug("Saved %d songs (version %d) to %s", len(songs), version, build_dir)


def clear_state(build_dir: Path) -> None:
    """Delete music.json and version.txt if present."""
    for path in (music_state_path(build_dir), version_path(build_dir)):
        try:
            path.unlink(missing_ok=True)
            logger.debug("Cleared state file: %s", path)
        except OSError as e:
            logger.warning("Failed to delete %s: %s", path, e)
