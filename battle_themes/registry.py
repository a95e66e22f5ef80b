"""BGME Battle Themes - Music registry.

Registers every song contributed by enabled packages, builds it into the
game's audio format, and keeps the context build directory in sync.

Registration pass (runs on construction):
1. Version check: missing/unparseable/different version.txt means a new
   schema version.
2. New version: purge cached transcodes, previous build outputs, and the
   saved state. Everything is re-encoded.
3. Load the previous song set (corrupt state degrades to empty).
4. Discover songs per enabled package, in the supplied package order.
5. Allocate BGM IDs sequentially from the context's base ID.
6. Encode songs that are new or whose build output is missing. Encoding
   runs on a bounded thread pool, after allocation is complete. Saved
   entries whose build path is about to be reused are dropped first.
7. Prune build outputs of songs that are no longer registered, and any
   other build output no registered song owns.
8. Persist the new song set and version (atomic, last step).
9. Notify listeners.

Error policy:
- Configuration errors (unknown context, missing base ID) propagate before
  anything on disk is touched.
- Discovery, state read, encode, and deletion errors are logged and
  contained. A song that fails to encode keeps its BGM ID but is not
  recorded, so the next pass retries it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from battle_themes.config import MOD_ID, Settings
from battle_themes.contexts import GameContext, base_bgm_id, get_descriptor, parse_context
from battle_themes.discovery import find_package_songs, normalize_extensions
from battle_themes.schemas import Song
from battle_themes.state import (
    clear_state,
    is_new_version,
    load_previous_songs,
    save_state,
)
from battle_themes.utils.atomic_io import cleanup_orphan_temp_files
from battle_themes.utils.failpoints import maybe_fail
from battle_themes.utils.paths import (
    BUILD_FILE_EXT,
    build_file_path,
    build_output_dir,
    cache_dir_path,
    context_build_dir,
)

if TYPE_CHECKING:
    from battle_themes.encoding import Encoder

# Bump to force every context to rebuild all music on next start
CURRENT_VERSION = 2


@dataclass(frozen=True)
class RegistrationEvent:
    """Sent to listeners after a successful pass."""

    source_id: str
    context: GameContext
    build_dir: Path


Listener = Callable[[RegistrationEvent], None]


@dataclass
class RegistrationResult:
    """Counters for one registration pass."""

    registered: int = 0
    encoded: int = 0
    skipped: int = 0
    failed: int = 0
    pruned: int = 0
    rebuilt: bool = False
    persisted: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class MusicRegistry:
    """Registry of mod songs for one game context.

    Constructing the registry performs the registration pass; there is no
    separate build step.
    """

    def __init__(
        self,
        context: GameContext | str,
        settings: Settings,
        mod_dir: str | Path,
        enabled_packages: Iterable[tuple[str, str | Path]],
        encoder: Encoder | None = None,
        listeners: Iterable[Listener] = (),
        logger: logging.Logger | None = None,
        max_workers: int | None = None,
        current_version: int | None = None,
    ):
        self._log = logger or logging.getLogger(__name__)

        # Configuration checks come first: nothing below may run on bad config.
        self._context = parse_context(context)
        self._descriptor = get_descriptor(self._context)
        self._base_id = base_bgm_id(self._descriptor, settings)

        self._mod_dir = Path(mod_dir)
        self._build_dir = context_build_dir(self._mod_dir, self._context)
        self._cache_dir = cache_dir_path(self._mod_dir, self._build_dir, self._descriptor)
        self._enabled_packages = [(package_id, Path(path)) for package_id, path in enabled_packages]
        self._listeners = list(listeners)
        self._max_workers = max(1, max_workers or settings.encode_workers)
        self._version = CURRENT_VERSION if current_version is None else current_version

        self._build_dir.mkdir(parents=True, exist_ok=True)

        owns_encoder = encoder is None
        if encoder is None:
            # Local import: services depend on battle_themes, not the reverse.
            from services.worker_encode.run import build_encoder

            encoder = build_encoder(self._descriptor, settings, self._cache_dir)
        self._encoder = encoder
        self._supported_exts = normalize_extensions(encoder.input_types)

        self._current: list[Song] = []
        self._failed: list[Song] = []
        self.result = RegistrationResult()

        # Rebuild all music on new versions.
        if is_new_version(self._build_dir, self._version):
            self._reset_music()
            self.result.rebuilt = True

        removed = cleanup_orphan_temp_files(self._build_dir, recursive=True)
        if removed:
            self._log.debug("Removed %d orphan temp files under %s", removed, self._build_dir)

        self._previous = load_previous_songs(self._build_dir)
        try:
            self._register_music()
        finally:
            if owns_encoder:
                encoder.close()

    # --- Public API ---

    @property
    def context(self) -> GameContext:
        return self._context

    @property
    def build_dir(self) -> Path:
        return self._build_dir

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def songs(self) -> list[Song]:
        """All registered songs, in registration order."""
        return list(self._current)

    @property
    def failed_songs(self) -> list[Song]:
        """Songs allocated this pass whose encode failed."""
        return list(self._failed)

    def songs_for_package(self, package_id: str) -> list[Song]:
        """Get the songs added by a package.

        Args:
            package_id: Package (mod) ID.

        Returns:
            Registered songs of that package in registration order; empty if
            the package registered none.
        """
        return [song for song in self._current if song.package_id == package_id]

    # --- Registration pass ---

    def _register_music(self) -> None:
        planned = self._allocate_songs()
        previous = set(self._previous)

        to_build = []
        for song in planned:
            # Don't rebuild songs that haven't changed.
            if song in previous and Path(song.build_file_path).exists():
                self._log.debug("Song already built: %s", song.name)
                self.result.skipped += 1
            else:
                to_build.append(song)

        buildable = self._release_reused_paths(to_build)
        held_back = [song for song in to_build if song not in buildable]

        failed = set(self._build_songs(buildable)) | set(held_back)
        self._failed = [song for song in planned if song in failed]
        self._current = [song for song in planned if song not in failed]
        self.result.registered = len(self._current)
        self.result.failed = len(self._failed)

        self._remove_unused_songs()

        maybe_fail("REGISTRY_BEFORE_PERSIST")

        try:
            save_state(self._build_dir, self._current, self._version)
        except OSError:
            self._log.exception("Failed to save registered music to %s", self._build_dir)
            return

        self.result.persisted = True
        self._notify_listeners()

    def _release_reused_paths(self, to_build: list[Song]) -> list[Song]:
        """Drop saved entries whose build file is about to be overwritten.

        The saved state must never claim a file that holds another song's
        audio, even if the pass dies before persisting. If the state cannot
        be rewritten, songs that would overwrite a saved entry's file are
        held back until the next pass.

        Returns:
            The songs that may be encoded now.
        """
        rebuild_paths = {song.build_file_path for song in to_build}
        kept = [song for song in self._previous if song.build_file_path not in rebuild_paths]
        if len(kept) == len(self._previous):
            return to_build

        try:
            save_state(self._build_dir, kept, self._version)
        except OSError:
            self._log.exception("Failed to release reused build paths in %s", self._build_dir)
            claimed = {song.build_file_path for song in self._previous}
            return [song for song in to_build if song.build_file_path not in claimed]
        return to_build

    def _allocate_songs(self) -> list[Song]:
        """Assign BGM IDs and build paths in discovery order."""
        songs: list[Song] = []
        for package_id, package_dir in self._enabled_packages:
            try:
                files = find_package_songs(package_dir, self._supported_exts)
            except OSError as e:
                self._log.warning("Skipping package %s: failed to list music: %s", package_id, e)
                continue

            for file in files:
                bgm_id = self._base_id + len(songs)
                build_file = build_file_path(self._build_dir, self._descriptor, bgm_id)
                songs.append(
                    Song(
                        package_id=package_id,
                        name=file.stem,
                        bgm_id=bgm_id,
                        file_path=str(file),
                        build_file_path=str(build_file),
                    )
                )
        return songs

    def _build_songs(self, songs: list[Song]) -> list[Song]:
        """Encode songs on a bounded pool.

        Returns:
            The songs that failed to encode.
        """
        if not songs:
            return []

        failed = []
        workers = min(self._max_workers, len(songs))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="encode") as pool:
            futures = [pool.submit(self._build_song, song) for song in songs]
            for song, future in zip(songs, futures):
                try:
                    future.result()
                except Exception:
                    self._log.exception(
                        "Failed to build song: %s || Mod: %s || File: %s",
                        song.name,
                        song.package_id,
                        song.file_path,
                    )
                    failed.append(song)
                else:
                    self.result.encoded += 1
                    self._log.info(
                        "Registered song: %s || Mod: %s || BGM ID: %d",
                        song.name,
                        song.package_id,
                        song.bgm_id,
                    )
        return failed

    def _build_song(self, song: Song) -> None:
        self._log.debug("Building song: %s", song.file_path)

        output_file = Path(song.build_file_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        self._encoder.encode(Path(song.file_path), output_file)

        self._log.debug("Built song: %s", song.build_file_path)

    def _remove_unused_songs(self) -> None:
        """Delete build outputs of songs not in the current set.

        A previous song whose build path is reused by a current song is left
        alone: the file belongs to the current song now. Any other build
        output nothing registered owns is swept as well, which retries
        deletions that failed on an earlier pass.
        """
        current = set(self._current)
        active_build_files = {song.build_file_path for song in self._current}

        for song in self._previous:
            if song in current or song.build_file_path in active_build_files:
                continue
            if self._delete_file(Path(song.build_file_path)):
                self.result.pruned += 1
                self._log.debug(
                    "Removed unused song file: %s || %s", song.name, song.build_file_path
                )

        output_dir = build_output_dir(self._build_dir, self._descriptor)
        if not output_dir.is_dir():
            return
        for file in sorted(output_dir.glob(f"*{BUILD_FILE_EXT}")):
            if str(file) in active_build_files:
                continue
            if self._delete_file(file):
                self.result.pruned += 1
                self._log.debug("Removed stray build file: %s", file)

    def _reset_music(self) -> None:
        """Purge everything built under the previous schema version."""
        self._log.info("New version, rebuilding all music.")

        if self._cache_dir.is_dir():
            for file in self._cache_dir.glob(f"*{self._encoder.encoded_ext}"):
                if self._delete_file(file):
                    self._log.debug("Cleared cached file: %s", file)

        # Remove built files.
        for song in load_previous_songs(self._build_dir):
            self._delete_file(Path(song.build_file_path))

        clear_state(self._build_dir)

    def _delete_file(self, path: Path) -> bool:
        """Delete a file if present. Failures are logged, not raised."""
        try:
            if not path.is_file():
                return False
            path.unlink()
            return True
        except OSError as e:
            self._log.warning("Failed to delete %s: %s", path, e)
            return False

    def _notify_listeners(self) -> None:
        event = RegistrationEvent(
            source_id=MOD_ID, context=self._context, build_dir=self._build_dir
        )
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                self._log.exception("Registration listener %r failed", listener)


__all__ = [
    "CURRENT_VERSION",
    "MusicRegistry",
    "RegistrationEvent",
    "RegistrationResult",
    "Listener",
]
