"""BGME Battle Themes - Encode Worker.

Builds the game-ready HCA file for one registered song.

Pipeline per song:
1. ffmpeg decodes the source to a 48 kHz stereo 16-bit PCM WAV (scratch dir)
2. VGAudioCli encodes the WAV to HCA (encrypted when the game has a key code),
   writing {id}.tmp.hca next to the build output
3. The temp file is published over the build output by atomic rename

CachedEncoder wraps an encoder with a transcode cache keyed by source content,
so identical audio (re-registered under a new BGM ID, or shared between games
with the same encoder settings) is encoded once.

Dependencies:
- Requires ffmpeg and VGAudioCli installed (paths configurable via settings)

Error codes:
- INPUT_NOT_FOUND: source file does not exist
- CODEC_UNSUPPORTED: ffmpeg cannot decode the source
- TOOL_NOT_FOUND: ffmpeg or VGAudioCli is missing
- ENCODE_TIMEOUT: a tool exceeded the encode timeout
- ENCODER_FAILED: any other tool failure
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
import threading
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from battle_themes.config import Settings
from battle_themes.contexts import ContextDescriptor
from battle_themes.db import (
    CACHE_INDEX_FILENAME,
    delete_cache_entry,
    get_cache_entry,
    init_db,
    touch_cache_entry,
    upsert_cache_entry,
)
from battle_themes.errors import EncodeError, EncodeErrorCode
from battle_themes.utils.atomic_io import atomic_copy_file, atomic_publish, tool_temp_path_for
from battle_themes.utils.hashing import cache_key, sha256_file
from battle_themes.utils.paths import BUILD_FILE_EXT

logger = logging.getLogger(__name__)

# --- Constants ---

# Intermediate PCM format handed to VGAudioCli
SAMPLE_RATE = 48000
CHANNELS = 2

# Source formats ffmpeg decodes for us
INPUT_TYPES = frozenset({".wav", ".mp3", ".ogg", ".flac", ".m4a", ".aac", ".opus", ".aiff", ".aif"})

# stderr fragments meaning ffmpeg could not read the source format
_CODEC_ERROR_MARKERS = (
    "decoder",
    "codec",
    "unsupported",
    "invalid data",
    "unknown format",
)


# --- HCA Encoder ---


class HcaEncoder:
    """ffmpeg + VGAudioCli encoder producing (optionally encrypted) HCA files."""

    input_types = INPUT_TYPES
    encoded_ext = BUILD_FILE_EXT

    def __init__(
        self,
        key_code: int | None = None,
        ffmpeg_path: str = "ffmpeg",
        vgaudio_cli_path: str = "VGAudioCli",
        timeout_sec: int = 300,
    ):
        self.key_code = key_code
        self.ffmpeg_path = ffmpeg_path
        self.vgaudio_cli_path = vgaudio_cli_path
        self.timeout_sec = timeout_sec

    @property
    def signature(self) -> str:
        """Stable description of everything that affects the output bytes."""
        return f"hca:key={self.key_code}:pcm_s16le:{SAMPLE_RATE}:{CHANNELS}"

    def encode(self, source_path: Path, output_path: Path) -> None:
        """Encode source_path to HCA at output_path.

        Raises:
            EncodeError: On any failure. output_path is left untouched.
        """
        source_path = Path(source_path)
        output_path = Path(output_path)

        if not source_path.is_file():
            raise EncodeError(
                EncodeErrorCode.INPUT_NOT_FOUND,
                f"Source file not found: {source_path}",
                str(source_path),
            )

        with tempfile.TemporaryDirectory(prefix="bgme-encode-") as scratch:
            wav_path = Path(scratch) / "decoded.wav"
            self._run(self._ffmpeg_command(source_path, wav_path), "ffmpeg", source_path)

            # Same directory as the output so the publish is a rename. VGAudioCli
            # picks the container from the extension, so keep .hca last.
            hca_path = tool_temp_path_for(output_path)
            try:
                self._run(self._vgaudio_command(wav_path, hca_path), "VGAudioCli", source_path)

                if not hca_path.is_file():
                    raise EncodeError(
                        EncodeErrorCode.ENCODER_FAILED,
                        "VGAudioCli reported success but wrote no output",
                        str(source_path),
                    )

                atomic_publish(hca_path, output_path)
            except OSError as e:
                raise EncodeError(
                    EncodeErrorCode.ENCODER_FAILED,
                    f"Failed to publish {output_path}: {e}",
                    str(source_path),
                ) from e
            finally:
                hca_path.unlink(missing_ok=True)

    def _ffmpeg_command(self, source_path: Path, wav_path: Path) -> list[str]:
        return [
            self.ffmpeg_path,
            "-v",
            "error",
            "-y",
            "-i",
            str(source_path),
            "-vn",
            "-ac",
            str(CHANNELS),
            "-ar",
            str(SAMPLE_RATE),
            "-c:a",
            "pcm_s16le",
            str(wav_path),
        ]

    def _vgaudio_command(self, wav_path: Path, hca_path: Path) -> list[str]:
        cmd = [self.vgaudio_cli_path, "-i", str(wav_path), "-o", str(hca_path)]
        if self.key_code is not None:
            cmd += ["--keycode", str(self.key_code)]
        return cmd

    def _run(self, cmd: list[str], tool: str, source_path: Path) -> None:
        """Run one external tool, mapping failures to EncodeError."""
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                check=False,
                timeout=self.timeout_sec,
            )
        except subprocess.TimeoutExpired:
            raise EncodeError(
                EncodeErrorCode.ENCODE_TIMEOUT,
                f"{tool} timed out after {self.timeout_sec} seconds",
                str(source_path),
            ) from None
        except FileNotFoundError:
            raise EncodeError(
                EncodeErrorCode.TOOL_NOT_FOUND, f"{tool} not found: {cmd[0]}", str(source_path)
            ) from None
        except OSError as e:
            raise EncodeError(
                EncodeErrorCode.ENCODER_FAILED, f"{tool} execution failed: {e}", str(source_path)
            ) from e

        if result.returncode == 0:
            return

        stderr = result.stderr.decode("utf-8", errors="replace")
        if tool == "ffmpeg" and any(x in stderr.lower() for x in _CODEC_ERROR_MARKERS):
            code = EncodeErrorCode.CODEC_UNSUPPORTED
        else:
            code = EncodeErrorCode.ENCODER_FAILED
        raise EncodeError(
            code,
            f"{tool} exited with {result.returncode}: {stderr.strip()[:500]}",
            str(source_path),
        )


# --- Cached Encoder ---


class CachedEncoder:
    """Transcode cache in front of another encoder.

    Cached files live at {cache_dir}/{cache_key}{encoded_ext}, indexed in
    {cache_dir}/index.db. An index row whose file is gone is a miss.

    A corrupt index is recreated. If no index can be opened the encoder
    runs uncached, since the cache only saves work.
    """

    def __init__(self, inner, cache_dir: str | Path):
        self.inner = inner
        self.cache_dir = Path(cache_dir)
        self.input_types = frozenset(inner.input_types)
        self.encoded_ext = inner.encoded_ext
        self.signature = getattr(inner, "signature", type(inner).__name__)

        self._engine, self._session_factory = self._open_index()
        # Serializes index reads/writes; encodes themselves run in parallel.
        self._index_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._session_factory is not None

    def close(self) -> None:
        """Release the index database connection pool."""
        if self._engine is not None:
            self._engine.dispose()

    def _open_index(self):
        index_path = self.cache_dir / CACHE_INDEX_FILENAME
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            return init_db(index_path)
        except SQLAlchemyError as e:
            logger.warning("Transcode cache index %s is unusable, recreating: %s", index_path, e)
        except OSError as e:
            logger.warning("Transcode cache disabled for %s: %s", self.cache_dir, e)
            return None, None

        try:
            index_path.unlink(missing_ok=True)
            return init_db(index_path)
        except (OSError, SQLAlchemyError) as e:
            logger.warning("Transcode cache disabled for %s: %s", self.cache_dir, e)
            return None, None

    def cached_path(self, key: str) -> Path:
        return self.cache_dir / f"{key}{self.encoded_ext}"

    def encode(self, source_path: Path, output_path: Path) -> None:
        """Copy from cache if present, otherwise encode and add to cache.

        Raises:
            EncodeError: If the source is missing or the inner encoder fails.
        """
        source_path = Path(source_path)
        output_path = Path(output_path)

        if not source_path.is_file():
            raise EncodeError(
                EncodeErrorCode.INPUT_NOT_FOUND,
                f"Source file not found: {source_path}",
                str(source_path),
            )

        if not self.enabled:
            self.inner.encode(source_path, output_path)
            return

        content_hash = sha256_file(source_path)
        key = cache_key(content_hash, self.signature)
        cached_file = self.cached_path(key)

        if self._lookup(key, source_path):
            try:
                atomic_copy_file(cached_file, output_path)
                logger.debug("Cache hit: %s -> %s", source_path.name, cached_file.name)
                return
            except OSError as e:
                logger.warning("Failed to copy cached file %s: %s", cached_file, e)

        self.inner.encode(source_path, output_path)
        self._store(key, content_hash, source_path, output_path)

    def _lookup(self, key: str, source_path: Path) -> bool:
        with self._index_lock:
            session = self._session_factory()
            try:
                entry = get_cache_entry(session, key)
                if entry is None:
                    return False

                if not (self.cache_dir / entry.cached_filename).is_file():
                    logger.debug("Cached file missing: %s", entry.cached_filename)
                    delete_cache_entry(session, key)
                    session.commit()
                    return False

                touch_cache_entry(session, entry, str(source_path))
                session.commit()
                return True
            except SQLAlchemyError as e:
                session.rollback()
                logger.warning("Transcode cache lookup failed for %s: %s", source_path, e)
                return False
            finally:
                session.close()

    def _store(self, key: str, content_hash: str, source_path: Path, output_path: Path) -> None:
        """Add a freshly encoded file to the cache. Failures only cost a future re-encode."""
        cached_file = self.cached_path(key)
        with self._index_lock:
            session = self._session_factory()
            try:
                atomic_copy_file(output_path, cached_file)
                upsert_cache_entry(
                    session,
                    cache_key=key,
                    content_hash=content_hash,
                    encoder_signature=self.signature,
                    source_path=str(source_path),
                    source_size=source_path.stat().st_size,
                    cached_filename=cached_file.name,
                    cached_size=cached_file.stat().st_size,
                )
                session.commit()
                logger.debug("Cached: %s -> %s", source_path.name, cached_file.name)
            except (OSError, SQLAlchemyError) as e:
                session.rollback()
                logger.warning("Failed to cache %s: %s", source_path, e)
            finally:
                session.close()


# --- Factory ---


def build_encoder(
    descriptor: ContextDescriptor,
    settings: Settings,
    cache_dir: str | Path,
) -> CachedEncoder:
    """Build the default encoder for a game context.

    Args:
        descriptor: Context descriptor (supplies the HCA key code).
        settings: Tool paths and timeout.
        cache_dir: Transcode cache directory for this context.

    Returns:
        A CachedEncoder wrapping an HcaEncoder.
    """
    inner = HcaEncoder(
        key_code=descriptor.hca_key_code,
        ffmpeg_path=settings.ffmpeg_path,
        vgaudio_cli_path=settings.vgaudio_cli_path,
        timeout_sec=settings.encode_timeout_sec,
    )
    return CachedEncoder(inner, cache_dir)
