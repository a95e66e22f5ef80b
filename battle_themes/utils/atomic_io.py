"""BGME Battle Themes - Atomic I/O utilities.

Implements the atomic publish rule used for registry state and build outputs:
1. Write to temp path in same directory
2. Flush + best-effort fsync
3. Rename temp -> final (the publish boundary)

This ensures that the final path either contains complete valid data
or does not exist. Partial writes only affect the temp file.

Failpoints:
- ATOMIC_WRITE_AFTER_TMP_WRITE: After writing to temp file, before fsync
- ATOMIC_WRITE_AFTER_FSYNC_BEFORE_RENAME: After fsync, before atomic rename
- ATOMIC_WRITE_AFTER_RENAME: After atomic rename completes
"""

import os
from pathlib import Path

from battle_themes.utils.failpoints import maybe_fail

TEMP_SUFFIX = ".tmp"


def temp_path_for(final_path: str | Path, temp_suffix: str = TEMP_SUFFIX) -> Path:
    """Get the sibling temp path used while publishing final_path."""
    final_path = Path(final_path)
    return final_path.with_suffix(final_path.suffix + temp_suffix)


def tool_temp_path_for(final_path: str | Path, temp_suffix: str = TEMP_SUFFIX) -> Path:
    """Get a sibling temp path that keeps final_path's extension.

    For external tools that pick their output format from the file
    extension: 4000.hca -> 4000.tmp.hca.
    """
    final_path = Path(final_path)
    return final_path.with_name(final_path.stem + temp_suffix + final_path.suffix)


def is_temp_file(path: str | Path, temp_suffix: str = TEMP_SUFFIX) -> bool:
    """True for paths produced by temp_path_for or tool_temp_path_for."""
    path = Path(path)
    return path.name.endswith(temp_suffix) or (
        bool(path.suffix) and path.stem.endswith(temp_suffix)
    )


def _write_all(fd: int, data: bytes) -> None:
    """Write all bytes to a file descriptor, handling partial writes.

    Loops until all bytes are written, handling short writes and EINTR.

    Args:
        fd: File descriptor to write to.
        data: Bytes to write.

    Raises:
        OSError: If write fails or returns 0 bytes unexpectedly.
    """
    total_written = 0
    data_len = len(data)

    while total_written < data_len:
        try:
            written = os.write(fd, data[total_written:])
            if written == 0:
                raise OSError("os.write() returned 0 bytes unexpectedly")
            total_written += written
        except InterruptedError:
            continue


def _remove_quietly(path: Path) -> None:
    try:
        os.remove(path)
    except OSError:
        pass  # Best-effort cleanup


def atomic_write_bytes(
    final_path: str | Path,
    data: bytes,
    temp_suffix: str = TEMP_SUFFIX,
) -> None:
    """Atomically write bytes to a file.

    Idempotent: safe to call even if temp file exists (overwrites temp).
    Never corrupts final path - atomic rename ensures all-or-nothing.

    Args:
        final_path: The target path for the final file.
        data: Bytes to write.
        temp_suffix: Suffix for the temporary file (default: ".tmp").

    Raises:
        OSError: If directory creation, write, or rename fails.
    """
    final_path = Path(final_path)
    temp_path = temp_path_for(final_path, temp_suffix)

    final_path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
    try:
        _write_all(fd, data)

        maybe_fail("ATOMIC_WRITE_AFTER_TMP_WRITE")

        os.fsync(fd)
    except OSError:
        os.close(fd)
        _remove_quietly(temp_path)
        raise
    else:
        os.close(fd)

    _fsync_directory(final_path.parent)

    maybe_fail("ATOMIC_WRITE_AFTER_FSYNC_BEFORE_RENAME")

    # Atomic rename (POSIX guarantees atomicity)
    os.replace(temp_path, final_path)

    maybe_fail("ATOMIC_WRITE_AFTER_RENAME")


def atomic_write_text(
    final_path: str | Path,
    text: str,
    encoding: str = "utf-8",
    temp_suffix: str = TEMP_SUFFIX,
) -> None:
    """Atomically write text to a file.

    Args:
        final_path: The target path for the final file.
        text: Text string to write.
        encoding: Text encoding (default: utf-8).
        temp_suffix: Suffix for the temporary file (default: ".tmp").

    Raises:
        OSError: If directory creation, write, or rename fails.
    """
    atomic_write_bytes(final_path, text.encode(encoding), temp_suffix)


def _fsync_directory(dir_path: Path) -> None:
    """Best-effort fsync on a directory.

    Silently ignores errors as this is best-effort.

    Args:
        dir_path: Directory path to sync.
    """
    try:
        fd = os.open(dir_path, os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except (OSError, AttributeError):
        # O_DIRECTORY may not be available on all platforms
        pass


def atomic_publish(temp_path: str | Path, final_path: str | Path) -> None:
    """Publish an already-written temp file at final_path.

    For files produced by external tools that write to a path we choose.
    Fsyncs the temp file, renames it over final_path, then fsyncs the
    directory.

    Args:
        temp_path: Complete file to publish.
        final_path: Destination path.

    Raises:
        OSError: If fsync or rename fails. The temp file is removed.
    """
    temp_path = Path(temp_path)
    final_path = Path(final_path)

    try:
        fd = os.open(temp_path, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
        os.replace(temp_path, final_path)
    except OSError:
        _remove_quietly(temp_path)
        raise

    _fsync_directory(final_path.parent)


def atomic_copy_file(
    source_path: str | Path,
    final_path: str | Path,
    temp_suffix: str = TEMP_SUFFIX,
    chunk_size: int = 65536,
) -> None:
    """Atomically copy a file from source to destination.

    1. Copy to temp file in same directory as final
    2. Flush + best-effort fsync
    3. Rename temp -> final (atomic publish boundary)
    4. Best-effort fsync directory

    On failure, orphan temp files are cleaned up.

    Args:
        source_path: Path to the source file.
        final_path: Target path for the copied file.
        temp_suffix: Suffix for the temporary file (default: ".tmp").
        chunk_size: Buffer size for copying (default: 64KB).

    Raises:
        FileNotFoundError: If source file does not exist.
        OSError: If copy or rename fails.
    """
    source_path = Path(source_path)
    final_path = Path(final_path)
    temp_path = temp_path_for(final_path, temp_suffix)

    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {source_path}")

    final_path.parent.mkdir(parents=True, exist_ok=True)

    src_fd = os.open(source_path, os.O_RDONLY)
    try:
        dst_fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        try:
            while True:
                chunk = os.read(src_fd, chunk_size)
                if not chunk:
                    break
                _write_all(dst_fd, chunk)

            os.fsync(dst_fd)
        except OSError:
            os.close(dst_fd)
            _remove_quietly(temp_path)
            raise
        else:
            os.close(dst_fd)
    finally:
        os.close(src_fd)

    os.replace(temp_path, final_path)

    _fsync_directory(final_path.parent)


def cleanup_orphan_temp_files(
    directory: str | Path,
    temp_suffix: str = TEMP_SUFFIX,
    recursive: bool = False,
) -> int:
    """Clean up orphan temp files in a directory.

    Matches both temp naming schemes: music.json.tmp and 4000.tmp.hca.
    Called at the start of a registration pass to remove incomplete writes
    from an interrupted run.

    Args:
        directory: Directory to scan for temp files.
        temp_suffix: Suffix pattern to match (default: ".tmp").
        recursive: Also scan subdirectories.

    Returns:
        Number of files removed.
    """
    directory = Path(directory)
    removed = 0

    if not directory.exists():
        return 0

    candidates = list(directory.rglob("*") if recursive else directory.glob("*"))
    for temp_file in candidates:
        if not is_temp_file(temp_file, temp_suffix) or not temp_file.is_file():
            continue
        try:
            temp_file.unlink()
            removed += 1
        except OSError:
            pass  # Best-effort cleanup

    return removed
