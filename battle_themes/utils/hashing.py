"""BGME Battle Themes - Hashing utilities.

All hash functions return HEX DIGEST ONLY (no prefix).
"""

import hashlib
from pathlib import Path


def sha256_file(path: str | Path) -> str:
    """Compute SHA256 hash of a file.

    Args:
        path: Path to the file to hash.

    Returns:
        SHA256 hex digest (64 lowercase hex characters, no prefix).

    Raises:
        FileNotFoundError: If the file does not exist.
        IOError: If the file cannot be read.
    """
    path = Path(path)
    hasher = hashlib.sha256()

    with open(path, "rb") as f:
        while chunk := f.read(65536):  # 64KB chunks
            hasher.update(chunk)

    return hasher.hexdigest()


def sha256_bytes(data: bytes) -> str:
    """Compute SHA256 hash of bytes.

    Args:
        data: Bytes to hash.

    Returns:
        SHA256 hex digest (64 lowercase hex characters, no prefix).
    """
    return hashlib.sha256(data).hexdigest()


def cache_key(content_hash: str, encoder_signature: str) -> str:
    """Compute the transcode cache key for a source under an encoder config.

    The same source encoded with a different key code or format gets a
    different key.

    Args:
        content_hash: sha256 hex digest of the source file.
        encoder_signature: Stable description of the encoder configuration.

    Returns:
        32-character hex string.
    """
    return sha256_bytes(f"{content_hash}:{encoder_signature}".encode("utf-8"))[:32]
