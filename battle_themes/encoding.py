"""BGME Battle Themes - Encoder contract.

The registry only depends on this protocol. Concrete encoders live in
services/worker_encode.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class Encoder(Protocol):
    """Turns one source audio file into one encoded build output.

    input_types: extensions accepted, lowercase with a leading dot.
    encoded_ext: extension of encoded files (also used to purge caches).
    encode: writes a complete file at output_path or raises
        battle_themes.errors.EncodeError, leaving nothing at output_path.
        Must be safe to call from several threads at once.
    """

    input_types: frozenset[str]
    encoded_ext: str

    def encode(self, source_path: Path, output_path: Path) -> None: ...


__all__ = ["Encoder"]
