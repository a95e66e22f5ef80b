"""Shared pytest fixtures for BGME Battle Themes tests.

Common fixtures: a fake encoder, a mods directory builder, and settings.
"""

import json
import os
import tempfile
import threading
import wave
from pathlib import Path

# Keep service data (Huey queue) out of the repository during tests.
# Must run before battle_themes.config is imported.
os.environ.setdefault("BGME_DATA_DIR", tempfile.mkdtemp(prefix="bgme-test-data-"))

import pytest  # noqa: E402

from battle_themes.config import MOD_ID, Settings  # noqa: E402
from battle_themes.errors import EncodeError, EncodeErrorCode  # noqa: E402

FAKE_HEADER = b"HCA\x00"


class FakeEncoder:
    """Encoder double: writes a header + the source bytes, records calls.

    Files whose name is in fail_on raise EncodeError without writing output.
    """

    input_types = frozenset({".wav", ".ogg", ".mp3"})
    encoded_ext = ".hca"

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls: list[tuple[Path, Path]] = []
        self.closed = False
        self._lock = threading.Lock()

    def encode(self, source_path, output_path):
        source_path = Path(source_path)
        output_path = Path(output_path)
        with self._lock:
            self.calls.append((source_path, output_path))
        if source_path.name in self.fail_on:
            raise EncodeError(EncodeErrorCode.ENCODER_FAILED, "forced failure", str(source_path))
        output_path.write_bytes(FAKE_HEADER + source_path.read_bytes())

    def close(self):
        self.closed = True

    @property
    def encoded_names(self) -> list[str]:
        return sorted(source.name for source, _ in self.calls)


def write_test_wav(path: Path, seconds: float = 0.1, sample_rate: int = 22050) -> None:
    """Create a minimal valid WAV file (silence)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(b"\x00" * int(sample_rate * seconds) * 2)


def make_package(mods_dir: Path, mod_id: str, files=(), folder: str | None = None) -> Path:
    """Create an installed package with a ModConfig.json and music files.

    Files get distinct contents so cache keys differ per file.

    Returns:
        The package directory.
    """
    package_dir = mods_dir / (folder or mod_id)
    package_dir.mkdir(parents=True, exist_ok=True)
    (package_dir / "ModConfig.json").write_text(
        json.dumps({"ModId": mod_id, "ModName": mod_id}), encoding="utf-8"
    )
    for name in files:
        add_song(package_dir, name)
    return package_dir


def add_song(package_dir: Path, name: str, content: bytes | None = None) -> Path:
    """Add a music file under battle-themes/music."""
    path = package_dir / "battle-themes" / "music" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content if content is not None else f"audio:{name}".encode())
    return path


@pytest.fixture
def settings():
    """Settings with base ID 4000 everywhere and two encode workers."""
    return Settings(encode_workers=2)


@pytest.fixture
def mods_dir(tmp_path):
    """Directory holding all installed mods, including this one."""
    path = tmp_path / "mods"
    (path / MOD_ID).mkdir(parents=True)
    return path


@pytest.fixture
def mod_dir(mods_dir):
    """This mod's install directory."""
    return mods_dir / MOD_ID


@pytest.fixture
def encoder():
    return FakeEncoder()


@pytest.fixture
def sample_audio_file():
    """Create a sample WAV audio file for testing.

    Yields:
        Path: Path to the temporary WAV file.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "sample.wav"
        write_test_wav(path)
        yield path
