"""BGME Battle Themes - Configuration constants and settings.

Minimal configuration layer. No external config libraries.
Values come from module constants with environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Repository root (parent of battle_themes/)
REPO_ROOT = Path(__file__).parent.parent.resolve()

# Data directories for service processes (API + Huey consumer)
DATA_DIR = Path(os.environ.get("BGME_DATA_DIR", REPO_ROOT / "data"))

# Queue directory and Huey database path
QUEUE_DIR = DATA_DIR / "queue"
HUEY_DB_PATH = QUEUE_DIR / "huey.db"

# Directory holding every installed mod (this mod and the ones it scans)
MODS_DIR = Path(os.environ.get("BGME_MODS_DIR", DATA_DIR / "mods"))

# Mod ID of this package, also the source ID of registration events
MOD_ID = "BGME.BattleThemes"

# Per-package folder scanned for music
PACKAGE_MUSIC_SUBDIR = ("battle-themes", "music")

# Per-package manifest file
MOD_CONFIG_FILENAME = "ModConfig.json"

# Default first BGM ID for every context
DEFAULT_BASE_BGM_ID = 4000

# Base BGM IDs shipped by older releases, upgraded on load
LEGACY_BASE_BGM_IDS = {
    "BaseBgmId_P5R": 12000,
    "BaseBgmId_P4G": 693,
}

# Encoder defaults
DEFAULT_FFMPEG_PATH = "ffmpeg"
DEFAULT_VGAUDIO_CLI_PATH = "VGAudioCli"
DEFAULT_ENCODE_TIMEOUT_SEC = 300

# Every config key a context may reference, see battle_themes.contexts
BASE_BGM_ID_KEYS = (
    "BaseBgmId_P3P",
    "BaseBgmId_P4G",
    "BaseBgmId_P5R",
    "BaseBgmId_P3R",
)


def _get_int_env(name: str, default: int, minimum: int = 0) -> int:
    """Get an integer from the environment or use the default.

    Invalid or out-of-range values fall back to the default.

    Args:
        name: Environment variable name.
        default: Value used when unset or invalid.
        minimum: Smallest accepted value.

    Returns:
        Parsed integer.
    """
    env_val = os.environ.get(name)
    if env_val:
        try:
            value = int(env_val)
            if value >= minimum:
                return value
        except ValueError:
            pass
        logger.warning("Ignoring invalid %s=%r, using %d", name, env_val, default)
    return default


def _default_encode_workers() -> int:
    return max(1, os.cpu_count() or 1)


@dataclass
class Settings:
    """Runtime settings for a registration pass.

    base_bgm_ids is keyed by the config key named in each context
    descriptor (e.g. "BaseBgmId_P5R").
    """

    base_bgm_ids: dict[str, int] = field(
        default_factory=lambda: {key: DEFAULT_BASE_BGM_ID for key in BASE_BGM_ID_KEYS}
    )
    encode_workers: int = field(default_factory=_default_encode_workers)
    ffmpeg_path: str = DEFAULT_FFMPEG_PATH
    vgaudio_cli_path: str = DEFAULT_VGAUDIO_CLI_PATH
    encode_timeout_sec: int = DEFAULT_ENCODE_TIMEOUT_SEC


def load_settings() -> Settings:
    """Build Settings from the environment.

    Environment variables:
    - BGME_BASE_BGM_ID_<SEGMENT> (e.g. BGME_BASE_BGM_ID_P5R)
    - BGME_ENCODE_WORKERS
    - BGME_FFMPEG
    - BGME_VGAUDIO_CLI
    - BGME_ENCODE_TIMEOUT_SEC

    Returns:
        Settings with overrides applied.
    """
    base_bgm_ids = {}
    for key in BASE_BGM_ID_KEYS:
        segment = key.removeprefix("BaseBgmId_")
        base_bgm_ids[key] = _get_int_env(f"BGME_BASE_BGM_ID_{segment}", DEFAULT_BASE_BGM_ID)

    return Settings(
        base_bgm_ids=base_bgm_ids,
        encode_workers=_get_int_env("BGME_ENCODE_WORKERS", _default_encode_workers(), minimum=1),
        ffmpeg_path=os.environ.get("BGME_FFMPEG") or DEFAULT_FFMPEG_PATH,
        vgaudio_cli_path=os.environ.get("BGME_VGAUDIO_CLI") or DEFAULT_VGAUDIO_CLI_PATH,
        encode_timeout_sec=_get_int_env(
            "BGME_ENCODE_TIMEOUT_SEC", DEFAULT_ENCODE_TIMEOUT_SEC, minimum=1
        ),
    )


def migrate_legacy_base_ids(settings: Settings, config_key: str) -> bool:
    """Upgrade a base BGM ID left at an old release's default.

    Only the key used by the active context is touched.

    Args:
        settings: Settings to update in place.
        config_key: The active context's base ID config key.

    Returns:
        True if the value was changed.
    """
    legacy = LEGACY_BASE_BGM_IDS.get(config_key)
    if legacy is None or settings.base_bgm_ids.get(config_key) != legacy:
        return False

    settings.base_bgm_ids[config_key] = DEFAULT_BASE_BGM_ID
    logger.info(
        "%s: Base BGM ID updated from %d to %d.", config_key, legacy, DEFAULT_BASE_BGM_ID
    )
    return True
