"""BGME Battle Themes - Huey task queue configuration.

Huey setup with SQLite backend so a host can run a registration pass
outside its startup path (e.g. after the enabled mod list changes).

How to run:
1. Start the registry API:
   uvicorn services.registry_api.main:app --reload

2. Start the Huey consumer (processes queued passes):
   huey_consumer.py battle_themes.huey_app.huey
"""

from __future__ import annotations

import logging
from pathlib import Path

from huey import SqliteHuey

from battle_themes.config import HUEY_DB_PATH, MOD_ID, MODS_DIR, QUEUE_DIR

logger = logging.getLogger(__name__)


def _ensure_queue_dir() -> None:
    """Ensure the queue directory exists."""
    Path(QUEUE_DIR).mkdir(parents=True, exist_ok=True)


_ensure_queue_dir()

# SQLite-backed Huey instance (offline-friendly)
huey = SqliteHuey(
    name="bgme_battle_themes",
    filename=str(HUEY_DB_PATH),
    immediate=False,  # Tasks queued for consumer processing
)


def run_registration_pass(
    context: str,
    enabled_mod_ids: list[str],
    mods_dir: str | None = None,
) -> dict:
    """Resolve packages and run one registration pass.

    Args:
        context: Game context name (e.g. "P5R_PC").
        enabled_mod_ids: Enabled mod IDs in load order.
        mods_dir: Directory holding all mods. Defaults to config.MODS_DIR.

    Returns:
        Dict with the pass result (for logging/debugging).
    """
    # Import here to avoid circular imports
    from battle_themes.config import load_settings, migrate_legacy_base_ids
    from battle_themes.contexts import get_descriptor
    from battle_themes.discovery import discover_enabled_packages
    from battle_themes.registry import MusicRegistry

    mods_root = Path(mods_dir) if mods_dir is not None else MODS_DIR
    settings = load_settings()
    migrate_legacy_base_ids(settings, get_descriptor(context).base_id_config_key)

    packages = discover_enabled_packages(mods_root, enabled_mod_ids)
    registry = MusicRegistry(context, settings, mods_root / MOD_ID, packages)

    return {"status": "ok", "context": str(registry.context), **registry.result.to_dict()}


@huey.task()
def registration_pass_task(
    context: str,
    enabled_mod_ids: list[str],
    mods_dir: str | None = None,
) -> dict:
    """Huey task running a registration pass for one context."""
    logger.info("Registration pass task started for context=%s", context)
    result = run_registration_pass(context, enabled_mod_ids, mods_dir)
    logger.info("Registration pass task completed for context=%s: %s", context, result)
    return result


def enqueue_registration_pass(
    context: str,
    enabled_mod_ids: list[str],
    mods_dir: str | None = None,
) -> None:
    """Enqueue a registration pass.

    Non-blocking: returns immediately even if the Huey consumer is not running.
    The task is persisted in SQLite and processed when the consumer starts.
    """
    logger.info("Enqueueing registration pass for context=%s", context)
    registration_pass_task(context, list(enabled_mod_ids), mods_dir)
