"""BGME Battle Themes - Failpoint injection for resilience testing.

Provides deterministic crash injection for testing interrupted registration
passes. Used to verify atomic publish of registry state and build outputs.

Safety gate: Failpoints are only active when BGME_ENABLE_FAILPOINTS=1.
The default is a complete no-op.

Environment variables:
- BGME_ENABLE_FAILPOINTS: Set to "1" to enable failpoint system (default: disabled)
- BGME_FAILPOINT: Name of the failpoint to trigger (e.g., "REGISTRY_BEFORE_PERSIST")
- BGME_FAILPOINT_EXIT_CODE: Exit code to use when crashing (default: 42)

Failpoints in use:
- REGISTRY_BEFORE_PERSIST: After encoding and pruning, before music.json is written
- ATOMIC_WRITE_AFTER_TMP_WRITE: After writing to temp file, before fsync
- ATOMIC_WRITE_AFTER_FSYNC_BEFORE_RENAME: After fsync, before atomic rename
- ATOMIC_WRITE_AFTER_RENAME: After atomic rename completes
"""

from __future__ import annotations

import os

_PREFIX = "FAILPOINT_"


def _normalize(name: str) -> str:
    name = name.upper()
    if name.startswith(_PREFIX):
        name = name[len(_PREFIX) :]
    return name


def maybe_fail(point: str) -> None:
    """Crash the process if the named failpoint is active.

    Uses os._exit() so no finally blocks or atexit handlers run,
    which is as close to a power cut as a test can get.

    Args:
        point: The failpoint name (with or without "FAILPOINT_" prefix).
    """
    if os.environ.get("BGME_ENABLE_FAILPOINTS") != "1":
        return

    target = os.environ.get("BGME_FAILPOINT", "")
    if not target or _normalize(point) != _normalize(target):
        return

    try:
        exit_code = int(os.environ.get("BGME_FAILPOINT_EXIT_CODE", "42"))
    except ValueError:
        exit_code = 42

    os._exit(exit_code)
