"""BGME Battle Themes - Target game contexts.

Each supported game is described by one row in CONTEXT_DESCRIPTORS.
Supporting a new game means adding a row, not a code path.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from battle_themes.config import Settings
from battle_themes.errors import MissingBaseIdError, UnknownContextError


class GameContext(StrEnum):
    """Host games the mod loader can report."""

    P3P_PC = "P3P_PC"
    P4G_PC = "P4G_PC"
    P5R_PC = "P5R_PC"
    P3R_PC = "P3R_PC"
    METAPHOR = "Metaphor"


@dataclass(frozen=True)
class ContextDescriptor:
    """Path, ID and encoder parameters for one game."""

    base_path_segment: str
    base_id_config_key: str
    hca_key_code: int | None = None
    # Cache folder under the mod dir shared with other games, if any
    shared_cache_dir: str | None = None


CONTEXT_DESCRIPTORS: dict[GameContext, ContextDescriptor] = {
    GameContext.P3P_PC: ContextDescriptor(
        base_path_segment="P3P",
        base_id_config_key="BaseBgmId_P3P",
        shared_cache_dir="P4G_P3P_cache",
    ),
    GameContext.P4G_PC: ContextDescriptor(
        base_path_segment="P4G",
        base_id_config_key="BaseBgmId_P4G",
        shared_cache_dir="P4G_P3P_cache",
    ),
    GameContext.P5R_PC: ContextDescriptor(
        base_path_segment="P5R",
        base_id_config_key="BaseBgmId_P5R",
        hca_key_code=9923540143823782,
    ),
    GameContext.P3R_PC: ContextDescriptor(
        base_path_segment="P3R",
        base_id_config_key="BaseBgmId_P3R",
        hca_key_code=11918920,
    ),
}

# Substring of the host app ID -> context, checked in order
_APP_ID_MARKERS = (
    ("p3r", GameContext.P3R_PC),
    ("p5r", GameContext.P5R_PC),
    ("p4g", GameContext.P4G_PC),
    ("p3p", GameContext.P3P_PC),
    ("metaphor", GameContext.METAPHOR),
)


def parse_context(value: GameContext | str) -> GameContext:
    """Coerce a context name to GameContext.

    Raises:
        UnknownContextError: If the name is not a known game.
    """
    if isinstance(value, GameContext):
        return value
    try:
        return GameContext(value)
    except ValueError:
        raise UnknownContextError(str(value)) from None


def get_descriptor(context: GameContext | str) -> ContextDescriptor:
    """Look up the descriptor for a context.

    Raises:
        UnknownContextError: If the context has no descriptor.
    """
    context = parse_context(context)
    descriptor = CONTEXT_DESCRIPTORS.get(context)
    if descriptor is None:
        raise UnknownContextError(str(context))
    return descriptor


def base_bgm_id(descriptor: ContextDescriptor, settings: Settings) -> int:
    """Get the first BGM ID for a context.

    Raises:
        MissingBaseIdError: If settings lack the descriptor's config key.
    """
    value = settings.base_bgm_ids.get(descriptor.base_id_config_key)
    if value is None:
        raise MissingBaseIdError(descriptor.base_id_config_key)
    return value


def detect_context(app_id: str) -> GameContext:
    """Map a host application ID (e.g. "p5r.exe") to its context.

    Raises:
        UnknownContextError: If no known game matches.
    """
    lowered = app_id.lower()
    for marker, context in _APP_ID_MARKERS:
        if marker in lowered:
            return context
    raise UnknownContextError(app_id)


__all__ = [
    "GameContext",
    "ContextDescriptor",
    "CONTEXT_DESCRIPTORS",
    "parse_context",
    "get_descriptor",
    "base_bgm_id",
    "detect_context",
]
