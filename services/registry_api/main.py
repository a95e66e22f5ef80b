"""BGME Battle Themes - Registry API FastAPI application.

Read-only view of the registry state each context persisted on its last
successful pass, plus a non-blocking trigger for a new pass (queued via Huey).
This module does NOT run registration passes itself.

Run with:
    uvicorn services.registry_api.main:app --reload  # dev server only
"""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from battle_themes.config import MOD_ID, MODS_DIR
from battle_themes.contexts import GameContext, detect_context, get_descriptor, parse_context
from battle_themes.errors import ConfigurationError, RegistryErrorCode
from battle_themes.schemas import (
    ErrorResponse,
    PackageSongsResponse,
    RegisterAcceptedResponse,
    RegisterRequest,
    SongResponse,
)
from battle_themes.state import load_registry_state
from battle_themes.utils.paths import context_build_dir

logger = logging.getLogger(__name__)

# This mod's install directory (build dirs live below it)
_mod_dir: Path = MODS_DIR / MOD_ID


def get_mod_dir() -> Path:
    """Get this mod's install directory."""
    return _mod_dir


# --- FastAPI App ---


app = FastAPI(
    title="BGME Battle Themes - Registry API",
    description="Registered battle themes per package, and registration pass queueing.",
    version="0.1.0",
)


# --- Error Handling ---


def error_code_to_status(error_code: str) -> int:
    """Map error codes to HTTP status codes.

    - UNKNOWN_CONTEXT -> 404
    - everything else -> 500
    """
    if error_code == RegistryErrorCode.UNKNOWN_CONTEXT:
        return 404
    return 500


def make_error_response(error_code: str, error_message: str) -> JSONResponse:
    """Create a JSON error response."""
    return JSONResponse(
        status_code=error_code_to_status(error_code),
        content=ErrorResponse(
            error_code=error_code,
            error_message=error_message,
        ).model_dump(),
    )


# --- Endpoints ---


@app.get(
    "/v1/contexts/{context}/packages/{package_id}/songs",
    response_model=PackageSongsResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown context"}},
    summary="List songs registered by a package",
)
def list_package_songs(context: str, package_id: str):
    """Songs a package registered in a context, in registration order.

    Packages with no registered songs return an empty list.
    """
    try:
        game = parse_context(context)
        get_descriptor(game)
    except ConfigurationError as e:
        return make_error_response(e.error_code, e.message)

    state = load_registry_state(context_build_dir(get_mod_dir(), game))
    return PackageSongsResponse(
        context=str(game),
        package_id=package_id,
        songs=[SongResponse.from_song(song) for song in state.songs_for_package(package_id)],
    )


@app.post(
    "/v1/contexts/{context}/register",
    status_code=202,
    response_model=RegisterAcceptedResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown context"},
        500: {"model": ErrorResponse, "description": "Queueing failed"},
    },
    summary="Queue a registration pass",
)
def register_context(context: str, request: RegisterRequest):
    """Queue a registration pass for a context (non-blocking)."""
    try:
        game = parse_context(context)
        get_descriptor(game)
    except ConfigurationError as e:
        return make_error_response(e.error_code, e.message)

    return _queue_registration_pass(game, request)


@app.post(
    "/v1/apps/{app_id}/register",
    status_code=202,
    response_model=RegisterAcceptedResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown or unsupported game"},
        500: {"model": ErrorResponse, "description": "Queueing failed"},
    },
    summary="Queue a registration pass for the game a host app runs",
)
def register_app(app_id: str, request: RegisterRequest):
    """Queue a registration pass for the game identified by a host app ID (e.g. p5r.exe)."""
    try:
        game = detect_context(app_id)
        get_descriptor(game)
    except ConfigurationError as e:
        return make_error_response(e.error_code, e.message)

    return _queue_registration_pass(game, request)


def _queue_registration_pass(game: GameContext, request: RegisterRequest):
    try:
        # Import here so the API can start without the queue directory
        from battle_themes.huey_app import enqueue_registration_pass

        enqueue_registration_pass(str(game), request.enabled_mod_ids, str(get_mod_dir().parent))
    except Exception:
        # Log full exception server-side, return generic message to client
        logger.exception("Failed to queue registration pass for %s", game)
        return make_error_response(
            RegistryErrorCode.QUEUE_FAILED, "Failed to queue registration pass"
        )

    return RegisterAcceptedResponse(context=str(game))


@app.get("/health", summary="Health check")
def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}


# --- For testing: allow overriding the mod directory ---


def override_mod_dir(mod_dir: str | Path) -> None:
    """Override this mod's install directory for testing."""
    global _mod_dir
    _mod_dir = Path(mod_dir)
