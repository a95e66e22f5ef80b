"""BGME Battle Themes - Error taxonomy.

Only configuration errors escape a registration pass. Encode errors are
raised by encoders and contained by the registry engine.
"""

from __future__ import annotations

from enum import StrEnum


class RegistryErrorCode(StrEnum):
    """Error codes for fatal registry configuration problems."""

    UNKNOWN_CONTEXT = "UNKNOWN_CONTEXT"
    MISSING_BASE_ID = "MISSING_BASE_ID"
    QUEUE_FAILED = "QUEUE_FAILED"


class EncodeErrorCode(StrEnum):
    """Error codes for a single failed encode."""

    INPUT_NOT_FOUND = "INPUT_NOT_FOUND"
    CODEC_UNSUPPORTED = "CODEC_UNSUPPORTED"
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    ENCODE_TIMEOUT = "ENCODE_TIMEOUT"
    ENCODER_FAILED = "ENCODER_FAILED"


class RegistryError(Exception):
    """Base exception for registry errors."""

    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"{error_code}: {message}")


class ConfigurationError(RegistryError):
    """Fatal startup error. No state is mutated before this is raised."""


class UnknownContextError(ConfigurationError):
    """Target context has no descriptor."""

    def __init__(self, context: str):
        self.context = context
        super().__init__(RegistryErrorCode.UNKNOWN_CONTEXT, f"Unknown game: {context}")


class MissingBaseIdError(ConfigurationError):
    """Settings do not define the base BGM ID a context needs."""

    def __init__(self, config_key: str):
        self.config_key = config_key
        super().__init__(
            RegistryErrorCode.MISSING_BASE_ID, f"No base BGM ID configured for {config_key}"
        )


class EncodeError(Exception):
    """Raised by an encoder when a song cannot be encoded.

    The encoder guarantees no partial file is left at the output path.
    """

    def __init__(self, error_code: str, message: str, source_path: str | None = None):
        self.error_code = error_code
        self.message = message
        self.source_path = source_path
        super().__init__(f"{error_code}: {message}")


__all__ = [
    "RegistryErrorCode",
    "EncodeErrorCode",
    "RegistryError",
    "ConfigurationError",
    "UnknownContextError",
    "MissingBaseIdError",
    "EncodeError",
]
