"""BGME Battle Themes - Pydantic models.

Song is the unit of registration and the record stored in music.json.
JSON keys use the PascalCase names of the existing music.json format,
so state files written by earlier releases load unchanged.
"""

from pydantic import BaseModel, ConfigDict, Field

# --- Registry Records ---


class Song(BaseModel):
    """One registered source audio file.

    Immutable and hashable. Equality covers every field: a song that is
    renamed, moved, or given a different ID is a new song.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    package_id: str = Field(..., alias="ModId", description="Owning package (mod) ID")
    name: str = Field(..., alias="Name", description="Source file name without extension")
    bgm_id: int = Field(..., alias="BgmId", description="Assigned BGM ID")
    file_path: str = Field(..., alias="FilePath", description="Absolute source audio path")
    build_file_path: str = Field(
        ..., alias="BuildFilePath", description="Absolute encoded output path"
    )


class ModConfig(BaseModel):
    """The subset of a package's ModConfig.json the registry reads."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    mod_id: str = Field(..., alias="ModId", min_length=1)
    mod_name: str | None = Field(default=None, alias="ModName")
    mod_version: str | None = Field(default=None, alias="ModVersion")


# --- Request Models ---


class RegisterRequest(BaseModel):
    """Request payload for queueing a registration pass."""

    model_config = ConfigDict(extra="forbid")

    enabled_mod_ids: list[str] = Field(
        ..., description="Enabled mod IDs in load order (determines BGM ID order)"
    )


# --- Response Models ---


class SongResponse(BaseModel):
    """Song as returned by the registry API."""

    model_config = ConfigDict(extra="forbid")

    package_id: str
    name: str
    bgm_id: int
    file_path: str
    build_file_path: str

    @classmethod
    def from_song(cls, song: Song) -> "SongResponse":
        return cls(**song.model_dump(by_alias=False))


class PackageSongsResponse(BaseModel):
    """Songs registered for one package in one context."""

    model_config = ConfigDict(extra="forbid")

    context: str = Field(..., description="Target game context")
    package_id: str = Field(..., description="Package (mod) ID")
    songs: list[SongResponse] = Field(default_factory=list)


class RegisterAcceptedResponse(BaseModel):
    """Response for a queued registration pass."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="queued")
    context: str


class ErrorResponse(BaseModel):
    """Response for failed API operations."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="error")
    error_code: str
    error_message: str


__all__ = [
    "Song",
    "ModConfig",
    "RegisterRequest",
    "SongResponse",
    "PackageSongsResponse",
    "RegisterAcceptedResponse",
    "ErrorResponse",
]
