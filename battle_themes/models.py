"""BGME Battle Themes - SQLAlchemy ORM models.

Transcode cache index. One SQLite database per cache directory
({cache_dir}/index.db) records which encoded files the cache holds.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class TranscodeCacheEntry(Base):
    """An encoded file held in the transcode cache.

    The cached file is {cache_dir}/{cache_key}{encoded_ext}. The row can
    outlive its file (e.g. after a version purge); callers treat that as a
    miss.
    """

    __tablename__ = "transcode_cache"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # sha256(content hash + encoder signature), first 32 hex chars
    cache_key: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)

    # SHA256 hex digest of the source file content
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Encoder configuration the file was produced with
    encoder_signature: Mapped[str] = mapped_column(Text, nullable=False)

    # Last source path seen for this content (informational)
    source_path: Mapped[str] = mapped_column(Text, nullable=False)
    source_size: Mapped[int] = mapped_column(Integer, nullable=False)

    # Cached file name inside the cache directory
    cached_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    cached_size: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    last_used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
