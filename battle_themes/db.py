"""BGME Battle Themes - Database engine and session management.

SQLAlchemy sync engine/session factory for the SQLite transcode cache index,
plus the cache index primitives used by the cached encoder.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Engine, create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker

from battle_themes.models import Base, TranscodeCacheEntry, utc_now

# Index database file name inside a cache directory
CACHE_INDEX_FILENAME = "index.db"


def get_database_url(db_path: str | Path) -> str:
    """Get SQLite database URL.

    Args:
        db_path: Path to the database file.

    Returns:
        SQLite connection URL string.
    """
    return f"sqlite:///{db_path}"


def create_db_engine(db_path: str | Path, echo: bool = False) -> Engine:
    """Create SQLAlchemy engine.

    Args:
        db_path: Path to the database file.
        echo: If True, log all SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    return create_engine(
        get_database_url(db_path),
        echo=echo,
        # Encode jobs run on a thread pool. Each job opens its own session;
        # sessions are never shared across threads.
        connect_args={"check_same_thread": False, "timeout": 30},
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the given engine.

    Args:
        engine: SQLAlchemy Engine instance.

    Returns:
        Configured sessionmaker.
    """
    # - autoflush=False: explicit flush control
    # - expire_on_commit=False: objects remain usable post-commit
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(db_path: str | Path, echo: bool = False) -> tuple[Engine, sessionmaker]:
    """Initialize the database: create engine, session factory, and all tables.

    This is idempotent - safe to call multiple times.

    Args:
        db_path: Path to the database file. Parent directory is created.
        echo: If True, log all SQL statements.

    Returns:
        Tuple of (engine, SessionFactory).

    Raises:
        sqlalchemy.exc.DatabaseError: If db_path exists but is not a SQLite database.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(db_path, echo=echo)
    SessionFactory = create_session_factory(engine)

    try:
        Base.metadata.create_all(engine)
    except Exception:
        # Release the file so the caller can replace a corrupt database
        engine.dispose()
        raise

    return engine, SessionFactory


# --- Transcode Cache Index Primitives ---
#
# None of these commit. Callers own the transaction.


def get_cache_entry(session: Session, cache_key: str) -> TranscodeCacheEntry | None:
    """Look up a cache entry by key."""
    stmt = select(TranscodeCacheEntry).where(TranscodeCacheEntry.cache_key == cache_key)
    return session.execute(stmt).scalar_one_or_none()


def upsert_cache_entry(
    session: Session,
    cache_key: str,
    content_hash: str,
    encoder_signature: str,
    source_path: str,
    source_size: int,
    cached_filename: str,
    cached_size: int,
) -> TranscodeCacheEntry:
    """Insert or replace the entry for cache_key.

    Returns:
        The entry (flushed but not committed).
    """
    entry = get_cache_entry(session, cache_key)
    now = utc_now()

    if entry is None:
        entry = TranscodeCacheEntry(
            cache_key=cache_key,
            content_hash=content_hash,
            encoder_signature=encoder_signature,
            source_path=source_path,
            source_size=source_size,
            cached_filename=cached_filename,
            cached_size=cached_size,
            created_at=now,
            last_used_at=now,
        )
        session.add(entry)
    else:
        entry.content_hash = content_hash
        entry.encoder_signature = encoder_signature
        entry.source_path = source_path
        entry.source_size = source_size
        entry.cached_filename = cached_filename
        entry.cached_size = cached_size
        entry.created_at = now
        entry.last_used_at = now

    session.flush()
    return entry


def touch_cache_entry(session: Session, entry: TranscodeCacheEntry, source_path: str) -> None:
    """Record a cache hit."""
    entry.last_used_at = utc_now()
    entry.source_path = source_path
    session.flush()


def delete_cache_entry(session: Session, cache_key: str) -> bool:
    """Delete the entry for cache_key.

    Returns:
        True if a row was deleted.
    """
    result = session.execute(
        delete(TranscodeCacheEntry).where(TranscodeCacheEntry.cache_key == cache_key)
    )
    session.flush()
    return result.rowcount > 0
