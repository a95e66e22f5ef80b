"""Tests for battle_themes.db transcode cache index primitives."""

import tempfile
from pathlib import Path

import pytest
from sqlalchemy import func, inspect, select

from battle_themes.db import (
    delete_cache_entry,
    get_cache_entry,
    get_database_url,
    init_db,
    touch_cache_entry,
    upsert_cache_entry,
)
from battle_themes.models import TranscodeCacheEntry


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "cache" / "index.db"
        engine, SessionFactory = init_db(db_path)
        yield db_path, engine, SessionFactory
        engine.dispose()


def _upsert(session, key="a" * 32, **overrides):
    values = dict(
        cache_key=key,
        content_hash="c" * 64,
        encoder_signature="hca:key=None:pcm_s16le:48000:2",
        source_path="/mods/ModA/battle-themes/music/battle.wav",
        source_size=1000,
        cached_filename=f"{key}.hca",
        cached_size=400,
    )
    values.update(overrides)
    return upsert_cache_entry(session, **values)


class TestInitDb:
    """Tests for database initialization."""

    def test_creates_database_file_and_parent(self, temp_db):
        db_path, _, _ = temp_db
        assert db_path.exists()

    def test_creates_cache_table(self, temp_db):
        _, engine, _ = temp_db
        assert "transcode_cache" in inspect(engine).get_table_names()

    def test_idempotent(self, temp_db):
        """init_db should be safe to call multiple times."""
        db_path, _, _ = temp_db

        engine2, _ = init_db(db_path)

        assert "transcode_cache" in inspect(engine2).get_table_names()
        engine2.dispose()

    def test_database_url(self):
        assert get_database_url("/tmp/x/index.db") == "sqlite:////tmp/x/index.db"


class TestCacheEntries:
    """Insert, touch, replace and delete."""

    def test_insert_and_get(self, temp_db):
        _, _, SessionFactory = temp_db
        with SessionFactory() as session:
            _upsert(session)
            session.commit()

        with SessionFactory() as session:
            entry = get_cache_entry(session, "a" * 32)
            assert entry is not None
            assert entry.cached_filename == "a" * 32 + ".hca"
            assert entry.created_at is not None

    def test_get_missing(self, temp_db):
        _, _, SessionFactory = temp_db
        with SessionFactory() as session:
            assert get_cache_entry(session, "missing") is None

    def test_upsert_replaces_existing_row(self, temp_db):
        _, _, SessionFactory = temp_db
        with SessionFactory() as session:
            _upsert(session)
            _upsert(session, cached_size=999, source_path="/other.wav")
            session.commit()

            count = session.execute(select(func.count()).select_from(TranscodeCacheEntry)).scalar()
            entry = get_cache_entry(session, "a" * 32)

        assert count == 1
        assert entry.cached_size == 999
        assert entry.source_path == "/other.wav"

    def test_touch_updates_last_used(self, temp_db):
        _, _, SessionFactory = temp_db
        with SessionFactory() as session:
            entry = _upsert(session)
            session.commit()
            before = entry.last_used_at

            touch_cache_entry(session, entry, "/mods/ModB/battle-themes/music/copy.wav")
            session.commit()

            reloaded = get_cache_entry(session, "a" * 32)
            assert reloaded.source_path.endswith("copy.wav")
            assert reloaded.last_used_at >= before

    def test_delete(self, temp_db):
        _, _, SessionFactory = temp_db
        with SessionFactory() as session:
            _upsert(session)
            session.commit()

            assert delete_cache_entry(session, "a" * 32)
            assert not delete_cache_entry(session, "a" * 32)
            session.commit()

            assert get_cache_entry(session, "a" * 32) is None

    def test_primitives_do_not_commit(self, temp_db):
        """Callers own the transaction: rollback discards the upsert."""
        _, _, SessionFactory = temp_db
        with SessionFactory() as session:
            _upsert(session)
            session.rollback()

        with SessionFactory() as session:
            assert get_cache_entry(session, "a" * 32) is None
