"""
Integration tests for PostgresProfileStore.

Tests store operations against a real PostgreSQL database.
Requires PostgreSQL to be running (DATABASE_URL); skipped otherwise.
"""

from collections.abc import Generator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from src.adapters.store.postgres import PostgresProfileStore, run_migrations
from src.config.settings import get_settings
from src.domain.exceptions import ProfileStoreError
from tests.fakes import make_profile

pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for integration tests."""
    settings = get_settings()
    try:
        psycopg.connect(settings.database_url, connect_timeout=2).close()
    except psycopg.OperationalError:
        pytest.skip("PostgreSQL not reachable")

    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=10,
        open=True,
    )
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def store(pool: ConnectionPool) -> PostgresProfileStore:
    """Create store instance for each test."""
    return PostgresProfileStore(pool, session_key="test")


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Clean profiles table before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM profiles")
        conn.commit()
    yield


class TestLoadAndSave:
    """Tests for load() and save()."""

    def test_load_empty_returns_none(self, store: PostgresProfileStore) -> None:
        assert store.load() is None

    def test_save_then_load(self, store: PostgresProfileStore) -> None:
        profile = make_profile()

        store.save(profile)

        assert store.load() == profile

    def test_save_upserts(self, store: PostgresProfileStore, pool: ConnectionPool) -> None:
        store.save(make_profile())
        store.save(make_profile(trading_name="Toyota Mulgrave"))

        assert store.load().trading_name == "Toyota Mulgrave"
        with pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT COUNT(*) FROM profiles")
            assert cursor.fetchone()[0] == 1

    def test_document_stored_as_jsonb(self, store: PostgresProfileStore, pool: ConnectionPool) -> None:
        store.save(make_profile())

        with pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "SELECT profile_id, document->'profile'->>'email' FROM profiles WHERE session_key = %s",
                ("test",),
            )
            profile_id, email = cursor.fetchone()

        assert profile_id == make_profile().id
        assert email == "jane@example.com"

    def test_session_keys_isolated(self, pool: ConnectionPool) -> None:
        first = PostgresProfileStore(pool, session_key="first")
        second = PostgresProfileStore(pool, session_key="second")

        first.save(make_profile())

        assert second.load() is None

    def test_corrupt_document_raises(self, store: PostgresProfileStore, pool: ConnectionPool) -> None:
        with pool.connection() as conn:
            conn.execute(
                "INSERT INTO profiles (session_key, profile_id, document) VALUES (%s, %s, %s::jsonb)",
                ("test", "x", '{"version": 1, "profile": {"id": "x"}}'),
            )
            conn.commit()

        with pytest.raises(ProfileStoreError):
            store.load()


class TestClear:
    """Tests for clear()."""

    def test_clear_removes_profile(self, store: PostgresProfileStore) -> None:
        store.save(make_profile())

        store.clear()

        assert store.load() is None

    def test_clear_when_empty(self, store: PostgresProfileStore) -> None:
        store.clear()


class TestConcurrentSaves:
    """Concurrent saves of one profile serialize on the advisory lock."""

    def test_last_write_wins_without_corruption(self, pool: ConnectionPool) -> None:
        names = [f"Trader {i}" for i in range(10)]

        def save(name: str) -> None:
            PostgresProfileStore(pool, session_key="test").save(make_profile(trading_name=name))

        with ThreadPoolExecutor(max_workers=10) as executor:
            list(executor.map(save, names))

        loaded = PostgresProfileStore(pool, session_key="test").load()
        assert loaded.trading_name in names
        with pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT COUNT(*) FROM profiles")
            assert cursor.fetchone()[0] == 1


class TestRunMigrations:
    """Tests for run_migrations()."""

    def test_applied_files_not_rerun(self, pool: ConnectionPool) -> None:
        assert run_migrations(pool) == []

        with pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT name FROM schema_migrations")
            names = {row[0] for row in cursor.fetchall()}
        assert "001_create_profiles.sql" in names

    def test_failed_migration_not_recorded(self, pool: ConnectionPool, tmp_path: Path) -> None:
        (tmp_path / "900_broken.sql").write_text("CREATE TABLE (", encoding="utf-8")

        with pytest.raises(ProfileStoreError, match="900_broken.sql"):
            run_migrations(pool, migrations_dir=tmp_path)

        with pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "SELECT COUNT(*) FROM schema_migrations WHERE name = %s", ("900_broken.sql",)
            )
            assert cursor.fetchone()[0] == 0

    def test_missing_directory(self, pool: ConnectionPool, tmp_path: Path) -> None:
        assert run_migrations(pool, migrations_dir=tmp_path / "absent") == []
